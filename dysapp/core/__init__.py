"""
Core critique pipeline: validation, sanitization, decisions, scoring, search and storage.
"""
