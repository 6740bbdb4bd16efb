"""
dysapp - design critique ingestion, FixScope decisions and similarity search.
"""

__version__ = "1.0.0"
