"""
SQLite foundation. Canonical analysis records, per-user counters and bookmarks
live here; the vector overlay is rebuilt from these tables.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator

from .config import ensure_db_directory, get_db_path


@contextmanager
def get_db(db_path: str = None) -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection."""
    conn = sqlite3.connect(db_path or get_db_path())
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: str = None):
    """Initialize the database with required tables."""
    db_path = db_path or get_db_path()
    if db_path != ":memory:":
        ensure_db_directory(db_path)

    with get_db(db_path) as conn:
        cursor = conn.cursor()

        # Indexed columns duplicate document fields used by filters
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS analyses (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                format_prediction TEXT NOT NULL,
                fix_scope TEXT NOT NULL,
                overall_score INTEGER NOT NULL,
                has_embedding BOOLEAN DEFAULT FALSE,
                has_ocr_text BOOLEAN DEFAULT FALSE,
                created_at TEXT NOT NULL,
                document TEXT NOT NULL
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS user_profiles (
                user_id TEXT PRIMARY KEY,
                analysis_count INTEGER NOT NULL DEFAULT 0,
                display_name TEXT,
                preferences TEXT,
                updated_at TEXT
            )
        ''')

        # Profiles created before display names and preferences existed
        cursor.execute("PRAGMA table_info(user_profiles)")
        profile_columns = [col[1] for col in cursor.fetchall()]
        for column in ("display_name", "preferences"):
            if column not in profile_columns:
                cursor.execute(f"ALTER TABLE user_profiles ADD COLUMN {column} TEXT")

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS bookmarks (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                analysis_id TEXT NOT NULL,
                created_at TEXT NOT NULL,
                UNIQUE (user_id, analysis_id)
            )
        ''')

        # Create indexes for performance
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_analyses_user_created ON analyses(user_id, created_at DESC)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_analyses_format ON analyses(format_prediction, overall_score)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_analyses_fix_scope ON analyses(fix_scope)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_bookmarks_user_created ON bookmarks(user_id, created_at DESC)')

        conn.commit()


def health_check(db_path: str = None) -> bool:
    """Check if the database is accessible."""
    try:
        with get_db(db_path) as conn:
            conn.execute("SELECT 1 FROM analyses LIMIT 1")
        return True
    except sqlite3.Error:
        return False
