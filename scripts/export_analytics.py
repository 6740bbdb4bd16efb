#!/usr/bin/env python3
"""
Analytics Export Utility
Writes analysis records as flat analytics rows (JSON lines), one file for the
work rows and one for the metrics rows.
"""

import argparse
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dysapp.core.config import get_db_path
from dysapp.core.mapping import record_to_analytics_metrics_row, record_to_analytics_work_row
from dysapp.core.models import SearchFilters
from dysapp.core.store import SQLiteAnalysisStore


def export(store, output_dir: Path, user_id: str = None) -> int:
    """Export every (or one subject's) record. Returns the number of records written."""
    output_dir.mkdir(parents=True, exist_ok=True)
    records = store.scan(SearchFilters(user_id=user_id))

    with open(output_dir / "design_work.jsonl", "w", encoding="utf-8") as work_file, \
            open(output_dir / "design_metrics.jsonl", "w", encoding="utf-8") as metrics_file:
        for record in records:
            work_file.write(json.dumps(record_to_analytics_work_row(record)) + "\n")
            metrics_file.write(json.dumps(record_to_analytics_metrics_row(record)) + "\n")

    return len(records)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Export analyses as analytics rows")
    parser.add_argument("--db", default=get_db_path(), help="SQLite database path")
    parser.add_argument("--out", default="./export", help="Output directory")
    parser.add_argument("--user", default=None, help="Only export this user's analyses")
    args = parser.parse_args(argv)

    store = SQLiteAnalysisStore(args.db)
    count = export(store, Path(args.out), args.user)
    print(f"✓ Exported {count} analyses to {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
