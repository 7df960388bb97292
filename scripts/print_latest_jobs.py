#!/usr/bin/env python3

import argparse
import os
import sqlite3
import sys
from datetime import datetime

DEFAULT_DB = os.getenv("JOB_HARVEST_DB_PATH", "/app/local/state/job_harvest.db")


def get_latest_jobs(db_path: str, limit: int = 15) -> list[tuple[str, str, str, str, str]]:
    """
    Fetch the latest `limit` rows from the jobs table, newest first_seen_utc first.
    Returns list of (title, company, source, url, first_seen_utc)
    """
    try:
        conn = sqlite3.connect(db_path, timeout=10.0)
        try:
            rows = conn.execute(
                """
                SELECT title, company, source, url, first_seen_utc
                FROM jobs
                ORDER BY first_seen_utc DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        finally:
            conn.close()
        return rows
    except sqlite3.Error as e:
        print(f"Error reading {db_path}: {e}", file=sys.stderr)
        return []


def format_timestamp(iso_str: str) -> str:
    """Convert ISO timestamp to readable local format."""
    try:
        dt = datetime.fromisoformat(iso_str.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return str(iso_str)
    return dt.astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")


def _positive_int(raw: str) -> int:
    value = int(raw)
    if value <= 0:
        raise argparse.ArgumentTypeError(f"limit must be > 0 (got {raw})")
    return value


def main(argv=None) -> int:
    p = argparse.ArgumentParser(description="Print the most recently discovered job listings.")
    p.add_argument("limit", nargs="?", type=_positive_int, default=15)
    p.add_argument("--db", default=DEFAULT_DB, help="SQLite path (default: JOB_HARVEST_DB_PATH)")
    args = p.parse_args(argv)

    if not os.path.exists(args.db):
        print(f"Database not found: {args.db}")
        return 1

    entries = get_latest_jobs(args.db, args.limit)
    print("=" * 80)
    print(f"DATABASE: {args.db}  (last {args.limit})")
    print("-" * 80)
    if not entries:
        print("  No entries found or error accessing database.")
        return 0

    for i, (title, company, source, url, ts) in enumerate(entries, 1):
        print(f"{i:2d}. [{format_timestamp(ts)}] {source}")
        print(f"     Title:   {title}")
        print(f"     Company: {company}")
        print(f"     URL:     {url}")
        print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
