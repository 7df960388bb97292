from __future__ import annotations

import contextlib
import json
import os
import sqlite3
import uuid
from typing import Any

from .logging_bridge import error as log_error
from .models import ScrapedRecord, UpsertResult
from .utils import now_iso

# ---- Public API -------------------------------------------------------------


def init_db(sqlite_path: str) -> None:
    """
    Ensure the SQLite database and schema exist.
    Safe to call multiple times.
    """
    _ensure_dir(sqlite_path)
    with contextlib.closing(_connect(sqlite_path)) as conn:
        _apply_pragmas(conn)
        _ensure_schema(conn)


def upsert_job_by_url(sqlite_path: str, record: ScrapedRecord) -> UpsertResult:
    """
    Create or refresh the row keyed by record.url.

    Update refreshes the listing fields and last_seen_utc; published_date and
    first_seen_utc are written on create only. The read and the write share one
    IMMEDIATE transaction so concurrent upserts of one URL cannot both create.
    """
    ts = now_iso()
    url = record.url.strip()
    fields = (
        record.title,
        record.company,
        record.location,
        record.description,
        json.dumps(list(record.requirements), ensure_ascii=False),
        record.source,
    )
    try:
        with contextlib.closing(_connect(sqlite_path)) as conn:
            _apply_pragmas(conn)
            cur = conn.cursor()
            cur.execute("BEGIN IMMEDIATE")
            try:
                cur.execute("SELECT id FROM jobs WHERE url = ?", (url,))
                row = cur.fetchone()
                if row is not None:
                    job_id, is_new = row[0], False
                    cur.execute(
                        """
                        UPDATE jobs
                           SET title = ?, company = ?, location = ?, description = ?,
                               requirements = ?, source = ?, last_seen_utc = ?
                         WHERE id = ?
                        """,
                        (*fields, ts, job_id),
                    )
                else:
                    job_id, is_new = uuid.uuid4().hex, True
                    published = record.published_date.isoformat() if record.published_date else None
                    cur.execute(
                        """
                        INSERT INTO jobs (id, url, title, company, location, description,
                                          requirements, source, published_date,
                                          first_seen_utc, last_seen_utc)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (job_id, url, *fields, published, ts, ts),
                    )
                conn.commit()
            except BaseException:
                conn.rollback()
                raise
    except Exception as e:
        log_error(
            {
                "component": "job_harvest.db",
                "op": "upsert_job_by_url",
                "sqlite_path": sqlite_path,
                "url": url,
                "error": repr(e),
            }
        )
        raise
    return UpsertResult(id=job_id, is_new=is_new)


class JobStore:
    """Persistence collaborator handed to the cycle engine."""

    def __init__(self, sqlite_path: str) -> None:
        self.sqlite_path = sqlite_path
        init_db(sqlite_path)

    def upsert_job_by_url(self, record: ScrapedRecord) -> UpsertResult:
        return upsert_job_by_url(self.sqlite_path, record)


# ---- Nice-to-have helpers for tests & diagnostics --------------------------


def count_rows(sqlite_path: str) -> int:
    """Return total rows in jobs table; 0 if DB missing/empty."""
    if not os.path.exists(sqlite_path):
        return 0
    with contextlib.closing(_connect(sqlite_path)) as conn:
        _ensure_schema(conn)
        (n,) = conn.execute("SELECT COUNT(*) FROM jobs").fetchone()
    return int(n or 0)


def get_job(sqlite_path: str, url: str) -> dict[str, Any] | None:
    if not os.path.exists(sqlite_path):
        return None
    with contextlib.closing(_connect(sqlite_path)) as conn:
        conn.row_factory = sqlite3.Row
        _ensure_schema(conn)
        row = conn.execute("SELECT * FROM jobs WHERE url = ?", (url.strip(),)).fetchone()
    if row is None:
        return None
    out = dict(row)
    out["requirements"] = json.loads(out.get("requirements") or "[]")
    return out


def reset_db(sqlite_path: str) -> None:
    """
    Remove the DB file (and WAL side files) entirely.
    Safe if it doesn't exist.
    """
    for suffix in ("", "-wal", "-shm"):
        with contextlib.suppress(FileNotFoundError):
            os.remove(sqlite_path + suffix)


# ---- Internal utilities -----------------------------------------------------


def _ensure_dir(sqlite_path: str) -> None:
    d = os.path.dirname(os.path.abspath(sqlite_path)) or "."
    os.makedirs(d, exist_ok=True)


def _connect(sqlite_path: str) -> sqlite3.Connection:
    # Autocommit mode; transactions are opened explicitly.
    return sqlite3.connect(sqlite_path, timeout=30.0, isolation_level=None)


def _apply_pragmas(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA temp_store=MEMORY;")


def _ensure_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS jobs (
          id             TEXT PRIMARY KEY,
          url            TEXT NOT NULL UNIQUE,
          title          TEXT NOT NULL,
          company        TEXT NOT NULL,
          location       TEXT NOT NULL DEFAULT '',
          description    TEXT NOT NULL DEFAULT '',
          requirements   TEXT NOT NULL DEFAULT '[]',
          source         TEXT NOT NULL,
          published_date TEXT,
          first_seen_utc TEXT NOT NULL,
          last_seen_utc  TEXT NOT NULL
        );
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS ix_jobs_source ON jobs (source);")
