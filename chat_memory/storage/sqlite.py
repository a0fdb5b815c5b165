"""SQLiteThreadStore: primary storage backend using stdlib sqlite3."""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path

from ..core.store import ThreadStore
from ..types import ThreadRecord
from .helpers import dt_to_str, str_to_dt

SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS chat_summaries (
    thread_id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    ai_friend_id TEXT NOT NULL DEFAULT '',
    summary TEXT NOT NULL DEFAULT '',
    summarized_message_count INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_chat_summaries_user ON chat_summaries(user_id);
CREATE INDEX IF NOT EXISTS idx_chat_summaries_updated_at ON chat_summaries(updated_at);
"""

UPSERT_SQL = """\
INSERT INTO chat_summaries
    (thread_id, user_id, ai_friend_id, summary, summarized_message_count, updated_at)
VALUES (?, ?, ?, ?, ?, ?)
ON CONFLICT (thread_id) DO UPDATE SET
    summary = excluded.summary,
    summarized_message_count = excluded.summarized_message_count,
    updated_at = excluded.updated_at
"""


def _row_to_record(row: sqlite3.Row) -> ThreadRecord:
    return ThreadRecord(
        thread_id=row["thread_id"],
        user_id=row["user_id"],
        persona_id=row["ai_friend_id"],
        encoded_state=row["summary"],
        message_count=row["summarized_message_count"],
        updated_at=str_to_dt(row["updated_at"]),
    )


class SQLiteThreadStore(ThreadStore):
    """SQLite-backed thread store. One row per thread id.

    Column names follow the ``chat_summaries`` table of the hosted backend so
    exported rows can be loaded without remapping.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()
        self._ensure_schema()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
        return self._conn

    def _ensure_schema(self) -> None:
        with self._lock:
            conn = self._get_conn()
            conn.executescript(SCHEMA_SQL)
            conn.commit()

    def get(self, thread_id: str, user_id: str) -> str | None:
        with self._lock:
            row = self._get_conn().execute(
                "SELECT summary FROM chat_summaries WHERE thread_id = ? AND user_id = ?",
                (thread_id, user_id),
            ).fetchone()
        if not row:
            return None
        return row["summary"]

    def upsert(self, record: ThreadRecord) -> None:
        with self._lock:
            conn = self._get_conn()
            conn.execute(
                UPSERT_SQL,
                (
                    record.thread_id,
                    record.user_id,
                    record.persona_id,
                    record.encoded_state,
                    record.message_count,
                    dt_to_str(record.updated_at),
                ),
            )
            conn.commit()

    def get_record(self, thread_id: str) -> ThreadRecord | None:
        with self._lock:
            row = self._get_conn().execute(
                "SELECT * FROM chat_summaries WHERE thread_id = ?", (thread_id,)
            ).fetchone()
        if not row:
            return None
        return _row_to_record(row)

    def list_threads(self, user_id: str | None = None, limit: int = 50) -> list[ThreadRecord]:
        query = "SELECT * FROM chat_summaries"
        params: list = []
        if user_id is not None:
            query += " WHERE user_id = ?"
            params.append(user_id)
        query += " ORDER BY updated_at DESC LIMIT ?"
        params.append(limit)
        with self._lock:
            rows = self._get_conn().execute(query, params).fetchall()
        return [_row_to_record(r) for r in rows]

    def delete_thread(self, thread_id: str) -> bool:
        with self._lock:
            conn = self._get_conn()
            cursor = conn.execute(
                "DELETE FROM chat_summaries WHERE thread_id = ?", (thread_id,)
            )
            conn.commit()
        return cursor.rowcount > 0

    def close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
