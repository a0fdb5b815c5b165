"""Shared helpers for storage backends."""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone


def dt_to_str(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def str_to_dt(s: str) -> datetime:
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def thread_filename(thread_id: str) -> str:
    """Filesystem-safe name for a thread id (ids are caller-supplied strings)."""
    return hashlib.sha256(thread_id.encode("utf-8")).hexdigest()[:32] + ".md"
