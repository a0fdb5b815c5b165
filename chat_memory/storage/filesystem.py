"""FilesystemThreadStore: one markdown file per thread, YAML frontmatter + encoded state."""

from __future__ import annotations

import logging
import os
import threading
from datetime import datetime
from pathlib import Path

import yaml

from ..core.store import ThreadStore
from ..types import ThreadRecord
from .helpers import dt_to_str, str_to_dt, thread_filename

logger = logging.getLogger(__name__)

_FRONTMATTER_DELIM = "---\n"


def _record_to_markdown(record: ThreadRecord) -> str:
    frontmatter = {
        "thread_id": record.thread_id,
        "user_id": record.user_id,
        "persona_id": record.persona_id,
        "message_count": record.message_count,
        "updated_at": dt_to_str(record.updated_at),
    }
    # Body is written verbatim so the encoded state survives byte-for-byte
    return (
        _FRONTMATTER_DELIM
        + yaml.safe_dump(frontmatter, default_flow_style=False, allow_unicode=True)
        + _FRONTMATTER_DELIM
        + record.encoded_state
    )


def _markdown_to_record(text: str) -> ThreadRecord | None:
    if not text.startswith(_FRONTMATTER_DELIM):
        return None
    end = text.find("\n" + _FRONTMATTER_DELIM, len(_FRONTMATTER_DELIM))
    if end == -1:
        return None
    try:
        meta = yaml.safe_load(text[len(_FRONTMATTER_DELIM):end + 1])
    except yaml.YAMLError:
        return None
    if not isinstance(meta, dict) or "updated_at" not in meta:
        return None
    body = text[end + 1 + len(_FRONTMATTER_DELIM):]
    updated_at = meta["updated_at"]
    if isinstance(updated_at, datetime):
        updated_at = dt_to_str(updated_at)
    try:
        return ThreadRecord(
            thread_id=str(meta.get("thread_id", "")),
            user_id=str(meta.get("user_id", "")),
            persona_id=str(meta.get("persona_id", "")),
            encoded_state=body,
            message_count=int(meta.get("message_count", 0)),
            updated_at=str_to_dt(str(updated_at)),
        )
    except (TypeError, ValueError):
        return None


class FilesystemThreadStore(ThreadStore):
    """Human-readable store, handy for local development and inspection."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path_for(self, thread_id: str) -> Path:
        return self.root / thread_filename(thread_id)

    def _read(self, path: Path) -> ThreadRecord | None:
        if not path.is_file():
            return None
        with open(path, encoding="utf-8", newline="") as f:
            text = f.read()
        record = _markdown_to_record(text)
        if record is None:
            logger.warning("Skipping malformed thread file %s", path)
        return record

    def get(self, thread_id: str, user_id: str) -> str | None:
        with self._lock:
            record = self._read(self._path_for(thread_id))
        if record is None or record.user_id != user_id:
            return None
        return record.encoded_state

    def upsert(self, record: ThreadRecord) -> None:
        path = self._path_for(record.thread_id)
        with self._lock:
            existing = self._read(path)
            if existing is not None:
                record = ThreadRecord(
                    thread_id=existing.thread_id,
                    user_id=existing.user_id,
                    persona_id=existing.persona_id,
                    encoded_state=record.encoded_state,
                    message_count=record.message_count,
                    updated_at=record.updated_at,
                )
            tmp = path.with_suffix(".tmp")
            with open(tmp, "w", encoding="utf-8", newline="") as f:
                f.write(_record_to_markdown(record))
            os.replace(tmp, path)

    def get_record(self, thread_id: str) -> ThreadRecord | None:
        with self._lock:
            return self._read(self._path_for(thread_id))

    def list_threads(self, user_id: str | None = None, limit: int = 50) -> list[ThreadRecord]:
        records: list[ThreadRecord] = []
        with self._lock:
            for path in self.root.glob("*.md"):
                record = self._read(path)
                if record is None:
                    continue
                if user_id is not None and record.user_id != user_id:
                    continue
                records.append(record)
        records.sort(key=lambda r: r.updated_at, reverse=True)
        return records[:limit]

    def delete_thread(self, thread_id: str) -> bool:
        path = self._path_for(thread_id)
        with self._lock:
            if not path.is_file():
                return False
            path.unlink()
        return True
