"""Shared fixtures for chat-memory tests."""

from __future__ import annotations

import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest

from chat_memory.config import load_config
from chat_memory.manager import MemoryManager
from chat_memory.storage.sqlite import SQLiteThreadStore
from chat_memory.types import (
    ChatMemoryConfig,
    CompletionError,
    CompletionRequest,
    ThreadRecord,
)


class MockGateway:
    """Scripted completion gateway (no API calls).

    Replies are popped from ``responses`` in order; the last one repeats.
    An ``Exception`` instance in the script is raised instead of returned.
    Requests whose system prompt starts with ``Summarize`` are answered from
    ``summaries`` so reply and compaction calls can be scripted separately.
    """

    def __init__(
        self,
        responses: list | None = None,
        summaries: list | None = None,
    ):
        self.requests: list[CompletionRequest] = []
        self._responses = list(responses or ["Hello"])
        self._summaries = list(summaries or ["Condensed summary of the chat."])
        self._lock = threading.Lock()

    @staticmethod
    def is_summary(request: CompletionRequest) -> bool:
        return request.messages[0].content.startswith("Summarize")

    @property
    def reply_requests(self) -> list[CompletionRequest]:
        return [r for r in self.requests if not self.is_summary(r)]

    @property
    def summary_requests(self) -> list[CompletionRequest]:
        return [r for r in self.requests if self.is_summary(r)]

    def complete(self, request: CompletionRequest) -> str:
        with self._lock:
            self.requests.append(request)
            script = self._summaries if self.is_summary(request) else self._responses
            item = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(item, Exception):
            raise item
        return item


class FailingStore(SQLiteThreadStore):
    """SQLite store whose reads and/or writes can be made to blow up."""

    def __init__(self, db_path, fail_get: bool = False, fail_upsert: bool = False):
        super().__init__(db_path)
        self.fail_get = fail_get
        self.fail_upsert = fail_upsert
        self.upserts: list[ThreadRecord] = []

    def get(self, thread_id, user_id):
        if self.fail_get:
            raise RuntimeError("database is unavailable")
        return super().get(thread_id, user_id)

    def upsert(self, record):
        self.upserts.append(record)
        if self.fail_upsert:
            raise RuntimeError("database is unavailable")
        super().upsert(record)


def http_error(status_code: int = 500) -> CompletionError:
    return CompletionError(
        f"HTTP {status_code}: upstream error", provider="mock", status_code=status_code,
    )


@pytest.fixture
def ts() -> datetime:
    return datetime(2026, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def tmp_store_dir():
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def tmp_sqlite_db(tmp_store_dir):
    return tmp_store_dir / "threads.db"


@pytest.fixture
def sample_config() -> ChatMemoryConfig:
    return load_config(config_dict={})


@pytest.fixture
def store(tmp_sqlite_db):
    s = SQLiteThreadStore(db_path=tmp_sqlite_db)
    yield s
    s.close()


@pytest.fixture
def gateway() -> MockGateway:
    return MockGateway()


@pytest.fixture
def manager(store, gateway, sample_config, ts) -> MemoryManager:
    return MemoryManager(store=store, gateway=gateway, config=sample_config, clock=lambda: ts)
