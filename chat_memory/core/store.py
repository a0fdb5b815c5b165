"""ThreadStore abstract base class: one encoded conversation state per thread."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..types import ThreadRecord


class ThreadStore(ABC):
    """Pluggable persistence for conversation threads."""

    @abstractmethod
    def get(self, thread_id: str, user_id: str) -> str | None:
        """Return the encoded state for (thread, user). None if not found."""

    @abstractmethod
    def upsert(self, record: ThreadRecord) -> None:
        """Insert or update keyed by thread_id.

        On conflict only encoded_state, message_count and updated_at change;
        user_id and persona_id keep the values from the first insert.
        """

    @abstractmethod
    def get_record(self, thread_id: str) -> ThreadRecord | None:
        """Full record by thread id. None if not found."""

    @abstractmethod
    def list_threads(self, user_id: str | None = None, limit: int = 50) -> list[ThreadRecord]:
        """Records ordered by updated_at, newest first."""

    @abstractmethod
    def delete_thread(self, thread_id: str) -> bool:
        """Delete a thread. Returns True if deleted."""

    def close(self) -> None:
        """Release resources held by the backend."""
