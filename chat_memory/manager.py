"""MemoryManager: load, reply, append, compact and persist for each conversation turn."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from contextlib import nullcontext
from datetime import datetime, timezone
from pathlib import Path

from .config import load_config
from .core.codec import decode, encode
from .core.compactor import ConversationCompactor
from .core.monitor import SizeMonitor
from .core.store import ThreadStore
from .core.thread_locks import ThreadLockRegistry
from .personas import Persona
from .storage.filesystem import FilesystemThreadStore
from .storage.sqlite import SQLiteThreadStore
from .types import (
    ChatMemoryConfig,
    ChatMessage,
    CompactionStatus,
    CompletionError,
    CompletionGateway,
    CompletionRequest,
    ConfigError,
    ConversationState,
    InvalidTurnError,
    LoadStatus,
    PersistStatus,
    ProviderConfig,
    ServiceError,
    StorageConfig,
    ThreadRecord,
    TurnResult,
)

logger = logging.getLogger(__name__)


def build_store(config: StorageConfig) -> ThreadStore:
    """Initialize the storage backend."""
    if config.backend == "sqlite":
        return SQLiteThreadStore(db_path=config.sqlite_path)
    if config.backend == "filesystem":
        return FilesystemThreadStore(root=config.root)
    raise ConfigError(f"Unknown storage backend: {config.backend}")


def build_provider(config: ProviderConfig) -> CompletionGateway:
    """Build the completion gateway. Missing credentials are fatal."""
    if config.type != "openai":
        raise ConfigError(f"Unknown provider type: {config.type}")

    api_key = config.api_key or os.environ.get(config.api_key_env, "")
    if not api_key:
        raise ConfigError(
            f"No API key found. Set {config.api_key_env} env var or provider.api_key."
        )

    from .providers.openai import OpenAIProvider
    return OpenAIProvider(
        api_key=api_key,
        base_url=config.base_url,
        timeout=config.timeout,
        max_retries=config.max_retries,
    )


def compose_messages(persona: Persona, state: ConversationState, message: str) -> list[ChatMessage]:
    """System prompt = persona prompt + previous summary + recent transcript."""
    system = persona.prompt
    if state.summary:
        system += f"\n\nPrevious conversation summary:\n{state.summary}"
    if state.recent:
        system += f"\n\nRecent conversation:\n{state.recent}"
    return [
        ChatMessage(role="system", content=system),
        ChatMessage(role="user", content=message),
    ]


def append_turn(state: ConversationState, message: str, reply: str) -> ConversationState:
    turn = f"Human: {message}\nAI: {reply}"
    recent = f"{state.recent}\n{turn}" if state.recent else turn
    return ConversationState(summary=state.summary, recent=recent)


class MemoryManager:
    """Conversation memory for chat threads.

    Each call to :meth:`process_turn` runs the full turn pipeline:

    1. Load the thread's state. A missing row is an empty state; a failing
       store degrades to an empty state rather than failing the request.
    2. Ask the gateway for the reply, with summary and recent transcript in
       the system prompt. A gateway failure raises :class:`ServiceError` and
       nothing is written.
    3. Append the turn to ``recent``.
    4. Compact when ``len(summary) + len(recent)`` exceeds the threshold. A
       failed compaction leaves the state as-is and is retried next turn.
    5. Persist. A failing store is logged and the reply is still returned.

    With ``memory.serialize_turns`` enabled (default) steps 1–5 are atomic per
    thread id, so concurrent turns on one thread are applied one after the
    other instead of overwriting each other. Different threads never block
    each other.
    """

    def __init__(
        self,
        store: ThreadStore,
        gateway: CompletionGateway,
        config: ChatMemoryConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or ChatMemoryConfig()
        self.store = store
        self.gateway = gateway
        self.monitor = SizeMonitor(self.config.memory)
        self.compactor = ConversationCompactor(gateway, self.config.summarization)
        self._locks = ThreadLockRegistry()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_config(
        cls,
        config: ChatMemoryConfig | None = None,
        config_path: str | Path | None = None,
    ) -> MemoryManager:
        """Construct store and gateway from config. Raises ConfigError on bad setup."""
        if config is None:
            config = load_config(config_path)
        gateway = build_provider(config.provider)
        store = build_store(config.storage)
        return cls(store=store, gateway=gateway, config=config)

    def close(self) -> None:
        self.store.close()

    # ------------------------------------------------------------------
    # Turn pipeline
    # ------------------------------------------------------------------

    def process_turn(
        self,
        thread_id: str,
        user_id: str,
        persona_id: str,
        message: str,
        message_count: int = 0,
    ) -> TurnResult:
        if not thread_id or not user_id or not persona_id or not message:
            raise InvalidTurnError(
                "Missing required fields: userId, chatId, aiFriendId, userMessage"
            )
        persona = Persona.resolve(persona_id)

        guard = self._locks.hold(thread_id) if self.config.memory.serialize_turns else nullcontext()
        with guard:
            return self._run_turn(thread_id, user_id, persona, message, message_count)

    def _run_turn(
        self,
        thread_id: str,
        user_id: str,
        persona: Persona,
        message: str,
        message_count: int,
    ) -> TurnResult:
        state, load_status = self._load(thread_id, user_id)
        logger.info(
            "Chat %s: loaded summary=%d chars, recent=%d chars (%s)",
            thread_id, len(state.summary), len(state.recent), load_status.value,
        )

        reply = self._reply(persona, state, message)

        state = append_turn(state, message, reply)

        compaction = CompactionStatus.NOT_NEEDED
        if self.monitor.should_compact(state):
            logger.info(f"Total too long ({state.total_length} chars), summarizing")
            outcome = self.compactor.compact(state)
            compaction = outcome.status
            state = outcome.state

        now = self._clock()
        persist_status = self._persist(
            ThreadRecord(
                thread_id=thread_id,
                user_id=user_id,
                persona_id=persona.value,
                encoded_state=encode(state),
                message_count=message_count or 0,
                updated_at=now,
            )
        )

        return TurnResult(
            reply=reply,
            timestamp=now,
            state=state,
            load_status=load_status,
            compaction=compaction,
            persist_status=persist_status,
        )

    def _reply(self, persona: Persona, state: ConversationState, message: str) -> str:
        cfg = self.config.reply
        request = CompletionRequest(
            model=cfg.model,
            messages=compose_messages(persona, state, message),
            temperature=cfg.temperature,
            max_tokens=cfg.max_tokens,
            presence_penalty=cfg.presence_penalty,
            frequency_penalty=cfg.frequency_penalty,
        )
        try:
            reply = self.gateway.complete(request)
        except CompletionError as e:
            logger.error(f"Reply completion failed ({e.provider}): {e}")
            status = e.status_code if e.status_code is not None else "transport error"
            raise ServiceError(
                f"AI completion request failed: {status}",
                status_code=e.status_code,
            ) from e
        return reply or cfg.fallback_reply

    # ------------------------------------------------------------------
    # Persistence (best effort)
    # ------------------------------------------------------------------

    def _load(self, thread_id: str, user_id: str) -> tuple[ConversationState, LoadStatus]:
        try:
            raw = self.store.get(thread_id, user_id)
        except Exception as e:
            logger.error(f"Loading thread {thread_id} failed, continuing with empty history: {e}")
            return ConversationState(), LoadStatus.DEGRADED
        if raw is None:
            return ConversationState(), LoadStatus.MISSING
        return decode(raw), LoadStatus.LOADED

    def _persist(self, record: ThreadRecord) -> PersistStatus:
        try:
            self.store.upsert(record)
        except Exception as e:
            logger.error(f"Saving thread {record.thread_id} failed, history for this turn is lost: {e}")
            return PersistStatus.FAILED
        logger.info(f"Updated thread {record.thread_id}: {len(record.encoded_state)} chars")
        return PersistStatus.SAVED

    def load_state(self, thread_id: str, user_id: str) -> ConversationState:
        """Current state for a thread, empty if missing or unreadable."""
        state, _ = self._load(thread_id, user_id)
        return state
