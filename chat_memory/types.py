"""All dataclasses, enums, Protocols, and error types for chat-memory."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol, runtime_checkable


# ---------------------------------------------------------------------------
# Conversation state
# ---------------------------------------------------------------------------

class MemoryPhase(str, Enum):
    """Where a thread's memory sits in the grow/compact cycle."""
    EMPTY = "empty"
    ACCUMULATING = "accumulating"
    OVERSIZED_PENDING_COMPACTION = "oversized_pending_compaction"
    COMPACTED = "compacted"


@dataclass(frozen=True)
class ConversationState:
    """Two-segment memory: a rolling summary plus the raw recent transcript."""
    summary: str = ""
    recent: str = ""

    @property
    def total_length(self) -> int:
        return len(self.summary) + len(self.recent)

    @property
    def is_empty(self) -> bool:
        return not self.summary and not self.recent

    def phase(self, threshold: int) -> MemoryPhase:
        if self.is_empty:
            return MemoryPhase.EMPTY
        if self.total_length > threshold:
            return MemoryPhase.OVERSIZED_PENDING_COMPACTION
        if self.summary and not self.recent:
            return MemoryPhase.COMPACTED
        return MemoryPhase.ACCUMULATING


@dataclass
class ThreadRecord:
    """One persisted row: encoded state plus thread identity."""
    thread_id: str
    user_id: str
    persona_id: str
    encoded_state: str
    message_count: int = 0
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Turn outcomes
# ---------------------------------------------------------------------------

class LoadStatus(str, Enum):
    LOADED = "loaded"
    MISSING = "missing"      # first message for this thread
    DEGRADED = "degraded"    # store failed, proceeded with empty state


class CompactionStatus(str, Enum):
    NOT_NEEDED = "not_needed"
    COMPACTED = "compacted"
    FAILED = "failed"        # state left oversized, retried next turn


class PersistStatus(str, Enum):
    SAVED = "saved"
    FAILED = "failed"        # logged and swallowed, reply still returned


@dataclass
class CompactionOutcome:
    status: CompactionStatus
    state: ConversationState
    error: str = ""


@dataclass
class TurnResult:
    """Result of one processed turn. Degraded steps are flagged, not raised."""
    reply: str
    timestamp: datetime
    state: ConversationState
    load_status: LoadStatus = LoadStatus.LOADED
    compaction: CompactionStatus = CompactionStatus.NOT_NEEDED
    persist_status: PersistStatus = PersistStatus.SAVED

    @property
    def degraded(self) -> bool:
        return (
            self.load_status == LoadStatus.DEGRADED
            or self.compaction == CompactionStatus.FAILED
            or self.persist_status == PersistStatus.FAILED
        )


# ---------------------------------------------------------------------------
# Completion gateway
# ---------------------------------------------------------------------------

@dataclass
class ChatMessage:
    role: str  # "system", "user", "assistant"
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass
class CompletionRequest:
    model: str
    messages: list[ChatMessage]
    temperature: float = 0.0
    max_tokens: int = 256
    presence_penalty: float | None = None
    frequency_penalty: float | None = None

    def to_payload(self) -> dict:
        payload = {
            "model": self.model,
            "messages": [m.to_dict() for m in self.messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if self.presence_penalty is not None:
            payload["presence_penalty"] = self.presence_penalty
        if self.frequency_penalty is not None:
            payload["frequency_penalty"] = self.frequency_penalty
        return payload


@runtime_checkable
class CompletionGateway(Protocol):
    def complete(self, request: CompletionRequest) -> str: ...


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ChatMemoryError(Exception):
    """Base class for chat-memory errors."""


class ConfigError(ChatMemoryError):
    """Invalid or incomplete configuration. Fatal at startup."""


class CompletionError(ChatMemoryError):
    def __init__(self, message: str, provider: str, status_code: int | None = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class ServiceError(ChatMemoryError):
    """The reply could not be produced. No state was written."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class InvalidTurnError(ChatMemoryError):
    """Malformed turn input, rejected before any state access."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class MemoryConfig:
    compaction_threshold: int = 8000  # characters, not tokens
    serialize_turns: bool = True


@dataclass
class ReplyConfig:
    model: str = "gpt-4.1-mini"
    temperature: float = 0.8
    max_tokens: int = 100
    presence_penalty: float | None = 0.6
    frequency_penalty: float | None = 0.3
    fallback_reply: str = "Sorry, I could not generate a response."


@dataclass
class SummarizationConfig:
    model: str = "gpt-4.1-mini"
    temperature: float = 0.0
    max_tokens: int = 2000
    target_chars: int = 4000


@dataclass
class TranslationConfig:
    model: str = "gpt-4.1-nano"
    temperature: float = 0.3
    max_tokens: int = 200


@dataclass
class ProviderConfig:
    type: str = "openai"
    base_url: str = "https://api.openai.com/v1"
    api_key_env: str = "OPENAI_API_KEY"
    api_key: str | None = None
    timeout: float = 60.0
    max_retries: int = 3


@dataclass
class StorageConfig:
    backend: str = "sqlite"
    root: str = ".chatmemory/threads"
    sqlite_path: str = ".chatmemory/threads.db"


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8787
    cors_origins: list[str] = field(default_factory=lambda: ["*"])


@dataclass
class ChatMemoryConfig:
    version: str = "1.0"
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    reply: ReplyConfig = field(default_factory=ReplyConfig)
    summarization: SummarizationConfig = field(default_factory=SummarizationConfig)
    translation: TranslationConfig = field(default_factory=TranslationConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
