"""chat-memory: bounded two-tier conversation memory for persona chat."""

from .config import load_config
from .manager import MemoryManager
from .personas import Persona
from .types import (
    ChatMemoryConfig,
    CompactionStatus,
    ConversationState,
    LoadStatus,
    PersistStatus,
    ServiceError,
    TurnResult,
)

__version__ = "0.1.0"

__all__ = [
    "MemoryManager",
    "load_config",
    "Persona",
    "ChatMemoryConfig",
    "CompactionStatus",
    "ConversationState",
    "LoadStatus",
    "PersistStatus",
    "ServiceError",
    "TurnResult",
]
