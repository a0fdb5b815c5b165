"""SizeMonitor: character-count trigger for compaction."""

from __future__ import annotations

from ..types import ConversationState, MemoryConfig, MemoryPhase


class SizeMonitor:
    """Flags a state for compaction once ``summary + recent`` exceeds the threshold.

    The comparison is strict: a state of exactly ``threshold`` characters is
    left alone.
    """

    def __init__(self, config: MemoryConfig) -> None:
        self.threshold = config.compaction_threshold

    def should_compact(self, state: ConversationState) -> bool:
        return state.total_length > self.threshold

    def phase(self, state: ConversationState) -> MemoryPhase:
        return state.phase(self.threshold)
