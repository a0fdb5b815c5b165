"""ConversationCompactor: folds summary + recent transcript into a new summary."""

from __future__ import annotations

import logging

from ..types import (
    ChatMessage,
    CompactionOutcome,
    CompactionStatus,
    CompletionGateway,
    CompletionRequest,
    ConversationState,
    SummarizationConfig,
)
from .codec import scrub_sentinels

logger = logging.getLogger(__name__)

SUMMARY_SYSTEM_PROMPT = (
    "Summarize the following conversation history in English within {target_chars} "
    "characters. Keep important context, key points, topics discussed, and user "
    "preferences. Focus on what matters for future conversations. End with complete "
    "sentences."
)


def build_summary_input(state: ConversationState) -> str:
    """Text handed to the summarizer. Labels are glued to the content as-is."""
    if state.summary:
        return (
            f"Previous conversation summary:{state.summary}"
            f"\n\nRecent conversation:{state.recent}"
        )
    return f"Recent conversation:{state.recent}"


class ConversationCompactor:
    """Replace the whole state with one LLM-written summary.

    On success the recent window is fully subsumed (``recent == ""``). On any
    failure the input state is returned untouched so the next turn re-triggers
    the attempt.
    """

    def __init__(
        self,
        gateway: CompletionGateway,
        config: SummarizationConfig,
    ) -> None:
        self.gateway = gateway
        self.config = config

    def build_request(self, state: ConversationState) -> CompletionRequest:
        system = SUMMARY_SYSTEM_PROMPT.format(target_chars=self.config.target_chars)
        return CompletionRequest(
            model=self.config.model,
            messages=[
                ChatMessage(role="system", content=system),
                ChatMessage(role="user", content=build_summary_input(state)),
            ],
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )

    def compact(self, state: ConversationState) -> CompactionOutcome:
        logger.info(
            "Compacting conversation: summary=%d chars, recent=%d chars",
            len(state.summary), len(state.recent),
        )
        try:
            output = self.gateway.complete(self.build_request(state))
        except Exception as e:
            logger.warning(f"Summarization failed, keeping oversized state: {e}")
            return CompactionOutcome(
                status=CompactionStatus.FAILED, state=state, error=str(e),
            )

        summary = scrub_sentinels(output or "")
        if not summary.strip():
            logger.warning("Summarization returned empty output, keeping oversized state")
            return CompactionOutcome(
                status=CompactionStatus.FAILED, state=state, error="empty summary",
            )

        logger.info(f"Summarized to {len(summary)} chars, recent cleared")
        return CompactionOutcome(
            status=CompactionStatus.COMPACTED,
            state=ConversationState(summary=summary, recent=""),
        )
