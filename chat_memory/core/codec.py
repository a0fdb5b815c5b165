"""State codec: two-segment conversation state <-> single persisted string.

Encoded form is ``__SUMMARY__<summary>__RECENT__<recent>``. Records written
before segmentation carry no markers and decode as all-``recent``.

Known edge case: a ``summary`` containing ``__RECENT__`` does not round-trip,
because decode splits on the first occurrence. The codec does not escape;
callers that generate summaries run them through ``scrub_sentinels`` first.
"""

from __future__ import annotations

from ..types import ConversationState

SENTINEL_SUMMARY = "__SUMMARY__"
SENTINEL_RECENT = "__RECENT__"


def encode(state: ConversationState) -> str:
    return f"{SENTINEL_SUMMARY}{state.summary}{SENTINEL_RECENT}{state.recent}"


def decode(raw: str | None) -> ConversationState:
    """Decode a persisted string. Total over its input: never raises."""
    if raw is None:
        return ConversationState()

    if SENTINEL_SUMMARY not in raw:
        # Legacy record: whole blob is the recent transcript
        return ConversationState(summary="", recent=raw)

    head, _, recent = raw.partition(SENTINEL_RECENT)
    summary = head.replace(SENTINEL_SUMMARY, "", 1)
    return ConversationState(summary=summary, recent=recent)


def is_legacy(raw: str | None) -> bool:
    return raw is not None and SENTINEL_SUMMARY not in raw


def scrub_sentinels(text: str) -> str:
    """Remove both segment markers from generated text."""
    return text.replace(SENTINEL_RECENT, "").replace(SENTINEL_SUMMARY, "")
