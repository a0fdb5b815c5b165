"""Tests for ConversationCompactor."""

import pytest

from conftest import MockGateway, http_error
from chat_memory.core.compactor import ConversationCompactor, build_summary_input
from chat_memory.types import CompactionStatus, ConversationState, SummarizationConfig


@pytest.fixture
def oversized() -> ConversationState:
    return ConversationState(summary="User likes K-pop.", recent="Human: hi\nAI: hello\n" * 500)


def _compactor(gateway) -> ConversationCompactor:
    return ConversationCompactor(gateway, SummarizationConfig())


class TestSummaryInput:
    def test_recent_only(self):
        state = ConversationState(recent="Human: hi\nAI: hello")
        assert build_summary_input(state) == "Recent conversation:Human: hi\nAI: hello"

    def test_with_previous_summary(self):
        state = ConversationState(summary="S", recent="R")
        assert build_summary_input(state) == (
            "Previous conversation summary:S\n\nRecent conversation:R"
        )


class TestCompact:
    def test_success_replaces_summary_and_clears_recent(self, oversized):
        gateway = MockGateway(summaries=["They talked about BTS and food."])
        outcome = _compactor(gateway).compact(oversized)
        assert outcome.status == CompactionStatus.COMPACTED
        assert outcome.state.summary == "They talked about BTS and food."
        assert outcome.state.recent == ""

    def test_request_settings(self, oversized):
        gateway = MockGateway()
        _compactor(gateway).compact(oversized)
        request = gateway.summary_requests[0]
        assert request.temperature == 0.0
        assert request.max_tokens == 2000
        assert request.presence_penalty is None
        assert "within 4000 characters" in request.messages[0].content
        assert "End with complete sentences" in request.messages[0].content
        assert request.messages[1].content.startswith("Previous conversation summary:User likes K-pop.")

    def test_gateway_failure_leaves_state_identical(self, oversized):
        gateway = MockGateway(summaries=[http_error(503)])
        outcome = _compactor(gateway).compact(oversized)
        assert outcome.status == CompactionStatus.FAILED
        assert outcome.state is oversized
        assert "503" in outcome.error

    def test_unexpected_exception_is_contained(self, oversized):
        gateway = MockGateway(summaries=[ValueError("bad json")])
        outcome = _compactor(gateway).compact(oversized)
        assert outcome.status == CompactionStatus.FAILED
        assert outcome.state == oversized

    @pytest.mark.parametrize("output", ["", "   \n "])
    def test_empty_output_is_failure(self, oversized, output):
        gateway = MockGateway(summaries=[output])
        outcome = _compactor(gateway).compact(oversized)
        assert outcome.status == CompactionStatus.FAILED
        assert outcome.state == oversized

    def test_sentinels_scrubbed_from_summary(self, oversized):
        gateway = MockGateway(summaries=["Talked about __RECENT__ markers."])
        outcome = _compactor(gateway).compact(oversized)
        assert "__RECENT__" not in outcome.state.summary
        assert outcome.state.summary == "Talked about  markers."

    def test_summary_stored_as_returned(self, oversized):
        gateway = MockGateway(summaries=["  They talked about BTS.\n"])
        outcome = _compactor(gateway).compact(oversized)
        assert outcome.status == CompactionStatus.COMPACTED
        assert outcome.state.summary == "  They talked about BTS.\n"
