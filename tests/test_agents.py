"""
Pytest tests for the analysis agents.

Tests for the single-call streaming agent, the review verdict parser and the
retry-gated intent analysis.
"""

import asyncio
import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from note_analyzer.agents.intent_gate import MAX_INTENT_ATTEMPTS, run_intent_gate
from note_analyzer.agents.review_agent import (
    build_review_content,
    parse_review_verdict,
    review_intent,
)
from note_analyzer.agents.single_call import accumulate, build_messages, invoke_agent, tag_stream
from note_analyzer.agents.state import ReviewVerdict
from note_analyzer.agents.prompts import REVIEW_ORIGINAL_HEADER


MODEL = "deepseek-chat"


def _texts(content):
    """All text of a multi-part message."""
    return "".join(block.get("text", "") for block in content if block.get("type") == "text")


# ============================================================================
# SINGLE-CALL AGENT
# ============================================================================


class TestSingleCallAgent:
    """Test streaming accumulation, timeouts and error propagation"""

    def test_snapshots_are_monotonic_prefixes(self, fake_client_factory):
        client = fake_client_factory([["二次", "", "函数", "的", "最小值"]])
        snapshots = []

        result = asyncio.run(invoke_agent(client, MODEL, "system", "user", snapshots.append))

        assert result == "二次函数的最小值"
        assert snapshots == ["二次", "二次函数", "二次函数的", "二次函数的最小值"]
        for shorter, longer in zip(snapshots, snapshots[1:]):
            assert longer.startswith(shorter)
            assert len(longer) > len(shorter)
        assert snapshots[-1] == result

    def test_empty_stream_returns_empty_text(self, fake_client_factory):
        client = fake_client_factory([[]])
        snapshots = []

        assert asyncio.run(invoke_agent(client, MODEL, "s", "u", snapshots.append)) == ""
        assert snapshots == []

    def test_request_shape(self, fake_client_factory):
        client = fake_client_factory([["ok"]])
        content = [{"type": "text", "text": "hello"}]

        asyncio.run(invoke_agent(client, MODEL, "system prompt", content, temperature=0.3))

        call = client.calls[0]
        assert call["model"] == MODEL
        assert call["temperature"] == 0.3
        assert call["messages"] == build_messages("system prompt", content)

    def test_transport_error_propagates(self, fake_client_factory):
        client = fake_client_factory([ConnectionError("network down")])

        with pytest.raises(ConnectionError, match="network down"):
            asyncio.run(invoke_agent(client, MODEL, "s", "u"))

    def test_timeout(self, fake_client_factory):
        client = fake_client_factory([["a", "b", "c"]], delay=0.2)

        with pytest.raises(asyncio.TimeoutError):
            asyncio.run(invoke_agent(client, MODEL, "s", "u", timeout=0.05))

    def test_accumulate_and_tag_stream(self):
        received = []
        forward = tag_stream(lambda agent_id, text: received.append((agent_id, text)), "intent")
        forward(accumulate("ab", "c"))
        tag_stream(None, "intent")("ignored")
        assert received == [("intent", "abc")]


# ============================================================================
# REVIEW AGENT
# ============================================================================


class TestReviewVerdict:
    """Test PASS/FAIL classification"""

    @pytest.mark.parametrize(
        "text,passed",
        [
            ("PASS\n分析准确", True),
            ("  PASS", True),
            ("PASSED", True),
            ("pass\n分析准确", False),
            ("FAIL\n缺少第2题", False),
            ("", False),
            ("结论：PASS", False),
        ],
    )
    def test_classification(self, text, passed):
        assert parse_review_verdict(text).passed is passed

    def test_feedback_is_everything_after_first_line(self):
        verdict = parse_review_verdict("FAIL\n缺少图片中的第2题\n题型标注错误\n")
        assert verdict.feedback == "缺少图片中的第2题\n题型标注错误"

    def test_single_line_has_empty_feedback(self):
        assert parse_review_verdict("FAIL").feedback == ""

    def test_review_sees_original_and_intent(self, fake_client_factory, sample_context):
        client = fake_client_factory([["PASS\n", "分析准确"]])
        original = sample_context.user_content()

        verdict = asyncio.run(review_intent(client, MODEL, "第1题", original))

        assert verdict == ReviewVerdict(passed=True, feedback="分析准确")
        sent = client.calls[0]["messages"][1]["content"]
        assert sent == build_review_content(original, "第1题")
        assert sent[0]["text"] == REVIEW_ORIGINAL_HEADER
        assert "第1题" in sent[-1]["text"]
        assert any(block["type"] == "image_url" for block in sent)


# ============================================================================
# RETRY-GATED INTENT ANALYSIS
# ============================================================================


def _run_gate(context, intents, verdicts, **kwargs):
    """Run the gate with stubbed intent and review agents."""
    intent_mock = AsyncMock(side_effect=list(intents))
    review_mock = AsyncMock(side_effect=list(verdicts))
    with patch("note_analyzer.agents.intent_gate.analyze_intent", intent_mock), patch(
        "note_analyzer.agents.intent_gate.review_intent", review_mock
    ):
        result = asyncio.run(run_intent_gate(None, MODEL, context, **kwargs))
    return result, intent_mock, review_mock


class TestIntentGate:
    """Test the retry budget and feedback propagation"""

    def test_budget_is_three(self):
        assert MAX_INTENT_ATTEMPTS == 3

    def test_always_failing_review_uses_whole_budget(self, sample_context):
        result, intent_mock, review_mock = _run_gate(
            sample_context,
            ["意图1", "意图2", "意图3"],
            [ReviewVerdict(False, "不对")] * 3,
        )

        assert intent_mock.call_count == 3
        assert review_mock.call_count == 3
        assert result.review_passed is False
        assert result.attempts == 3
        assert result.intent == "意图3"

    def test_first_pass_short_circuits(self, sample_context):
        result, intent_mock, review_mock = _run_gate(
            sample_context, ["意图1"], [ReviewVerdict(True, "分析准确")]
        )

        assert intent_mock.call_count == 1
        assert review_mock.call_count == 1
        assert result.review_passed is True
        assert result.intent == "意图1"

    def test_feedback_carried_into_retry(self, sample_context):
        result, intent_mock, review_mock = _run_gate(
            sample_context,
            ["意图1", "意图2"],
            [ReviewVerdict(False, "缺少图片中的第2题"), ReviewVerdict(True, "分析准确")],
        )

        assert intent_mock.call_count == 2
        assert review_mock.call_count == 2
        assert result.review_passed is True
        assert result.attempts == 2

        first_input = intent_mock.call_args_list[0].args[2]
        second_input = intent_mock.call_args_list[1].args[2]
        assert "缺少图片中的第2题" not in _texts(first_input)
        assert "缺少图片中的第2题" in _texts(second_input)

    def test_feedback_accumulates_and_review_sees_original(self, sample_context):
        result, intent_mock, review_mock = _run_gate(
            sample_context,
            ["意图1", "意图2", "意图3"],
            [ReviewVerdict(False, "问题A"), ReviewVerdict(False, "问题B"), ReviewVerdict(False, "问题C")],
        )

        third_input = _texts(intent_mock.call_args_list[2].args[2])
        assert "问题A" in third_input and "问题B" in third_input
        for call in review_mock.call_args_list:
            assert call.args[3] == sample_context.user_content()

    def test_context_not_modified(self, sample_context):
        before = sample_context.user_content()
        _run_gate(sample_context, ["意图1", "意图2"], [ReviewVerdict(False, "x"), ReviewVerdict(True, "")])
        assert sample_context.user_content() == before

    def test_progress_messages(self, sample_context):
        messages = []
        _run_gate(
            sample_context,
            ["意图1", "意图2"],
            [ReviewVerdict(False, "缺题"), ReviewVerdict(True, "")],
            on_progress=messages.append,
        )

        assert messages[0] == "🔍 正在进行第 1 次意图分析..."
        assert any("缺题" in message for message in messages)
        assert "🔍 正在进行第 2 次意图分析..." in messages
        assert messages[-1] == "✅ 意图审查通过"

    def test_error_propagates_without_retry(self, sample_context):
        intent_mock = AsyncMock(side_effect=ConnectionError("offline"))
        review_mock = AsyncMock()
        with patch("note_analyzer.agents.intent_gate.analyze_intent", intent_mock), patch(
            "note_analyzer.agents.intent_gate.review_intent", review_mock
        ):
            with pytest.raises(ConnectionError):
                asyncio.run(run_intent_gate(None, MODEL, sample_context))

        assert intent_mock.call_count == 1
        review_mock.assert_not_called()

    def test_end_to_end_with_streamed_replies(self, fake_client_factory, sample_context):
        client = fake_client_factory(
            [
                ["第1题：", "求最小值"],
                ["FAIL\n", "缺少图片中的第2题"],
                ["第1题；", "第2题"],
                ["PASS\n分析准确"],
            ]
        )
        streamed = []

        result = asyncio.run(
            run_intent_gate(
                client,
                MODEL,
                sample_context,
                on_agent_stream=lambda agent_id, text: streamed.append(agent_id),
            )
        )

        assert result.review_passed is True
        assert result.intent == "第1题；第2题"
        second_intent_content = client.calls[2]["messages"][1]["content"]
        assert "缺少图片中的第2题" in _texts(second_intent_content)
        assert set(streamed) == {"intent", "review"}
