"""
Retry-gated intent analysis.

Runs intent -> review up to ``MAX_INTENT_ATTEMPTS`` times. After a failed
review (other than the last one) the review feedback is appended to a private
working copy of the note content and the intent agent runs again. The review
agent always sees the unmodified note content.
"""

from __future__ import annotations

import time
from typing import Optional

from ..utils.logger import (
    get_agent_logger,
    log_performance_metrics,
    log_state_transition,
)
from ..utils.openai_client import ChatClient
from .intent_agent import analyze_intent
from .prompts import format_feedback_block
from .review_agent import review_intent
from .single_call import AgentStreamCallback, ProgressCallback, tag_stream
from .state import (
    MAX_INTENT_ATTEMPTS,
    AgentId,
    AnalysisContext,
    IntentGateResult,
    RetryState,
)


logger = get_agent_logger("intent_gate")


async def run_intent_gate(
    client: ChatClient,
    model: str,
    context: AnalysisContext,
    on_progress: Optional[ProgressCallback] = None,
    on_agent_stream: Optional[AgentStreamCallback] = None,
    timeout: Optional[float] = None,
    run_id: Optional[str] = None,
) -> IntentGateResult:
    """
    Analyse the note's intent until a review passes or the budget runs out.

    Args:
        client: Chat client.
        model: Model name.
        context: The caller's analysis context (never modified).
        on_progress: Receives human-readable status lines.
        on_agent_stream: Receives ``(agent_id, partial_text)`` updates.
        timeout: Per-call timeout in seconds.
        run_id: Pipeline run ID for logs.

    Returns:
        IntentGateResult with the last intent, whether it passed review and
        how many attempts were made.
    """
    start_time = time.time()
    state = RetryState()
    original_content = context.user_content()
    working_content = context.user_content()

    def progress(message: str) -> None:
        if on_progress is not None:
            on_progress(message)

    while not state.is_terminal:
        state.attempt += 1
        from_state = "retrying" if state.attempt > 1 else "start"
        log_state_transition(logger, from_state, "attempting", run_id=run_id, attempt=state.attempt)
        progress(f"🔍 正在进行第 {state.attempt} 次意图分析...")

        state.last_intent = await analyze_intent(
            client,
            model,
            list(working_content),
            tag_stream(on_agent_stream, AgentId.INTENT.value),
            timeout=timeout,
        )

        log_state_transition(logger, "attempting", "reviewing", run_id=run_id, attempt=state.attempt)
        progress("📋 意图分析完成，正在审查...")

        state.last_verdict = await review_intent(
            client,
            model,
            state.last_intent,
            original_content,
            tag_stream(on_agent_stream, AgentId.REVIEW.value),
            timeout=timeout,
        )

        if state.last_verdict.passed:
            log_state_transition(logger, "reviewing", "passed", run_id=run_id, attempt=state.attempt)
            progress("✅ 意图审查通过")
        elif state.attempt < state.max_attempts:
            log_state_transition(logger, "reviewing", "retrying", run_id=run_id, attempt=state.attempt)
            progress(f"⚠️ 审查未通过：{state.last_verdict.feedback}\n准备重新分析...")
            working_content.append(
                {"type": "text", "text": format_feedback_block(state.last_verdict.feedback)}
            )
        else:
            log_state_transition(logger, "reviewing", "exhausted", run_id=run_id, attempt=state.attempt)
            logger.warning(
                "Intent review failed on every attempt | attempts=%d | run_id=%s",
                state.attempt,
                run_id,
            )

    log_performance_metrics(
        logger,
        operation="intent_gate",
        duration=time.time() - start_time,
        run_id=run_id,
        attempts=state.attempt,
        review_passed=state.passed,
    )
    return IntentGateResult(
        intent=state.last_intent,
        review_passed=state.passed,
        attempts=state.attempt,
    )


__all__ = ["MAX_INTENT_ATTEMPTS", "run_intent_gate"]
