"""
Fan-out/fan-in stage.

Runs the original-record and correction agents concurrently on the confirmed
intent and joins both. If either call fails the other is cancelled and the
failure propagates; no partial result is returned.
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional

from ..utils.logger import get_agent_logger, log_performance_metrics
from ..utils.openai_client import ChatClient
from .correction_agent import analyze_correction
from .original_agent import analyze_original_record
from .single_call import AgentStreamCallback, tag_stream
from .state import AgentId, AnalysisContext, ParallelAnalysis


logger = get_agent_logger("parallel_stage")


async def run_parallel_analysis(
    client: ChatClient,
    model: str,
    intent: str,
    context: AnalysisContext,
    on_agent_stream: Optional[AgentStreamCallback] = None,
    timeout: Optional[float] = None,
    run_id: Optional[str] = None,
) -> ParallelAnalysis:
    """
    Run both analysis agents concurrently and wait for both.

    Args:
        client: Chat client.
        model: Model name.
        intent: Intent text that passed review.
        context: The caller's analysis context.
        on_agent_stream: Receives ``(agent_id, partial_text)`` updates.
        timeout: Per-call timeout in seconds.
        run_id: Pipeline run ID for logs.

    Returns:
        ParallelAnalysis with both texts.
    """
    start_time = time.time()

    original_task = asyncio.ensure_future(
        analyze_original_record(
            client,
            model,
            intent,
            context.user_content(),
            tag_stream(on_agent_stream, AgentId.ORIGINAL.value),
            timeout=timeout,
        )
    )
    correction_task = asyncio.ensure_future(
        analyze_correction(
            client,
            model,
            intent,
            context.user_content(),
            tag_stream(on_agent_stream, AgentId.CORRECTION.value),
            timeout=timeout,
        )
    )
    tasks = (original_task, correction_task)

    try:
        original, correction = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.error("Parallel analysis failed | run_id=%s", run_id)
        raise

    log_performance_metrics(
        logger,
        operation="parallel_analysis",
        duration=time.time() - start_time,
        run_id=run_id,
        original_chars=len(original),
        correction_chars=len(correction),
    )
    return ParallelAnalysis(original=original, correction=correction)


__all__ = ["run_parallel_analysis"]
