"""
Summary agent.

Synthesises the intent, original-record and correction analyses together with
the note's review schedule into one Markdown report.
"""

from __future__ import annotations

from typing import Optional

from ..utils.openai_client import ChatClient
from .prompts import SUMMARY_USER_MESSAGE, format_summary_agent_prompt
from .single_call import TokenCallback, invoke_agent
from .state import AgentId, AnalysisContext


async def generate_summary(
    client: ChatClient,
    model: str,
    context: AnalysisContext,
    intent: str,
    original: str,
    correction: str,
    on_token: Optional[TokenCallback] = None,
    timeout: Optional[float] = None,
) -> str:
    """
    Generate the final report.

    Args:
        client: Chat client.
        model: Model name.
        context: Analysis context (title and metadata are used).
        intent: Confirmed intent analysis.
        original: Original-record analysis.
        correction: Correction analysis.
        on_token: Streaming callback receiving the accumulated text.
        timeout: Per-call timeout in seconds.

    Returns:
        Summary report text.
    """
    system_prompt = format_summary_agent_prompt(
        title=context.title,
        metadata=context.metadata,
        intent=intent,
        original=original,
        correction=correction,
    )
    return await invoke_agent(
        client,
        model,
        system_prompt,
        SUMMARY_USER_MESSAGE,
        on_token,
        temperature=0.6,
        max_tokens=4096,
        timeout=timeout,
        agent_id=AgentId.SUMMARY.value,
    )


__all__ = ["generate_summary"]
