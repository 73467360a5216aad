"""
Original-record agent.

Diagnoses what the user wrote before seeing the answer. Red ink and content
that looks like a later correction are not treated as the original attempt.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..utils.openai_client import ChatClient
from .prompts import format_original_agent_prompt
from .single_call import TokenCallback, invoke_agent
from .state import AgentId


async def analyze_original_record(
    client: ChatClient,
    model: str,
    intent: str,
    user_content: List[Dict[str, Any]],
    on_token: Optional[TokenCallback] = None,
    timeout: Optional[float] = None,
) -> str:
    """Return the original-record diagnosis for the confirmed intent."""
    return await invoke_agent(
        client,
        model,
        format_original_agent_prompt(intent),
        user_content,
        on_token,
        temperature=0.4,
        max_tokens=2048,
        timeout=timeout,
        agent_id=AgentId.ORIGINAL.value,
    )


__all__ = ["analyze_original_record"]
