"""
Intent agent.

Extracts the problems the user actually got wrong (or marked as uncertain)
from the note text and photos. The output is free text; whether it can be
trusted is decided by the review agent.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..utils.openai_client import ChatClient
from .prompts import INTENT_AGENT_PROMPT
from .single_call import TokenCallback, invoke_agent
from .state import AgentId


async def analyze_intent(
    client: ChatClient,
    model: str,
    user_content: List[Dict[str, Any]],
    on_token: Optional[TokenCallback] = None,
    timeout: Optional[float] = None,
) -> str:
    """
    Run the intent agent over the (possibly feedback-augmented) note content.

    Args:
        client: Chat client.
        model: Model name.
        user_content: Multi-part user message for the note.
        on_token: Streaming callback receiving the accumulated text.
        timeout: Per-call timeout in seconds.

    Returns:
        Intent analysis text.
    """
    return await invoke_agent(
        client,
        model,
        INTENT_AGENT_PROMPT,
        user_content,
        on_token,
        temperature=0.3,
        max_tokens=1024,
        timeout=timeout,
        agent_id=AgentId.INTENT.value,
    )


__all__ = ["analyze_intent"]
