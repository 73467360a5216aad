"""
Correction agent.

Reconstructs the correct reasoning for each confirmed problem, following the
user's own correction when there is one.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..utils.openai_client import ChatClient
from .prompts import format_correction_agent_prompt
from .single_call import TokenCallback, invoke_agent
from .state import AgentId


async def analyze_correction(
    client: ChatClient,
    model: str,
    intent: str,
    user_content: List[Dict[str, Any]],
    on_token: Optional[TokenCallback] = None,
    timeout: Optional[float] = None,
) -> str:
    """Return the correct solution path for the confirmed intent."""
    return await invoke_agent(
        client,
        model,
        format_correction_agent_prompt(intent),
        user_content,
        on_token,
        temperature=0.4,
        max_tokens=2048,
        timeout=timeout,
        agent_id=AgentId.CORRECTION.value,
    )


__all__ = ["analyze_correction"]
