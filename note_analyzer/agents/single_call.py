"""
Single-call streaming agent.

One system message, one user message, one streamed response. Every non-empty
delta produces a new snapshot of the full text, which is handed to the
caller's ``on_token`` callback; the final snapshot is returned.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional, Union

from ..utils.logger import get_agent_logger, log_api_call, log_error_with_context
from ..utils.openai_client import ChatClient


logger = get_agent_logger("single_call")

TokenCallback = Callable[[str], None]
ProgressCallback = Callable[[str], None]
AgentStreamCallback = Callable[[str, str], None]
UserContent = Union[str, List[Dict[str, Any]]]


def accumulate(snapshot: str, delta: str) -> str:
    """Return the next snapshot after receiving ``delta``."""
    return snapshot + delta


def tag_stream(on_agent_stream: Optional[AgentStreamCallback], agent_id: str) -> TokenCallback:
    """Adapt a per-pipeline stream hook into a per-agent token callback."""

    def forward(partial_text: str) -> None:
        if on_agent_stream is not None:
            on_agent_stream(agent_id, partial_text)

    return forward


def build_messages(system_prompt: str, user_content: UserContent) -> List[Dict[str, Any]]:
    """Build the two-message request body (system + user)."""
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_content},
    ]


async def _consume_stream(
    client: ChatClient,
    messages: List[Dict[str, Any]],
    model: str,
    temperature: float,
    max_tokens: Optional[int],
    on_token: Optional[TokenCallback],
) -> str:
    snapshot = ""
    async for delta in client.stream_chat_completion(
        messages=messages,
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
    ):
        if not delta:
            continue
        snapshot = accumulate(snapshot, delta)
        if on_token is not None:
            on_token(snapshot)
    return snapshot


async def invoke_agent(
    client: ChatClient,
    model: str,
    system_prompt: str,
    user_content: UserContent,
    on_token: Optional[TokenCallback] = None,
    *,
    temperature: float = 0.7,
    max_tokens: Optional[int] = None,
    timeout: Optional[float] = None,
    agent_id: str = "agent",
) -> str:
    """
    Run one streamed chat completion and return the accumulated text.

    Args:
        client: Chat client for the configured provider.
        model: Model name.
        system_prompt: System message content.
        user_content: User message content (plain text or a list of
            ``text`` / ``image_url`` blocks).
        on_token: Called with the full accumulated text after every
            non-empty delta.
        temperature: Sampling temperature.
        max_tokens: Maximum tokens to generate.
        timeout: Seconds allowed for the whole call (None disables).
        agent_id: Name used in logs.

    Returns:
        The final accumulated text.

    Raises:
        ConfigurationError: If the client's profile is unusable.
        openai.APIError: On transport, auth or rate-limit failures.
        asyncio.TimeoutError: If the call exceeds ``timeout``.
    """
    start_time = time.time()
    messages = build_messages(system_prompt, user_content)
    logger.debug("Invoking agent | agent=%s | model=%s", agent_id, model)

    try:
        text = await asyncio.wait_for(
            _consume_stream(client, messages, model, temperature, max_tokens, on_token),
            timeout=timeout,
        )
    except asyncio.CancelledError:
        logger.info("Agent call cancelled | agent=%s", agent_id)
        raise
    except Exception as exc:
        log_error_with_context(
            logger, exc, f"{agent_id}_agent_call", model=model, duration=f"{time.time() - start_time:.2f}s"
        )
        raise

    log_api_call(
        logger,
        operation=agent_id,
        model=model,
        output_chars=len(text),
        duration=time.time() - start_time,
    )
    return text


__all__ = [
    "TokenCallback",
    "ProgressCallback",
    "AgentStreamCallback",
    "UserContent",
    "accumulate",
    "tag_stream",
    "build_messages",
    "invoke_agent",
]
