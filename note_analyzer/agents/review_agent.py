"""
Review agent for the intent analysis.

This module:
  - Asks the model to audit an intent analysis against the original note
  - Classifies the reply with ``parse_review_verdict``, the only place where
    agent free text decides control flow

The reply's first line must be ``PASS`` or ``FAIL``. Anything that does not
start with the literal ``PASS`` (after trimming whitespace) is a failure.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..utils.logger import get_agent_logger
from ..utils.openai_client import ChatClient
from .prompts import REVIEW_AGENT_PROMPT, REVIEW_INTENT_HEADER, REVIEW_ORIGINAL_HEADER
from .single_call import TokenCallback, invoke_agent
from .state import AgentId, ReviewVerdict


logger = get_agent_logger("review_agent")

PASS_TOKEN = "PASS"


def parse_review_verdict(review_text: str) -> ReviewVerdict:
    """
    Classify a review reply.

    Args:
        review_text: Raw text returned by the review agent.

    Returns:
        ReviewVerdict with ``passed`` set when the trimmed text starts with
        ``PASS`` (case-sensitive), and ``feedback`` holding every line after
        the first, trimmed.
    """
    passed = review_text.strip().startswith(PASS_TOKEN)
    feedback = "\n".join(review_text.split("\n")[1:]).strip()
    return ReviewVerdict(passed=passed, feedback=feedback)


def build_review_content(
    original_content: List[Dict[str, Any]], intent: str
) -> List[Dict[str, Any]]:
    """
    Build the review agent's user message.

    Args:
        original_content: The note's content blocks, without any retry feedback.
        intent: Intent analysis under review.

    Returns:
        New list: header, original blocks, intent block.
    """
    return [
        {"type": "text", "text": REVIEW_ORIGINAL_HEADER},
        *original_content,
        {"type": "text", "text": REVIEW_INTENT_HEADER.format(intent=intent)},
    ]


async def review_intent(
    client: ChatClient,
    model: str,
    intent: str,
    original_content: List[Dict[str, Any]],
    on_token: Optional[TokenCallback] = None,
    timeout: Optional[float] = None,
) -> ReviewVerdict:
    """
    Audit an intent analysis and return the verdict.

    Args:
        client: Chat client.
        model: Model name.
        intent: Intent analysis text to review.
        original_content: The note's unmodified content blocks.
        on_token: Streaming callback receiving the accumulated text.
        timeout: Per-call timeout in seconds.

    Returns:
        ReviewVerdict parsed from the reply.
    """
    review_text = await invoke_agent(
        client,
        model,
        REVIEW_AGENT_PROMPT,
        build_review_content(original_content, intent),
        on_token,
        temperature=0.2,
        max_tokens=1024,
        timeout=timeout,
        agent_id=AgentId.REVIEW.value,
    )

    verdict = parse_review_verdict(review_text)
    logger.info(
        "Review verdict | passed=%s | feedback_chars=%d",
        verdict.passed,
        len(verdict.feedback),
    )
    return verdict


__all__ = ["PASS_TOKEN", "parse_review_verdict", "build_review_content", "review_intent"]
