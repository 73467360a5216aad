"""
OpenAI-compatible chat client.

Builds a streaming chat-completion client for a provider profile, attaches
provider specific headers, and tracks basic usage statistics.
"""

import time
import logging
from typing import Any, AsyncIterator, Dict, List, Optional
from dataclasses import dataclass, field

from openai import AsyncOpenAI

from .config import ProviderKind, ProviderProfile, OpenRouterProfile, validate_profile

logger = logging.getLogger(__name__)


@dataclass
class UsageStats:
    """Track API usage statistics"""
    total_requests: int = 0
    completion_chars: int = 0
    total_duration: float = 0.0
    requests_by_model: Dict[str, int] = field(default_factory=dict)
    chars_by_model: Dict[str, int] = field(default_factory=dict)


def build_default_headers(profile: ProviderProfile) -> Dict[str, str]:
    """
    Headers sent with every request for this provider.

    OpenRouter accepts optional attribution headers (referrer URL and display
    name); the other providers take none.
    """
    headers: Dict[str, str] = {}
    if profile.kind is ProviderKind.OPENROUTER and isinstance(profile, OpenRouterProfile):
        if profile.site_url:
            headers["HTTP-Referer"] = profile.site_url
        if profile.site_name:
            headers["X-Title"] = profile.site_name
    return headers


class ChatClient:
    """
    Streaming chat-completion client bound to one provider profile.

    Creating a ChatClient performs no I/O and no validation; the profile is
    checked when the first request is made, and the underlying AsyncOpenAI
    client is built at the same time.
    """

    def __init__(self, profile: ProviderProfile, max_retries: int = 0):
        """
        Args:
            profile: Provider profile (endpoint, credential, headers)
            max_retries: Retries done by the OpenAI SDK itself before a request
                is considered failed (default: 0, errors reach the caller)
        """
        self.profile = profile
        self.max_retries = max_retries
        self.default_headers = build_default_headers(profile)
        self._client: Optional[AsyncOpenAI] = None
        self.stats = UsageStats()

    @property
    def client(self) -> AsyncOpenAI:
        """Lazy initialization of the AsyncOpenAI client"""
        if self._client is None:
            validate_profile(self.profile)
            self._client = AsyncOpenAI(
                api_key=self.profile.api_key,
                base_url=self.profile.base_url,
                default_headers=self.default_headers or None,
                max_retries=self.max_retries,
            )
            logger.info(
                "Chat client initialized | provider=%s | base_url=%s",
                self.profile.kind.value,
                self.profile.base_url,
            )
        return self._client

    async def stream_chat_completion(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """
        Create a streaming chat completion and yield its text deltas.

        Empty deltas and chunks without choices are skipped.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model to use
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate

        Raises:
            ConfigurationError: If the profile has no API key or base URL
            openai.APIError: If the request or the stream fails
        """
        if not messages or not isinstance(messages, list):
            raise ValueError("Messages must be a non-empty list")

        start_time = time.time()
        chars = 0
        stream = await self.client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            stream=True,
        )
        async with stream:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content or ""
                if delta:
                    chars += len(delta)
                    yield delta

        self._update_stats(model, chars, time.time() - start_time)

    def _update_stats(self, model: str, chars: int, duration: float) -> None:
        """Update usage statistics"""
        self.stats.total_requests += 1
        self.stats.completion_chars += chars
        self.stats.total_duration += duration
        self.stats.requests_by_model[model] = self.stats.requests_by_model.get(model, 0) + 1
        self.stats.chars_by_model[model] = self.stats.chars_by_model.get(model, 0) + chars

    def get_usage_stats(self) -> Dict[str, Any]:
        """
        Get current usage statistics

        Returns:
            Dictionary with usage statistics
        """
        return {
            "total_requests": self.stats.total_requests,
            "completion_chars": self.stats.completion_chars,
            "total_duration": self.stats.total_duration,
            "requests_by_model": dict(self.stats.requests_by_model),
            "chars_by_model": dict(self.stats.chars_by_model),
        }

    def reset_stats(self) -> None:
        """Reset usage statistics"""
        self.stats = UsageStats()
        logger.info("Usage statistics reset")


def create_chat_client(profile: ProviderProfile) -> ChatClient:
    """Build a ChatClient for a provider profile (no network I/O)."""
    return ChatClient(profile)


__all__ = ["UsageStats", "ChatClient", "build_default_headers", "create_chat_client"]
