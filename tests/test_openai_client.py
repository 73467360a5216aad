"""
Tests for the OpenAI-compatible chat client
Tests for provider headers, lazy initialization, streaming and usage tracking
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from note_analyzer.utils.config import OpenRouterProfile, ProviderKind, ProviderProfile
from note_analyzer.utils.errors import ConfigurationError
from note_analyzer.utils.openai_client import (
    ChatClient,
    UsageStats,
    build_default_headers,
    create_chat_client,
)


def _chunk(content):
    """Build a streamed chunk carrying one delta."""
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class _FakeStream:
    def __init__(self, chunks):
        self._chunks = list(chunks)
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._chunks:
            raise StopAsyncIteration
        return self._chunks.pop(0)


def _collect(client, model="deepseek-chat"):
    async def run():
        return [
            delta
            async for delta in client.stream_chat_completion(
                [{"role": "user", "content": "hi"}], model=model
            )
        ]

    return asyncio.run(run())


@pytest.fixture
def deepseek_profile():
    return ProviderProfile(
        kind=ProviderKind.DEEPSEEK,
        base_url="https://api.deepseek.com",
        api_key="sk-test",
        model="deepseek-chat",
    )


class TestDefaultHeaders:
    """Test provider specific headers"""

    def test_openrouter_headers(self):
        profile = OpenRouterProfile(
            base_url="https://openrouter.ai/api/v1",
            api_key="sk-or",
            model="qwen/qwen3-vl-235b-a22b-instruct",
            site_url="https://notes.example.com",
            site_name="Notes",
        )
        headers = build_default_headers(profile)
        assert headers == {"HTTP-Referer": "https://notes.example.com", "X-Title": "Notes"}

    def test_openrouter_without_site_fields(self):
        profile = OpenRouterProfile(api_key="sk-or")
        assert build_default_headers(profile) == {}

    def test_other_providers_have_no_headers(self, deepseek_profile):
        assert build_default_headers(deepseek_profile) == {}


class TestLazyInitialization:
    """Test that construction does no I/O and no validation"""

    def test_empty_key_accepted_at_construction(self):
        profile = ProviderProfile(
            kind=ProviderKind.OPENAI, base_url="https://api.openai.com/v1", api_key="", model="gpt-4o-mini"
        )
        client = create_chat_client(profile)
        assert client._client is None

    def test_empty_key_fails_on_first_request(self):
        profile = ProviderProfile(
            kind=ProviderKind.OPENAI, base_url="https://api.openai.com/v1", api_key="", model="gpt-4o-mini"
        )
        client = ChatClient(profile)
        with pytest.raises(ConfigurationError) as exc_info:
            _collect(client)
        assert exc_info.value.setting == "api_key"

    def test_client_built_once(self, deepseek_profile):
        with patch("note_analyzer.utils.openai_client.AsyncOpenAI") as mock_cls:
            client = ChatClient(deepseek_profile)
            first = client.client
            second = client.client
        assert first is second
        mock_cls.assert_called_once_with(
            api_key="sk-test",
            base_url="https://api.deepseek.com",
            default_headers=None,
            max_retries=0,
        )


class TestStreaming:
    """Test delta streaming and stats"""

    def _patched_client(self, profile, chunks):
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock(return_value=_FakeStream(chunks))
        client = ChatClient(profile)
        client._client = sdk
        return client, sdk

    def test_yields_non_empty_deltas(self, deepseek_profile):
        chunks = [
            _chunk("Hel"),
            SimpleNamespace(choices=[]),
            _chunk(""),
            _chunk(None),
            _chunk("lo"),
        ]
        client, sdk = self._patched_client(deepseek_profile, chunks)

        assert _collect(client) == ["Hel", "lo"]
        kwargs = sdk.chat.completions.create.call_args.kwargs
        assert kwargs["stream"] is True
        assert kwargs["model"] == "deepseek-chat"

    def test_stream_closed_after_consumption(self, deepseek_profile):
        client, sdk = self._patched_client(deepseek_profile, [_chunk("a"), _chunk("b")])
        stream = sdk.chat.completions.create.return_value

        _collect(client)
        assert stream.closed is True

    def test_stream_closed_when_consumer_stops_early(self, deepseek_profile):
        client, sdk = self._patched_client(deepseek_profile, [_chunk("a"), _chunk("b"), _chunk("c")])
        stream = sdk.chat.completions.create.return_value

        async def first_delta_only():
            deltas = client.stream_chat_completion([{"role": "user", "content": "hi"}], model="deepseek-chat")
            first = await deltas.__anext__()
            await deltas.aclose()
            return first

        assert asyncio.run(first_delta_only()) == "a"
        assert stream.closed is True
        assert client.stats.total_requests == 0

    def test_usage_stats_updated(self, deepseek_profile):
        client, _ = self._patched_client(deepseek_profile, [_chunk("abc"), _chunk("de")])
        _collect(client)

        stats = client.get_usage_stats()
        assert stats["total_requests"] == 1
        assert stats["completion_chars"] == 5
        assert stats["requests_by_model"] == {"deepseek-chat": 1}

        client.reset_stats()
        assert client.stats == UsageStats()

    def test_empty_messages_rejected(self, deepseek_profile):
        client = ChatClient(deepseek_profile)

        async def run():
            async for _ in client.stream_chat_completion([], model="deepseek-chat"):
                pass

        with pytest.raises(ValueError):
            asyncio.run(run())

    def test_transport_error_propagates_unchanged(self, deepseek_profile):
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock(side_effect=ConnectionError("boom"))
        client = ChatClient(deepseek_profile)
        client._client = sdk

        with pytest.raises(ConnectionError, match="boom"):
            _collect(client)
        assert client.stats.total_requests == 0
