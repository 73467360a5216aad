"""
Pytest configuration and shared fixtures for the note analyzer tests.
"""

import os
import sys
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional

import pytest
from dotenv import load_dotenv

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Load environment variables from .env file first
env_file = project_root / ".env"
if env_file.exists():
    load_dotenv(env_file)

# Keep test runs from writing log files
os.environ["NOTE_ANALYZER_FILE_LOGS"] = "false"

if not os.getenv("DEEPSEEK_API_KEY"):
    os.environ["DEEPSEEK_API_KEY"] = "test-key"


from note_analyzer.agents.state import AnalysisContext, NoteMetadata  # noqa: E402


class FakeChatClient:
    """
    Stand-in for ChatClient that streams scripted replies.

    Each call pops the next reply; a reply is either a list of deltas or an
    exception to raise before streaming starts.
    """

    def __init__(self, replies: Optional[List] = None, delay: float = 0.0):
        self.replies = list(replies or [])
        self.delay = delay
        self.calls: List[Dict] = []

    async def stream_chat_completion(
        self, messages, model, temperature=0.7, max_tokens=None
    ) -> AsyncIterator[str]:
        import asyncio

        self.calls.append({"messages": messages, "model": model, "temperature": temperature})
        reply = self.replies.pop(0) if self.replies else ["ok"]
        if isinstance(reply, BaseException):
            raise reply
        for delta in reply:
            if self.delay:
                await asyncio.sleep(self.delay)
            yield delta


@pytest.fixture
def sample_metadata() -> NoteMetadata:
    """Metadata for a note in its second review stage."""
    return NoteMetadata(
        category_name="数学",
        curve_name="艾宾浩斯",
        curve_intervals=(1, 2, 4, 7, 15),
        stage=2,
        next_review_date=1_700_000_000_000,
        created_at=1_699_000_000_000,
    )


@pytest.fixture
def sample_context(sample_metadata) -> AnalysisContext:
    """A small wrong-answer note with one image."""
    return AnalysisContext(
        title="二次函数错题",
        content="题目：求 y=x^2-4x+3 的最小值。我的答案：3。正确答案：-1。",
        metadata=sample_metadata,
        images=("data:image/png;base64,AAAA",),
    )


@pytest.fixture
def fake_client_factory():
    """Build FakeChatClient instances inside a test."""
    return FakeChatClient
