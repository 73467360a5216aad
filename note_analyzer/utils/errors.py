"""
Custom exceptions for the note analyzer.

Transport failures (network, auth, rate limiting, timeouts) are not wrapped
here; they propagate with their original ``openai`` / ``asyncio`` types.
"""

from typing import Optional


class NoteAnalyzerError(Exception):
    """Base class for errors raised by the note analyzer itself."""


class ConfigurationError(NoteAnalyzerError):
    """Raised when the AI provider configuration cannot be used for a request."""

    def __init__(self, setting: str, message: Optional[str] = None):
        self.setting = setting
        self.message = message or f"Missing or invalid setting: {setting}"
        super().__init__(self.message)


__all__ = ["NoteAnalyzerError", "ConfigurationError"]
