"""
AI provider configuration.

Provider profiles are a tagged variant over ``ProviderKind``: every kind has
its own typed record, and only the OpenRouter record carries the attribution
fields. Values come from the environment (``.env`` is loaded on import).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigurationError

load_dotenv()


DEFAULT_TIMEOUT = 120.0


class ProviderKind(str, Enum):
    """Supported OpenAI-compatible providers"""

    DEEPSEEK = "deepseek"
    OPENAI = "openai"
    OPENROUTER = "openrouter"
    DASHSCOPE = "dashscope"


@dataclass(frozen=True)
class ProviderProfile:
    """Connection settings for one provider."""

    kind: ProviderKind
    base_url: str
    api_key: str
    model: str


@dataclass(frozen=True)
class OpenRouterProfile(ProviderProfile):
    """OpenRouter settings, including the optional attribution headers."""

    kind: ProviderKind = ProviderKind.OPENROUTER
    base_url: str = "https://openrouter.ai/api/v1"
    api_key: str = ""
    model: str = "qwen/qwen3-vl-235b-a22b-instruct"
    site_url: Optional[str] = None
    site_name: Optional[str] = None


# (base_url, model) used when nothing else is configured
PROVIDER_DEFAULTS: Dict[ProviderKind, tuple] = {
    ProviderKind.DEEPSEEK: ("https://api.deepseek.com", "deepseek-chat"),
    ProviderKind.OPENAI: ("https://api.openai.com/v1", "gpt-4o-mini"),
    ProviderKind.OPENROUTER: ("https://openrouter.ai/api/v1", "qwen/qwen3-vl-235b-a22b-instruct"),
    ProviderKind.DASHSCOPE: ("https://dashscope.aliyuncs.com/compatible-mode/v1", "qwen3-vl-plus"),
}


@dataclass(frozen=True)
class AnalysisSettings:
    """Top-level switches for the analysis feature."""

    enabled: bool = True
    provider: ProviderKind = ProviderKind.DEEPSEEK
    timeout: Optional[float] = DEFAULT_TIMEOUT


def parse_provider(value: str) -> ProviderKind:
    """
    Convert a provider name into a ProviderKind.

    Raises:
        ConfigurationError: If the provider is not supported.
    """
    try:
        return ProviderKind(value.strip().lower())
    except ValueError:
        supported = ", ".join(kind.value for kind in ProviderKind)
        raise ConfigurationError(
            "provider", f"Unsupported AI provider '{value}'. Supported: {supported}"
        ) from None


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def load_settings() -> AnalysisSettings:
    """Read the feature switches from the environment."""
    timeout_raw = _env("NOTE_AI_TIMEOUT", str(DEFAULT_TIMEOUT))
    try:
        timeout: Optional[float] = float(timeout_raw)
    except ValueError:
        raise ConfigurationError(
            "NOTE_AI_TIMEOUT", f"NOTE_AI_TIMEOUT must be a number of seconds, got '{timeout_raw}'"
        ) from None
    if timeout <= 0:
        timeout = None

    return AnalysisSettings(
        enabled=_env("NOTE_AI_ENABLED", "true").lower() not in ("0", "false", "no", "off"),
        provider=parse_provider(_env("NOTE_AI_PROVIDER", ProviderKind.DEEPSEEK.value)),
        timeout=timeout,
    )


def load_provider_profile(kind: Optional[ProviderKind] = None) -> ProviderProfile:
    """
    Build the profile for a provider from environment variables.

    Reads ``<KIND>_API_KEY``, ``<KIND>_BASE_URL`` and ``<KIND>_MODEL``; the
    OpenRouter profile also reads ``OPENROUTER_SITE_URL`` and
    ``OPENROUTER_SITE_NAME``. No validation happens here, an empty key is
    reported when the first request is made.

    Args:
        kind: Provider to load (defaults to NOTE_AI_PROVIDER)

    Returns:
        ProviderProfile (OpenRouterProfile for OpenRouter)
    """
    if kind is None:
        kind = load_settings().provider

    prefix = kind.value.upper()
    default_url, default_model = PROVIDER_DEFAULTS[kind]
    base_url = _env(f"{prefix}_BASE_URL") or default_url
    api_key = _env(f"{prefix}_API_KEY")
    model = _env(f"{prefix}_MODEL") or default_model

    if kind is ProviderKind.OPENROUTER:
        return OpenRouterProfile(
            base_url=base_url,
            api_key=api_key,
            model=model,
            site_url=_env("OPENROUTER_SITE_URL") or None,
            site_name=_env("OPENROUTER_SITE_NAME") or None,
        )
    return ProviderProfile(kind=kind, base_url=base_url, api_key=api_key, model=model)


def merge_remote_key(profile: ProviderProfile, record: Optional[Mapping[str, Any]]) -> ProviderProfile:
    """
    Apply a key record fetched from a remote key store.

    Non-empty remote ``api_key`` / ``base_url`` (and ``site_url`` /
    ``site_name`` for OpenRouter) replace the local values. The locally chosen
    model is always kept.

    Args:
        profile: Current local profile
        record: Remote record, or None when the store has nothing for this provider

    Returns:
        Updated profile (the input profile when record is empty)
    """
    if not record:
        return profile

    updates: Dict[str, Any] = {
        "api_key": record.get("api_key") or profile.api_key,
        "base_url": record.get("base_url") or profile.base_url,
    }
    if isinstance(profile, OpenRouterProfile):
        updates["site_url"] = record.get("site_url") or profile.site_url
        updates["site_name"] = record.get("site_name") or profile.site_name

    return replace(profile, **updates)


def validate_profile(profile: ProviderProfile) -> None:
    """
    Check that a profile can be used for a request.

    Raises:
        ConfigurationError: If the API key or base URL is missing.
    """
    if not profile.api_key or not profile.api_key.strip():
        raise ConfigurationError(
            "api_key",
            f"API key for provider '{profile.kind.value}' is not configured. "
            f"Set {profile.kind.value.upper()}_API_KEY or check your API key in settings.",
        )
    if not profile.base_url or not profile.base_url.strip():
        raise ConfigurationError(
            "base_url",
            f"API URL for provider '{profile.kind.value}' is not configured. "
            f"Set {profile.kind.value.upper()}_BASE_URL.",
        )


__all__ = [
    "DEFAULT_TIMEOUT",
    "ProviderKind",
    "ProviderProfile",
    "OpenRouterProfile",
    "PROVIDER_DEFAULTS",
    "AnalysisSettings",
    "parse_provider",
    "load_settings",
    "load_provider_profile",
    "merge_remote_key",
    "validate_profile",
]
