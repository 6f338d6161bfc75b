"""AI provider settings read from the environment."""

import os
from dataclasses import dataclass


@dataclass
class ProviderConfig:
    """Connection settings for an OpenAI-compatible chat endpoint."""

    name: str
    api_key_env: str
    model: str
    base_url: str | None = None
    max_tokens: int | None = None
    temperature: float = 0.7


PROVIDERS = {
    "openai": ProviderConfig(
        name="openai",
        api_key_env="OPENAI_API_KEY",
        model="gpt-4-turbo-preview",
    ),
    "moonshot": ProviderConfig(
        name="moonshot",
        api_key_env="MOONSHOT_API_KEY",
        model="moonshot-v1-8k",
        base_url="https://api.moonshot.cn/v1",
        max_tokens=2000,
        temperature=0.6,
    ),
    "gemini": ProviderConfig(
        name="gemini",
        api_key_env="GEMINI_API_KEY",
        model="gemini-1.5-pro-latest",
        base_url="https://generativelanguage.googleapis.com/v1beta/openai/",
    ),
}

DEFAULT_PROVIDER = "moonshot"

# Seconds before an outline stream is abandoned
STREAM_TIMEOUT = 120.0


def get_provider_config(name: str) -> ProviderConfig:
    """
    Look up a provider, applying the MOGE_MODEL override.

    Raises:
        ValueError: Unknown provider name
    """
    try:
        base = PROVIDERS[name]
    except KeyError:
        raise ValueError(
            f"Unsupported AI provider: {name} (choose from {', '.join(PROVIDERS)})"
        ) from None

    model = os.environ.get("MOGE_MODEL") or base.model
    return ProviderConfig(
        name=base.name,
        api_key_env=base.api_key_env,
        model=model,
        base_url=base.base_url,
        max_tokens=base.max_tokens,
        temperature=base.temperature,
    )


def get_api_key(config: ProviderConfig) -> str | None:
    """Read the provider's API key from the environment."""
    return os.environ.get(config.api_key_env) or None
