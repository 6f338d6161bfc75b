"""Streaming outline generation against OpenAI-compatible chat models."""

import json
import logging
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

from openai import APIConnectionError, APITimeoutError, OpenAI, OpenAIError, RateLimitError

from ..config import STREAM_TIMEOUT, ProviderConfig, get_api_key, get_provider_config
from ..outline import ParsedOutline, parse_outline_markdown, validate_outline
from ..sensitive import SensitiveFilter
from .prompts import SYSTEM_PROMPT, USER_PROMPT

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "您的请求过于频繁，已超出当前使用额度。请检查您的套餐详情或稍后再试。"
UNKNOWN_ERROR_MESSAGE = "生成大纲时发生未知错误，请稍后重试。"
SENSITIVE_INPUT_MESSAGE = "输入内容不符合法律法规，请修改后重试"


class GenerationError(Exception):
    """Raised when outline generation fails."""


class SensitiveContentError(GenerationError):
    """Raised when a generation request contains sensitive words."""


@dataclass
class OutlineRequest:
    """What to generate an outline for."""

    name: str
    type: str
    era: str
    tags: list[str] = field(default_factory=list)
    remark: str = ""
    conflict: str = ""
    volumes: int = 3
    chapters_per_volume: int = 10
    scenes_per_chapter: int = 3

    def filter_text(self) -> str:
        """User-entered fields joined for sensitive-word checks."""
        return " ".join(
            [self.name, self.type, self.era, self.conflict, " ".join(self.tags), self.remark]
        )

    def to_prompt(self) -> str:
        return USER_PROMPT.format(
            name=self.name,
            type=self.type,
            era=self.era,
            conflict=self.conflict or "无",
            tags=", ".join(self.tags) or "无",
            remark=self.remark or "无",
            volumes=self.volumes,
            chapters_per_volume=self.chapters_per_volume,
            scenes_per_chapter=self.scenes_per_chapter,
        )


@dataclass
class StreamEvent:
    """One event of an outline stream."""

    type: str  # "content" | "complete" | "error"
    data: str | None = None
    code: str | None = None

    def payload(self) -> dict[str, Any]:
        if self.type == "complete":
            return {"type": "complete"}
        if self.type == "error":
            error = {"error": {"message": self.data, "code": self.code}}
            return {"type": "content", "data": json.dumps(error, ensure_ascii=False)}
        return {"type": "content", "data": self.data}

    def to_sse(self) -> str:
        """Render as a server-sent events frame."""
        return f"data: {json.dumps(self.payload(), ensure_ascii=False)}\n\n"


@dataclass
class GeneratedOutline:
    """A finished generation with its parsed structure."""

    markdown: str
    structure: ParsedOutline
    valid: bool
    provider: str
    model: str


def _get_client(config: ProviderConfig) -> OpenAI:
    """Get OpenAI client for a provider, checking for API key."""
    api_key = get_api_key(config)
    if not api_key:
        raise GenerationError(
            f"{config.api_key_env} environment variable not set. "
            f"Set it with: export {config.api_key_env}='sk-...'"
        )
    return OpenAI(api_key=api_key, base_url=config.base_url)


def _open_stream(
    client: OpenAI,
    config: ProviderConfig,
    messages: list[dict[str, str]],
    timeout: float,
    max_retries: int = 3,
):
    """Open a streaming completion, retrying connection failures with backoff."""
    kwargs: dict[str, Any] = {
        "model": config.model,
        "messages": messages,
        "temperature": config.temperature,
        "stream": True,
        "timeout": timeout,
    }
    if config.max_tokens is not None:
        kwargs["max_tokens"] = config.max_tokens

    for attempt in range(max_retries):
        try:
            return client.chat.completions.create(**kwargs)
        except APIConnectionError:
            if attempt == max_retries - 1:
                raise
            wait_time = 2 ** (attempt + 1)
            logger.warning("Connection to %s failed, retrying in %ds", config.name, wait_time)
            time.sleep(wait_time)


def build_messages(request: OutlineRequest) -> list[dict[str, str]]:
    """Chat messages for an outline request."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": request.to_prompt()},
    ]


def check_request(request: OutlineRequest, sensitive_filter: SensitiveFilter | None = None) -> None:
    """
    Reject requests containing sensitive words.

    Raises:
        SensitiveContentError: A sensitive word was found
    """
    sensitive_filter = sensitive_filter or SensitiveFilter()
    if sensitive_filter.check(request.filter_text()):
        raise SensitiveContentError(SENSITIVE_INPUT_MESSAGE)


def stream_outline(
    request: OutlineRequest,
    provider: str = "moonshot",
    timeout: float = STREAM_TIMEOUT,
    sensitive_filter: SensitiveFilter | None = None,
) -> Iterator[StreamEvent]:
    """
    Stream a Markdown outline from the model.

    Yields a content event per text delta, then a complete event. API
    failures are reported as a single error event rather than raised. When
    the timeout elapses the stream is dropped without a complete event.

    Args:
        request: Outline request
        provider: Provider name (openai, moonshot, gemini)
        timeout: Seconds before the stream is abandoned
        sensitive_filter: Filter used to vet the request

    Raises:
        SensitiveContentError: Request contains sensitive words
        GenerationError: API key missing
        ValueError: Unknown provider
    """
    check_request(request, sensitive_filter)
    config = get_provider_config(provider)
    client = _get_client(config)

    logger.debug("Stream start: %s via %s/%s", request.name, config.name, config.model)
    started = time.monotonic()
    chunk_count = 0

    try:
        stream = _open_stream(client, config, build_messages(request), timeout)
        try:
            for chunk in stream:
                if time.monotonic() - started > timeout:
                    logger.warning("Stream aborted for %s: timeout after %ss", request.name, timeout)
                    return

                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    chunk_count += 1
                    yield StreamEvent(type="content", data=delta)
        finally:
            stream.close()

        logger.debug("Stream complete: %s, %d chunks", request.name, chunk_count)
        yield StreamEvent(type="complete")

    except APITimeoutError:
        logger.warning("Stream aborted for %s: request timed out", request.name)
    except RateLimitError:
        logger.error("Stream rate limited for %s", request.name)
        yield StreamEvent(type="error", data=RATE_LIMIT_MESSAGE, code="RATE_LIMIT_EXCEEDED")
    except OpenAIError:
        logger.exception("Stream failed for %s", request.name)
        yield StreamEvent(type="error", data=UNKNOWN_ERROR_MESSAGE, code="UNKNOWN_ERROR")
    finally:
        logger.debug("Stream end: %s", request.name)


def generate_outline(
    request: OutlineRequest,
    provider: str = "moonshot",
    timeout: float = STREAM_TIMEOUT,
    on_chunk: Callable[[str], None] | None = None,
    sensitive_filter: SensitiveFilter | None = None,
) -> GeneratedOutline:
    """
    Generate an outline and parse it into volumes, chapters and scenes.

    Args:
        request: Outline request
        provider: Provider name
        timeout: Seconds before the stream is abandoned
        on_chunk: Called with each text delta as it arrives
        sensitive_filter: Filter used to vet the request

    Returns:
        GeneratedOutline with the raw Markdown and parsed structure

    Raises:
        GenerationError: The stream reported an error or did not complete
    """
    parts: list[str] = []
    completed = False

    for event in stream_outline(request, provider, timeout, sensitive_filter):
        if event.type == "error":
            raise GenerationError(f"{event.data} ({event.code})")
        if event.type == "complete":
            completed = True
        elif event.data:
            parts.append(event.data)
            if on_chunk is not None:
                on_chunk(event.data)

    if not completed:
        raise GenerationError(f"Outline generation did not finish within {timeout:.0f}s")

    markdown = "".join(parts)
    structure = parse_outline_markdown(markdown)
    config = get_provider_config(provider)
    return GeneratedOutline(
        markdown=markdown,
        structure=structure,
        valid=validate_outline(structure),
        provider=config.name,
        model=config.model,
    )
