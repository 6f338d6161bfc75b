"""AI outline generation."""

from .stream import (
    GeneratedOutline,
    GenerationError,
    OutlineRequest,
    SensitiveContentError,
    StreamEvent,
    build_messages,
    check_request,
    generate_outline,
    stream_outline,
)

__all__ = [
    "GeneratedOutline",
    "GenerationError",
    "OutlineRequest",
    "SensitiveContentError",
    "StreamEvent",
    "build_messages",
    "check_request",
    "generate_outline",
    "stream_outline",
]
