"""Caching of generated outlines."""

import hashlib
import json
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from .generate import GeneratedOutline, OutlineRequest


@dataclass
class CachedOutline:
    """Cached outline generation."""

    name: str
    markdown: str
    structure: dict[str, Any]
    provider: str
    model: str
    cached_at: str


def get_cache_key(request: OutlineRequest, provider: str, model: str) -> str:
    """Generate cache key from the request fields, provider and model."""
    payload = json.dumps(
        {"request": asdict(request), "provider": provider, "model": model},
        sort_keys=True,
        ensure_ascii=False,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def get_cache_dir() -> Path:
    """Get the cache directory path."""
    cache_dir = Path.home() / ".cache" / "moge"
    cache_dir.mkdir(parents=True, exist_ok=True)
    return cache_dir


def _get_cache_path(cache_key: str) -> Path:
    """Get path to cache file."""
    return get_cache_dir() / f"{cache_key}_outline.json"


def load_outline(cache_key: str) -> CachedOutline | None:
    """Load cached outline if it exists."""
    cache_file = _get_cache_path(cache_key)
    if not cache_file.exists():
        return None
    try:
        return CachedOutline(**json.loads(cache_file.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, TypeError):
        return None


def save_outline(cache_key: str, outline: CachedOutline) -> None:
    """Save outline to cache."""
    _get_cache_path(cache_key).write_text(
        json.dumps(asdict(outline), indent=2, ensure_ascii=False), encoding="utf-8"
    )


def create_outline_cache(
    request: OutlineRequest,
    generated: GeneratedOutline,
) -> tuple[str, CachedOutline]:
    """
    Create and save outline cache entry.

    Returns:
        Tuple of (cache_key, cached_outline)
    """
    cache_key = get_cache_key(request, generated.provider, generated.model)
    outline = CachedOutline(
        name=request.name,
        markdown=generated.markdown,
        structure=generated.structure.model_dump(by_alias=True),
        provider=generated.provider,
        model=generated.model,
        cached_at=datetime.now().isoformat(),
    )
    save_outline(cache_key, outline)
    return cache_key, outline


def clear_cache(cache_key: str | None = None) -> int:
    """
    Clear cache entries.

    Args:
        cache_key: If provided, clear only this entry.
                   If None, clear all cache.

    Returns:
        Number of files deleted
    """
    if cache_key:
        cache_file = _get_cache_path(cache_key)
        if cache_file.exists():
            cache_file.unlink()
            return 1
        return 0

    count = 0
    for cache_file in get_cache_dir().glob("*.json"):
        cache_file.unlink()
        count += 1
    return count


def list_cached() -> list[dict[str, Any]]:
    """List all cached entries."""
    entries = []

    for cache_file in sorted(get_cache_dir().glob("*_outline.json")):
        try:
            data = json.loads(cache_file.read_text(encoding="utf-8"))
            structure = data.get("structure", {})
            entries.append(
                {
                    "cache_key": cache_file.stem.replace("_outline", ""),
                    "name": data.get("name", "Unknown"),
                    "provider": data.get("provider", ""),
                    "model": data.get("model", ""),
                    "cached_at": data.get("cached_at", ""),
                    "volume_count": len(structure.get("volumes", [])),
                }
            )
        except json.JSONDecodeError:
            pass

    return entries


def get_cache_stats() -> dict[str, Any]:
    """Get cache statistics."""
    cache_dir = get_cache_dir()
    outline_files = list(cache_dir.glob("*_outline.json"))
    total_size = sum(f.stat().st_size for f in cache_dir.glob("*.json"))

    return {
        "cache_dir": str(cache_dir),
        "outline_count": len(outline_files),
        "total_size_kb": total_size / 1024,
    }
