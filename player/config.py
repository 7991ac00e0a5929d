"""Environment-driven settings for the player."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_BASE_URL = "http://127.0.0.1:8000"


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    value = _env_float(name, float(default))
    return int(value) if value is not None else default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class PlayerConfig:
    """Player settings.

    Attributes:
        base_url: Root URL of the story service.
        http_timeout: Timeout in seconds applied to every HTTP call.
        image_cache_size: Maximum number of cached illustrations.
        image_cache_ttl: Seconds before a cached illustration expires (None = never).
        illustrate_turns: Whether finalized turns request an illustration.
        scene_excerpt: Narrative characters used to derive a scene prompt.
    """

    base_url: str = DEFAULT_BASE_URL
    http_timeout: float = 60.0
    image_cache_size: int = 256
    image_cache_ttl: Optional[float] = None
    illustrate_turns: bool = True
    scene_excerpt: int = 500

    @classmethod
    def from_env(cls) -> "PlayerConfig":
        """Read STORYLOOM_* variables, falling back to defaults."""
        return cls(
            base_url=(os.getenv("STORYLOOM_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
            http_timeout=_env_float("STORYLOOM_HTTP_TIMEOUT", 60.0) or 60.0,
            image_cache_size=_env_int("STORYLOOM_IMAGE_CACHE_SIZE", 256),
            image_cache_ttl=_env_float("STORYLOOM_IMAGE_CACHE_TTL", None),
            illustrate_turns=_env_bool("STORYLOOM_ILLUSTRATE_TURNS", True),
            scene_excerpt=_env_int("STORYLOOM_SCENE_EXCERPT", 500),
        )
