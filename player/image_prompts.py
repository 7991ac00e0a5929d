"""Prompt builders for turn illustrations and cover art.

The prompt text doubles as the cache key: identical genre, excerpt and
color always produce the same string.
"""

from __future__ import annotations

from typing import Optional

GENRE_STYLES = {
    "horror": "dark, ominous, atmospheric, moody lighting, shadows",
    "mystery": "noir, dramatic lighting, mysterious atmosphere, intrigue",
    "comedy": "bright, colorful, whimsical, playful, vibrant",
    "adventure": "epic, cinematic, grand scale, dramatic",
    "sci-fi": "futuristic, technological, neon, cyberpunk aesthetic",
    "fantasy": "magical, ethereal, mystical, enchanted",
}
DEFAULT_STYLE = "cinematic, dramatic"

SCENE_EXCERPT_LENGTH = 500
COVER_EXCERPT_LENGTH = 200


def style_for_genre(genre: Optional[str]) -> str:
    """Return the visual style descriptor for a genre."""
    return GENRE_STYLES.get((genre or "").strip().lower(), DEFAULT_STYLE)


def _color_clause(color: Optional[str]) -> str:
    color = (color or "").strip()
    return f" Accent color palette around {color}." if color else ""


def build_scene_prompt(
    genre: Optional[str],
    narrative: str,
    color: Optional[str] = None,
    excerpt_length: int = SCENE_EXCERPT_LENGTH,
) -> str:
    """Return the illustration prompt (and cache key) for one narrative turn."""
    excerpt = narrative[:excerpt_length].strip()
    return (
        f"A {style_for_genre(genre)} scene. {excerpt}."
        f"{_color_clause(color)} High quality digital art, atmospheric illustration, no text."
    )


def build_cover_prompt(
    title: str,
    description: str,
    genre: Optional[str],
    color: Optional[str] = None,
    excerpt_length: int = COVER_EXCERPT_LENGTH,
) -> str:
    """Return the cover art prompt for a game."""
    return (
        f'A {style_for_genre(genre)} scene representing "{title}". {description[:excerpt_length]}.'
        f"{_color_clause(color)} High quality digital art, game cover art style, professional illustration."
    )
