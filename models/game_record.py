from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass
class GameRecord:
    """In-memory representation of a row in the GAME table.

    Attributes:
        id: Primary key (None for new records).
        slug: URL-safe identifier used by the start endpoint.
        title: Display title.
        description: Short blurb, also used for cover art prompts.
        genre: Genre name used to pick an illustration style.
        subgenre: Optional refinement of the genre.
        tagline: One-line hook.
        primary_color: Optional accent color (e.g. "#8b5cf6").
        prompt_model: Model used to narrate the game.
        prompt_text: Game-specific instructions for the narrator.
        image_url: Optional cover art URL.
        created_at: Unix timestamp (seconds) when the row was inserted.
    """

    id: Optional[int]
    slug: str
    title: str
    description: str = ""
    genre: str = ""
    subgenre: str = ""
    tagline: str = ""
    primary_color: Optional[str] = None
    prompt_model: str = ""
    prompt_text: str = ""
    image_url: Optional[str] = None
    created_at: Optional[int] = None

    def to_json(self) -> Dict[str, Any]:
        """Return the camelCase payload served to players."""
        data = asdict(self)
        return {
            "id": data["id"],
            "slug": data["slug"],
            "title": data["title"],
            "description": data["description"],
            "genre": data["genre"],
            "subgenre": data["subgenre"],
            "tagline": data["tagline"],
            "primaryColor": data["primary_color"],
            "promptModel": data["prompt_model"],
            "imageUrl": data["image_url"],
        }

    @classmethod
    def from_json(cls, payload: Dict[str, Any]) -> "GameRecord":
        """Build a record from either camelCase or snake_case keys."""

        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if payload.get(key) is not None:
                    return payload[key]
            return default

        return cls(
            id=pick("id"),
            slug=pick("slug", default=""),
            title=pick("title", default=""),
            description=pick("description", default=""),
            genre=pick("genre", default=""),
            subgenre=pick("subgenre", default=""),
            tagline=pick("tagline", default=""),
            primary_color=pick("primaryColor", "primary_color"),
            prompt_model=pick("promptModel", "prompt_model", default=""),
            prompt_text=pick("promptText", "prompt_text", default=""),
            image_url=pick("imageUrl", "image_url"),
        )
