"""Prompt builders for the interactive narrator."""

from __future__ import annotations

from typing import Dict, Iterable, List

from models.game_record import GameRecord
from models.session_models import SessionMessage


def narrator_system_prompt(game: GameRecord) -> str:
    """Return the system prompt that frames the whole play-through."""
    genre = " / ".join(part for part in (game.genre, game.subgenre) if part) or "interactive fiction"
    instructions = game.prompt_text.strip() if game.prompt_text else ""
    return (
        f'You are the narrator of "{game.title}", a {genre} text adventure. '
        f"{game.description.strip()} "
        "Write vivid second-person narration of two or three short paragraphs per turn. "
        "Always finish the turn with a numbered list of 3 or 4 distinct choices, one per line, "
        "formatted as '1. ...', '2. ...'. Do not write anything after the list."
        + (f"\n\nGame instructions:\n{instructions}" if instructions else "")
    )


def opening_user_prompt() -> str:
    """Return the instruction that asks for the opening scene."""
    return "Begin the story. Set the scene and present the first choices."


def build_inputs(game: GameRecord, history: Iterable[SessionMessage]) -> List[Dict[str, object]]:
    """Return Responses API input items for the narrator and conversation so far."""
    inputs: List[Dict[str, object]] = [
        {"type": "message", "role": "system", "content": [{"type": "input_text", "text": narrator_system_prompt(game)}]},
    ]
    for msg in history:
        content_type = "output_text" if msg.role == "assistant" else "input_text"
        inputs.append({"type": "message", "role": msg.role, "content": [{"type": content_type, "text": msg.content}]})
    return inputs
