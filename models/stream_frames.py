"""Typed frames carried by the turn-generation event stream."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

from models.session_models import GameplayOption

FRAME_PREFIX = "data: "

CONTENT = "content"
OPTIONS = "options"
END = "end"


@dataclass(frozen=True)
class ContentFrame:
    """Text delta to append to the turn's narrative."""

    text: str
    type: str = field(default=CONTENT, init=False)


@dataclass(frozen=True)
class OptionsFrame:
    """Final choice list for the turn (may be empty)."""

    options: List[GameplayOption] = field(default_factory=list)
    type: str = field(default=OPTIONS, init=False)


@dataclass(frozen=True)
class EndFrame:
    """Marks the turn as complete."""

    type: str = field(default=END, init=False)


Frame = Union[ContentFrame, OptionsFrame, EndFrame]


def frame_payload(frame: Frame) -> Dict[str, Any]:
    """Return the JSON payload for a frame as written on the wire."""
    if isinstance(frame, ContentFrame):
        return {"type": CONTENT, "content": frame.text}
    if isinstance(frame, OptionsFrame):
        return {"type": OPTIONS, "options": [{"id": opt.id, "text": opt.text} for opt in frame.options]}
    return {"type": END}
