"""Session and transcript domain models shared by the player and the service."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import List, Optional, Union
from uuid import uuid4

USER = "user"
ASSISTANT = "assistant"


@dataclass(frozen=True)
class Session:
	"""One play-through of a game."""

	session_id: str
	game_id: Union[int, str]


@dataclass(frozen=True)
class GameplayOption:
	"""A selectable choice offered at the end of an assistant turn."""

	id: Union[int, str]
	text: str


@dataclass(frozen=True)
class ImageRef:
	"""Reference to a generated illustration."""

	url: str
	prompt: str = ""


@dataclass
class Message:
	"""One transcript entry.

	`options` stays None for user messages and for assistant messages that
	have not been finalized yet. `is_streaming` marks the single assistant
	message still being appended to.
	"""

	session_id: str
	game_id: Union[int, str]
	role: str
	content: str = ""
	options: Optional[List[GameplayOption]] = None
	narrative_image: Optional[ImageRef] = None
	is_generating_image: bool = False
	is_streaming: bool = False
	id: str = ""
	created_at: float = field(default_factory=lambda: time.time())

	def __post_init__(self) -> None:
		if not self.id:
			self.id = f"{self.role}-{uuid4().hex}"

	@property
	def is_finalized(self) -> bool:
		return self.role == ASSISTANT and self.options is not None and not self.is_streaming


@dataclass
class SessionMessage:
	"""Conversation entry kept server-side to build model context."""

	role: str
	content: str
	created_at: float = field(default_factory=lambda: time.time())


@dataclass
class SessionState:
	"""In-memory conversation tracking for one issued session."""

	session_id: str
	game_id: Optional[int] = None
	messages: List[SessionMessage] = field(default_factory=list)
