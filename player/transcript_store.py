"""Ordered in-memory transcript for one play session."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Callable, Dict, List, Optional

from models.session_models import ASSISTANT, USER, Message

LOGGER = logging.getLogger(__name__)

APPENDED = "appended"
PATCHED = "patched"
ROLLED_BACK = "rolled_back"

Listener = Callable[[str, Message], None]

_PATCHABLE = frozenset({"content", "options", "narrative_image", "is_generating_image", "is_streaming"})
_IMAGE_FIELDS = frozenset({"narrative_image", "is_generating_image"})


class TranscriptStore:
	"""Append-mostly log of messages, ordered by creation."""

	def __init__(self) -> None:
		self._messages: List[Message] = []
		self._index: Dict[str, Message] = {}
		self._listeners: List[Listener] = []

	def __len__(self) -> int:
		return len(self._messages)

	def subscribe(self, listener: Listener) -> Callable[[], None]:
		"""Register a change listener and return a function that removes it."""
		self._listeners.append(listener)

		def unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return unsubscribe

	def append(self, message: Message) -> Message:
		"""Add a message at the end of the transcript."""
		if message.id in self._index:
			raise ValueError(f"Message {message.id} already in transcript")
		self._messages.append(message)
		self._index[message.id] = message
		self._notify(APPENDED, message)
		return message

	def get(self, message_id: str) -> Message:
		"""Return a message or raise KeyError if missing."""
		message = self._index.get(message_id)
		if message is None:
			raise KeyError(f"Message {message_id} not found")
		return message

	def last(self) -> Optional[Message]:
		return self._messages[-1] if self._messages else None

	def patch(self, message_id: str, **changes: Any) -> Message:
		"""Update selected fields of an existing message.

		Finalized assistant messages only accept image fields.
		"""
		unknown = set(changes) - _PATCHABLE
		if unknown:
			raise ValueError(f"Cannot patch fields: {', '.join(sorted(unknown))}")
		message = self.get(message_id)
		if message.is_finalized and set(changes) - _IMAGE_FIELDS:
			raise ValueError(f"Message {message_id} is finalized; only its image can change")
		for name, value in changes.items():
			setattr(message, name, value)
		self._notify(PATCHED, message)
		return message

	def rollback(self, message_id: str) -> Message:
		"""Remove an optimistic user message whose turn failed."""
		message = self.get(message_id)
		if message.role != USER:
			raise ValueError("Only user messages can be rolled back")
		self._messages.remove(message)
		del self._index[message_id]
		self._notify(ROLLED_BACK, message)
		return message

	def open_assistant(self) -> Optional[Message]:
		"""Return the assistant message still being streamed, if any."""
		for message in reversed(self._messages):
			if message.role == ASSISTANT and message.is_streaming:
				return message
		return None

	def messages(self) -> List[Message]:
		"""Return an ordered snapshot safe to render or keep."""
		return [
			dataclasses.replace(msg, options=list(msg.options) if msg.options is not None else None)
			for msg in self._messages
		]

	def _notify(self, event: str, message: Message) -> None:
		for listener in list(self._listeners):
			try:
				listener(event, message)
			except Exception:
				LOGGER.exception("Transcript listener failed on %s for %s", event, message.id)
