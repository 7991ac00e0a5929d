"""Fold the frames of one turn into a single assistant message."""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Sequence

from models.session_models import ASSISTANT, GameplayOption, Message, Session
from models.stream_frames import ContentFrame, EndFrame, Frame, OptionsFrame
from player.transcript_store import TranscriptStore

LOGGER = logging.getLogger(__name__)

# A line break followed by the first ordinal marker of an enumerated list.
OPTION_LIST_START = re.compile(r"[\n\r]+\s*1[.)]\s+")


def split_narrative(content: str, options: Sequence[GameplayOption]) -> str:
	"""Return the narrative part of `content` once options are known.

	When options exist and the text contains the start of an enumerated list,
	everything from that marker on is dropped, since the structured options
	replace it. Otherwise the text is returned unchanged.
	"""
	if not options:
		return content
	match = OPTION_LIST_START.search(content)
	if match is None or match.start() == 0:
		return content
	return content[: match.start()].strip()


class TurnAccumulator:
	"""Apply one turn's frames to the transcript.

	The assistant message is created lazily on the first content frame, so no
	empty entry shows up before text exists. Options are staged until the end
	frame, at which point the message is finalized.
	"""

	def __init__(self, store: TranscriptStore, session: Session) -> None:
		self.store = store
		self.session = session
		self.message_id: Optional[str] = None
		self._staged_options: List[GameplayOption] = []
		self._finalized = False
		self._seal_stale_message()

	@property
	def finalized(self) -> bool:
		return self._finalized

	@property
	def message(self) -> Optional[Message]:
		return self.store.get(self.message_id) if self.message_id else None

	def apply(self, frame: Frame) -> Optional[Message]:
		"""Apply a frame; return the finalized message when the turn ends."""
		if self._finalized:
			LOGGER.warning("Ignoring %s frame received after the turn ended", frame.type)
			return None
		if isinstance(frame, ContentFrame):
			self._append_text(frame.text)
		elif isinstance(frame, OptionsFrame):
			self._staged_options = list(frame.options)
		elif isinstance(frame, EndFrame):
			return self._finalize()
		return None

	def _append_text(self, text: str) -> None:
		if self.message_id is None:
			message = self.store.append(self._new_message(text))
			self.message_id = message.id
			return
		current = self.store.get(self.message_id)
		self.store.patch(self.message_id, content=current.content + text)

	def _finalize(self) -> Message:
		if self.message_id is None:
			# The turn ended without narrative; it still yields one assistant entry.
			self.message_id = self.store.append(self._new_message("")).id
		current = self.store.get(self.message_id)
		options = list(self._staged_options)
		message = self.store.patch(
			self.message_id,
			content=split_narrative(current.content, options),
			options=options,
			is_streaming=False,
		)
		self._finalized = True
		LOGGER.debug("Finalized %s with %d options", message.id, len(options))
		return message

	def _new_message(self, text: str) -> Message:
		return Message(
			session_id=self.session.session_id,
			game_id=self.session.game_id,
			role=ASSISTANT,
			content=text,
			is_streaming=True,
		)

	def _seal_stale_message(self) -> None:
		stale = self.store.open_assistant()
		if stale is not None:
			LOGGER.info("Closing assistant message %s left open by an earlier turn", stale.id)
			self.store.patch(stale.id, is_streaming=False)
