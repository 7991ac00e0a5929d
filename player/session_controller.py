"""Turn lifecycle for one play session, modeled as an explicit state machine.

The controller owns the transcript and the image cache. Every change of
state goes through `dispatch()` with a discrete event, so the rendering
layer only needs to watch the transcript and `state`.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Set, Tuple, Type

from models.game_record import GameRecord
from models.session_models import USER, ImageRef, Message, Session
from models.stream_frames import Frame
from player.api_client import PlayApiClient
from player.config import PlayerConfig
from player.errors import (
	InvalidTransitionError,
	SessionStartError,
	TurnFailedError,
	TurnTransportError,
)
from player.frame_decoder import StreamFrameDecoder
from player.image_cache import ImageRequestCache
from player.image_prompts import build_cover_prompt, build_scene_prompt
from player.transcript_store import TranscriptStore
from player.turn_accumulator import TurnAccumulator

LOGGER = logging.getLogger(__name__)


class ControllerState(str, Enum):
	IDLE = "idle"
	STARTING = "starting"
	PLAYING = "playing"
	AWAITING_TURN = "awaiting_turn"
	ERROR = "error"


@dataclass(frozen=True)
class StartRequested:
	pass


@dataclass(frozen=True)
class SessionCreated:
	session: Session


@dataclass(frozen=True)
class FrameReceived:
	frame: Frame


@dataclass(frozen=True)
class TurnEnded:
	message: Message


@dataclass(frozen=True)
class UserSubmitted:
	message: Message


@dataclass(frozen=True)
class TransportError:
	error: Exception


@dataclass(frozen=True)
class TurnCancelled:
	pass


@dataclass(frozen=True)
class ImageResolved:
	message_id: str
	image: Optional[ImageRef]


S = ControllerState
TRANSITIONS: Dict[Tuple[ControllerState, Type], ControllerState] = {
	(S.IDLE, StartRequested): S.STARTING,
	(S.ERROR, StartRequested): S.STARTING,
	(S.STARTING, SessionCreated): S.STARTING,
	(S.STARTING, FrameReceived): S.STARTING,
	(S.STARTING, TurnEnded): S.PLAYING,
	(S.STARTING, TurnCancelled): S.IDLE,
	(S.PLAYING, UserSubmitted): S.AWAITING_TURN,
	(S.AWAITING_TURN, FrameReceived): S.AWAITING_TURN,
	(S.AWAITING_TURN, TurnEnded): S.PLAYING,
	(S.AWAITING_TURN, TransportError): S.PLAYING,
	(S.AWAITING_TURN, TurnCancelled): S.PLAYING,
}


def next_state(state: ControllerState, event: object) -> ControllerState:
	"""Return the state reached by applying `event` in `state`."""
	if isinstance(event, ImageResolved):
		return state
	target = TRANSITIONS.get((state, type(event)))
	if target is not None:
		return target
	if isinstance(event, TransportError):
		return S.ERROR
	raise InvalidTransitionError(f"{type(event).__name__} is not accepted while {state.value}")


class SessionController:
	"""Drive one play session: start, send replies, cancel, illustrate."""

	def __init__(
		self,
		game: GameRecord,
		api: PlayApiClient,
		*,
		config: Optional[PlayerConfig] = None,
		store: Optional[TranscriptStore] = None,
		image_cache: Optional[ImageRequestCache] = None,
	) -> None:
		self.game = game
		self.api = api
		self.config = config or PlayerConfig()
		self.store = store if store is not None else TranscriptStore()
		self.image_cache = image_cache or ImageRequestCache(
			max_entries=self.config.image_cache_size, ttl_seconds=self.config.image_cache_ttl
		)
		self.state = ControllerState.IDLE
		self.session: Optional[Session] = None
		self.last_error: Optional[Exception] = None
		self._accumulator: Optional[TurnAccumulator] = None
		self._decoder: Optional[StreamFrameDecoder] = None
		self._turn_task: Optional[asyncio.Future] = None
		self._cancel_requested = False
		self._pending_user_id: Optional[str] = None
		self._image_tasks: Set[asyncio.Future] = set()

	@property
	def turn_in_flight(self) -> bool:
		return self.state in (ControllerState.STARTING, ControllerState.AWAITING_TURN)

	def dispatch(self, event: object) -> None:
		"""Apply an event: validate the transition, run its effect, move state."""
		target = next_state(self.state, event)
		handler = self._handlers().get(type(event))
		if handler is not None:
			handler(event)
		if target is not self.state:
			LOGGER.info("Session %s: %s -> %s on %s", self._session_label(), self.state.value, target.value, type(event).__name__)
		self.state = target

	async def start(self) -> Session:
		"""Create a session and play the opening turn.

		Raises:
			SessionStartError: If the session or the opening turn fails; the
				controller is left in the error state and nothing is retried.

		If the caller cancels the call, the controller returns to idle before
		the cancellation propagates.
		"""
		self.dispatch(StartRequested())
		try:
			session_id = await self.api.create_session()
		except SessionStartError as exc:
			self.dispatch(TransportError(exc))
			raise
		except asyncio.CancelledError:
			self._abandon_turn()
			raise
		session = Session(session_id=session_id, game_id=self.game.id)
		self.dispatch(SessionCreated(session))

		try:
			await self._run_turn(lambda: self.api.open_start_stream(session, self.game.slug))
		except asyncio.CancelledError:
			self._abandon_turn()
			raise
		except Exception as exc:
			self.dispatch(TransportError(exc))
			raise SessionStartError(f"Opening turn failed: {exc}") from exc
		return session

	async def send(self, text: str) -> Optional[Message]:
		"""Submit player input and play the reply turn.

		Returns:
			The finalized assistant message, or None when the input was blank,
			another turn is still in flight, or the turn was cancelled.

		Raises:
			TurnFailedError: If the turn failed; the optimistic user message
				has been removed and the controller is back to playing.

		If the caller cancels the call (e.g. a timeout), the user message is
		rolled back like a failed turn before the cancellation propagates.
		"""
		text = (text or "").strip()
		if not text:
			return None
		if self.state is not ControllerState.PLAYING or self.session is None:
			LOGGER.warning("Ignoring input while %s", self.state.value)
			return None

		session = self.session
		user_message = Message(session_id=session.session_id, game_id=session.game_id, role=USER, content=text)
		self.dispatch(UserSubmitted(user_message))
		try:
			return await self._run_turn(lambda: self.api.open_reply_stream(session, text))
		except asyncio.CancelledError:
			self._abandon_turn()
			raise
		except Exception as exc:
			self.dispatch(TransportError(exc))
			raise TurnFailedError(f"Turn failed: {exc}") from exc
		finally:
			self._pending_user_id = None

	def cancel(self) -> bool:
		"""Abort the turn being streamed. Returns False if none is running."""
		if not self.turn_in_flight or self._turn_task is None or self._turn_task.done():
			return False
		self._cancel_requested = True
		if self._decoder is not None:
			self._decoder.cancel()
		self._turn_task.cancel()
		return True

	async def cover_image(self) -> Optional[ImageRef]:
		"""Return cover art for the game, generated through the shared image cache."""
		if self.game.image_url:
			return ImageRef(url=self.game.image_url)
		prompt = build_cover_prompt(self.game.title, self.game.description, self.game.genre, self.game.primary_color)
		return await self.image_cache.fetch_and_cache(prompt, lambda: self.api.generate_image(prompt))

	async def wait_for_images(self) -> None:
		"""Wait until every scheduled illustration has resolved."""
		while True:
			pending = [task for task in self._image_tasks if not task.done()]
			if not pending:
				return
			await asyncio.gather(*pending, return_exceptions=True)

	async def aclose(self) -> None:
		self.cancel()
		pending = [task for task in self._image_tasks if not task.done()]
		for task in pending:
			task.cancel()
		if pending:
			await asyncio.gather(*pending, return_exceptions=True)
		LOGGER.debug(
			"Image cache for %s: %d hits, %d misses, %d fetches",
			self._session_label(), self.image_cache.hits, self.image_cache.misses, self.image_cache.fetches,
		)
		await self.api.aclose()

	async def _run_turn(self, open_stream: Callable) -> Optional[Message]:
		self._accumulator = TurnAccumulator(self.store, self.session)
		self._decoder = StreamFrameDecoder()
		self._cancel_requested = False
		accumulator = self._accumulator
		self._turn_task = asyncio.ensure_future(self._stream_turn(open_stream, self._decoder, accumulator))
		try:
			message = await self._turn_task
		except asyncio.CancelledError:
			if not self._cancel_requested:
				raise
			message = accumulator.message if accumulator.finalized else None
		except Exception as exc:
			if not accumulator.finalized:
				raise
			LOGGER.warning("Session %s: stream closed uncleanly after the end frame: %s", self._session_label(), exc)
			message = accumulator.message
		finally:
			self._turn_task = None
			self._decoder = None
		if message is None and self.turn_in_flight:
			self.dispatch(TurnCancelled())
		return message

	def _abandon_turn(self) -> None:
		"""Return to a resting state after the caller cancelled start() or send()."""
		if self.state is ControllerState.STARTING:
			self.dispatch(TurnCancelled())
		elif self.state is ControllerState.AWAITING_TURN:
			self.dispatch(TransportError(TurnTransportError("Turn abandoned by the caller")))

	async def _stream_turn(
		self, open_stream: Callable, decoder: StreamFrameDecoder, accumulator: TurnAccumulator
	) -> Optional[Message]:
		async with open_stream() as chunks:
			async with aclosing(decoder.decode(chunks)) as frames:
				async for frame in frames:
					self.dispatch(FrameReceived(frame))
					if accumulator.finalized:
						message = accumulator.message
						self.dispatch(TurnEnded(message))
						return message
		if decoder.cancelled:
			return None
		raise TurnTransportError("Turn stream ended before an end frame")

	def _handlers(self) -> Dict[Type, Callable]:
		return {
			SessionCreated: self._on_session_created,
			FrameReceived: self._on_frame,
			TurnEnded: self._on_turn_ended,
			UserSubmitted: self._on_user_submitted,
			TransportError: self._on_transport_error,
			ImageResolved: self._on_image_resolved,
		}

	def _on_session_created(self, event: SessionCreated) -> None:
		self.session = event.session
		self.last_error = None

	def _on_frame(self, event: FrameReceived) -> None:
		self._accumulator.apply(event.frame)

	def _on_turn_ended(self, event: TurnEnded) -> None:
		self._pending_user_id = None
		self._schedule_illustration(event.message)

	def _on_user_submitted(self, event: UserSubmitted) -> None:
		self.store.append(event.message)
		self._pending_user_id = event.message.id

	def _on_transport_error(self, event: TransportError) -> None:
		self.last_error = event.error
		LOGGER.warning("Session %s: turn failed: %s", self._session_label(), event.error)
		if self.state is ControllerState.AWAITING_TURN and self._pending_user_id is not None:
			self.store.rollback(self._pending_user_id)
			self._pending_user_id = None

	def _on_image_resolved(self, event: ImageResolved) -> None:
		changes = {"is_generating_image": False}
		if event.image is not None:
			changes["narrative_image"] = event.image
		self.store.patch(event.message_id, **changes)

	def _schedule_illustration(self, message: Message) -> None:
		if not self.config.illustrate_turns or not message.content.strip():
			return
		prompt = build_scene_prompt(
			self.game.genre, message.content, self.game.primary_color, self.config.scene_excerpt
		)
		self.store.patch(message.id, is_generating_image=True)
		task = asyncio.ensure_future(self._illustrate(message.id, prompt))
		self._image_tasks.add(task)
		task.add_done_callback(self._image_tasks.discard)

	async def _illustrate(self, message_id: str, prompt: str) -> None:
		image = None
		try:
			image = await self.image_cache.fetch_and_cache(prompt, lambda: self.api.generate_image(prompt))
		finally:
			self.dispatch(ImageResolved(message_id, image))

	def _session_label(self) -> str:
		return self.session.session_id if self.session else "-"
