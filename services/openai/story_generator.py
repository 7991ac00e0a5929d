"""Narrator built on OpenAI streaming Responses."""

from __future__ import annotations

import logging
from typing import AsyncIterator, Iterable, List

from openai import AsyncOpenAI

from models.game_record import GameRecord
from models.session_models import GameplayOption, SessionMessage
from models.stream_frames import ContentFrame, EndFrame, Frame, OptionsFrame
from services.openai.option_parser import extract_options
from services.openai.prompts import build_inputs

LOGGER = logging.getLogger(__name__)


class StoryGenerator:
	"""Stream one narrator turn as content, options and end frames."""

	def __init__(self, client: AsyncOpenAI, model: str = "gpt-5") -> None:
		if client is None:
			raise ValueError("AsyncOpenAI client is required.")
		self.client = client
		self.model = model

	async def stream_turn(
		self,
		game: GameRecord,
		history: Iterable[SessionMessage],
		*,
		max_tokens: int = 1200,
	) -> AsyncIterator[Frame]:
		"""Yield the frames of one turn.

		Text deltas are forwarded as they arrive; once the model finishes, the
		trailing numbered list is parsed into an options payload and the turn
		is closed with an end payload.
		"""
		parts: List[str] = []
		stream = await self.client.responses.create(
			model=game.prompt_model or self.model,
			input=build_inputs(game, history),
			max_output_tokens=max_tokens,
			stream=True,
		)
		async for event in stream:
			event_type = getattr(event, "type", None)
			if event_type == "response.output_text.delta":
				delta = getattr(event, "delta", "") or ""
				if delta:
					parts.append(delta)
					yield ContentFrame(delta)
			elif event_type in ("response.failed", "error"):
				raise RuntimeError(f"Narrator stream failed: {getattr(event, 'message', event_type)}")

		text = "".join(parts)
		options = extract_options(text)
		if not options:
			LOGGER.warning("Narrator turn for %s ended without a numbered choice list", game.slug)
		yield OptionsFrame([GameplayOption(id=opt["id"], text=opt["text"]) for opt in options])
		yield EndFrame()
