"""Game lookup and streamed narrator turns."""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Dict, List

from fastapi import HTTPException, Request
from fastapi.responses import StreamingResponse

from dal.game_dal import GameDAL
from dal.session_dal import SessionDAL
from models.game_record import GameRecord
from models.session_models import SessionMessage
from models.stream_frames import FRAME_PREFIX, ContentFrame, Frame, frame_payload
from services.openai.prompts import opening_user_prompt
from services.openai.story_generator import StoryGenerator
from services.story.session_store import SessionStore

LOGGER = logging.getLogger(__name__)


def format_frame(frame: Frame) -> str:
    """Serialize one frame as a stream line."""
    return f"{FRAME_PREFIX}{json.dumps(frame_payload(frame))}\n\n"


async def get_game(request: Request, slug: str) -> Dict[str, Any]:
    """Return the catalog entry for `slug`.

    Raises:
        HTTPException(404) if no game has that slug.
    """
    game = await GameDAL(request.app.state.db_initializer).get_game_by_slug(slug)
    if game is None:
        raise HTTPException(status_code=404, detail="Game not found")
    return game.to_json()


async def start_game(request: Request, slug: str, session_id: str) -> StreamingResponse:
    """Open a fresh conversation for `session_id` and stream the opening turn."""
    db_initializer = request.app.state.db_initializer
    game = await GameDAL(db_initializer).get_game_by_slug(slug)
    if game is None:
        raise HTTPException(status_code=404, detail="Game not found")

    store: SessionStore = request.app.state.session_store
    store.reset(session_id, game.id)
    await SessionDAL(db_initializer).attach_game(session_id, game.id)
    return _turn_response(request, game, session_id, opening_user_prompt())


async def continue_game(request: Request, session_id: str, game_id: int, message: str) -> StreamingResponse:
    """Stream the narrator's answer to a player message."""
    text = (message or "").strip()
    if not text:
        raise HTTPException(status_code=400, detail="Message is required")
    game = await GameDAL(request.app.state.db_initializer).get_game_by_id(game_id)
    if game is None:
        raise HTTPException(status_code=404, detail="Game not found")

    store: SessionStore = request.app.state.session_store
    store.ensure(session_id, game.id)
    return _turn_response(request, game, session_id, text)


def _turn_response(request: Request, game: GameRecord, session_id: str, user_text: str) -> StreamingResponse:
    store: SessionStore = request.app.state.session_store
    generator: StoryGenerator = request.app.state.story_generator
    history = store.history(session_id) + [SessionMessage(role="user", content=user_text)]

    async def event_stream() -> AsyncIterator[str]:
        parts: List[str] = []
        try:
            async for frame in generator.stream_turn(game, history):
                if isinstance(frame, ContentFrame):
                    parts.append(frame.text)
                yield format_frame(frame)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            # Ending without an end frame tells the player the turn failed.
            LOGGER.error("Narrator stream for session %s failed: %s", session_id, exc)
            return
        # Only completed turns become part of the conversation.
        store.add_message(session_id, "user", user_text)
        store.add_message(session_id, "assistant", "".join(parts))

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
