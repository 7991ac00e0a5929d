"""FastAPI routes for the game catalog and turn streams."""

from typing import Union

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.game_controller import continue_game, get_game, start_game

router = APIRouter(prefix="/api/games", tags=["games"])


class StartPayload(BaseModel):
    sessionId: str


class ChatPayload(BaseModel):
    sessionId: str
    gameId: Union[int, str]
    message: str


@router.post("/chat")
async def chat_route(request: Request, payload: ChatPayload):
    """Stream the narrator's reply to a player message."""
    try:
        game_id = int(payload.gameId)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail="gameId must be an integer") from exc
    try:
        return await continue_game(request, payload.sessionId, game_id, payload.message)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/{slug}")
async def game_route(request: Request, slug: str):
    """Return catalog metadata for a game."""
    try:
        return await get_game(request, slug)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/{slug}/start")
async def start_route(request: Request, slug: str, payload: StartPayload):
    """Stream the opening turn of a game for a session."""
    try:
        return await start_game(request, slug, payload.sessionId)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))
