"""HTTP client for the story service endpoints the player depends on."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from models.game_record import GameRecord
from models.session_models import ImageRef, Session
from player.errors import CatalogError, ImageGenerationError, SessionStartError, TurnTransportError

LOGGER = logging.getLogger(__name__)


class PlayApiClient:
    """Thin async wrapper around the session, turn and image endpoints.

    The underlying `httpx.AsyncClient` may be injected (for a custom
    transport or shared connection pool); otherwise one is created and owned
    by this instance.
    """

    def __init__(
        self,
        base_url: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def create_session(self) -> str:
        """Request a new session id.

        Raises:
            SessionStartError: On network errors, non-2xx responses or `success: false`.
        """
        try:
            response = await self._client.get("/api/session/new")
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise SessionStartError(f"Session request failed: {exc}") from exc
        if not isinstance(payload, dict):
            payload = {}
        if not response.is_success or not payload.get("success"):
            raise SessionStartError(payload.get("error") or f"Session request returned {response.status_code}")
        session_id = (payload.get("data") or {}).get("sessionId")
        if not session_id:
            raise SessionStartError("Session response did not include a sessionId")
        return session_id

    async def get_game(self, slug: str) -> GameRecord:
        """Fetch catalog metadata for a game.

        Raises:
            CatalogError: On network errors, non-2xx responses or an unreadable payload.
        """
        try:
            response = await self._client.get(f"/api/games/{slug}")
        except httpx.HTTPError as exc:
            raise CatalogError(f"Game request failed: {exc}") from exc
        if not response.is_success:
            raise CatalogError(f"Game {slug!r} returned {response.status_code}", status_code=response.status_code)
        try:
            return GameRecord.from_json(response.json())
        except (ValueError, TypeError, AttributeError) as exc:
            raise CatalogError(f"Game {slug!r} payload is invalid: {exc}") from exc

    def open_start_stream(self, session: Session, slug: str):
        """Open the opening-turn stream for a new session."""
        return self._open_stream(f"/api/games/{slug}/start", {"sessionId": session.session_id})

    def open_reply_stream(self, session: Session, message: str):
        """Open the turn stream answering a player message."""
        return self._open_stream(
            "/api/games/chat",
            {"sessionId": session.session_id, "gameId": session.game_id, "message": message},
        )

    async def generate_image(self, prompt: str) -> ImageRef:
        """Ask the service for an illustration of `prompt`.

        Raises:
            ImageGenerationError: If the call fails or returns no image URL.
        """
        try:
            response = await self._client.post("/api/generate-image", json={"prompt": prompt})
        except httpx.HTTPError as exc:
            raise ImageGenerationError(f"Image request failed: {exc}") from exc
        if not response.is_success:
            raise ImageGenerationError(f"Image request returned {response.status_code}")
        try:
            payload: Dict[str, Any] = response.json()
        except ValueError as exc:
            raise ImageGenerationError("Image response was not JSON") from exc
        image_url = payload.get("imageUrl")
        if not image_url:
            raise ImageGenerationError("Image response did not include an imageUrl")
        return ImageRef(url=image_url, prompt=prompt)

    @asynccontextmanager
    async def _open_stream(self, path: str, body: Dict[str, Any]) -> AsyncIterator[AsyncIterator[bytes]]:
        """Yield the raw byte chunks of a streamed turn response.

        Transport failures, both when opening and while reading, surface as
        `TurnTransportError`.
        """
        try:
            async with self._client.stream("POST", path, json=body) as response:
                if not response.is_success:
                    raise TurnTransportError(
                        f"Turn request to {path} returned {response.status_code}",
                        status_code=response.status_code,
                    )
                LOGGER.debug("Turn stream opened: %s", path)
                yield response.aiter_bytes()
        except httpx.HTTPError as exc:
            raise TurnTransportError(f"Turn stream from {path} failed: {exc}") from exc
