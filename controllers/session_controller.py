"""Session issuance for the story service."""

from __future__ import annotations

import logging
from typing import Any, Dict
from uuid import uuid4

from fastapi import Request

from dal.session_dal import SessionDAL
from services.story.session_store import SessionStore

LOGGER = logging.getLogger(__name__)


async def create_session(request: Request) -> Dict[str, Any]:
	"""Persist a new anonymous session and register it in memory."""
	store: SessionStore = request.app.state.session_store
	session_id = str(uuid4())
	row_id = await SessionDAL(request.app.state.db_initializer).create_session(session_id)
	store.create(session_id)
	LOGGER.info("Issued session %s", session_id)
	return {"success": True, "data": {"sessionId": session_id, "id": row_id}}
