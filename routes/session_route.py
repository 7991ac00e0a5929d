"""FastAPI routes for session issuance."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from controllers.session_controller import create_session

router = APIRouter(prefix="/api/session")


@router.get("/new")
async def new_session_route(request: Request):
	try:
		return await create_session(request)
	except Exception as exc:
		logging.error("Session creation error: %s", exc)
		return JSONResponse(status_code=500, content={"success": False, "error": "Failed to create session"})
