"""Simple in-memory store for story sessions."""

from __future__ import annotations

from typing import Dict, List, Optional

from models.session_models import SessionMessage, SessionState


class SessionStore:
	"""Keep the running conversation of each issued session."""

	def __init__(self) -> None:
		self._sessions: Dict[str, SessionState] = {}

	def create(self, session_id: str, game_id: Optional[int] = None) -> SessionState:
		"""Register a session id handed out by the session endpoint."""
		state = SessionState(session_id=session_id, game_id=game_id)
		self._sessions[session_id] = state
		return state

	def get(self, session_id: str) -> SessionState:
		"""Return a session or raise KeyError if missing."""
		state = self._sessions.get(session_id)
		if state is None:
			raise KeyError(f"Session {session_id} not found")
		return state

	def ensure(self, session_id: str, game_id: Optional[int] = None) -> SessionState:
		"""Return the session, creating it if this process has not seen it yet."""
		state = self._sessions.get(session_id) or self.create(session_id, game_id)
		if game_id is not None:
			state.game_id = game_id
		return state

	def reset(self, session_id: str, game_id: Optional[int] = None) -> SessionState:
		"""Drop any earlier conversation; used when a game is (re)started."""
		return self.create(session_id, game_id)

	def add_message(self, session_id: str, role: str, content: str) -> SessionState:
		"""Append a message to the session conversation."""
		state = self.get(session_id)
		state.messages.append(SessionMessage(role=role, content=content.strip()))
		return state

	def history(self, session_id: str, limit: int = 30) -> List[SessionMessage]:
		"""Return the most recent messages, oldest first."""
		state = self.get(session_id)
		return list(state.messages[-limit:] if limit else state.messages)
