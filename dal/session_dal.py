"""Async Data Access Layer for the SESSION table."""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

from utils.database_init import AsyncDatabaseInitializer


class SessionDAL:
    """Data access layer for issued play sessions."""

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def create_session(self, session_id: str, user_id: Optional[str] = None) -> int:
        """Insert a SESSION row and return its primary key."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "INSERT INTO SESSION (session_id, user_id, created_at) VALUES (?, ?, ?)",
                (session_id, user_id, int(time.time())),
            )
            await conn.commit()
            return cur.lastrowid

    async def attach_game(self, session_id: str, game_id: int) -> bool:
        """Record which game a session is playing. Returns True if a row changed."""
        async with self._db.connection() as conn:
            await conn.execute("UPDATE SESSION SET game_id = ? WHERE session_id = ?", (game_id, session_id))
            await conn.commit()
            cur = await conn.execute("SELECT changes()")
            changed = await cur.fetchone()
            return bool(changed and changed[0] > 0)

    async def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Return the SESSION row for `session_id`, or None if not found."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT id, session_id, game_id, user_id, created_at FROM SESSION WHERE session_id = ?",
                (session_id,),
            )
            row = await cur.fetchone()
        if row is None:
            return None
        return {"id": row[0], "session_id": row[1], "game_id": row[2], "user_id": row[3], "created_at": row[4]}
