"""Async Data Access Layer for the GAME table.

Provides GameDAL with the catalog operations the story service needs,
backed by `utils.database_init.AsyncDatabaseInitializer`.
"""

from __future__ import annotations

import time
from typing import Optional, Sequence

from models.game_record import GameRecord
from utils.database_init import AsyncDatabaseInitializer


class GameDAL:
    """Data access layer for GAME records."""

    _COLUMNS = (
        "id",
        "slug",
        "title",
        "description",
        "genre",
        "subgenre",
        "tagline",
        "primary_color",
        "prompt_model",
        "prompt_text",
        "image_url",
        "created_at",
    )
    _COLUMN_LIST, _INSERT_COLUMNS = ", ".join(_COLUMNS), ", ".join(_COLUMNS[1:])

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def create_game(self, record: GameRecord) -> int:
        """Insert a new GAME row and return the new id.

        Args:
            record: GameRecord with `id=None` and fields to insert.
        """
        created_at = record.created_at or int(time.time())
        placeholders = ", ".join("?" for _ in self._COLUMNS[1:])

        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"INSERT INTO GAME ({self._INSERT_COLUMNS}) VALUES ({placeholders})",
                (
                    record.slug,
                    record.title,
                    record.description,
                    record.genre,
                    record.subgenre,
                    record.tagline,
                    record.primary_color,
                    record.prompt_model,
                    record.prompt_text,
                    record.image_url,
                    created_at,
                ),
            )
            await conn.commit()
            return cur.lastrowid

    async def get_game_by_slug(self, slug: str) -> Optional[GameRecord]:
        """Return the GameRecord for `slug`, or None if not found."""
        return await self._fetch_one("slug = ?", (slug,))

    async def get_game_by_id(self, game_id: int) -> Optional[GameRecord]:
        """Return the GameRecord for `game_id`, or None if not found."""
        return await self._fetch_one("id = ?", (game_id,))

    async def _fetch_one(self, where: str, params: Sequence[object]) -> Optional[GameRecord]:
        async with self._db.connection() as conn:
            cur = await conn.execute(f"SELECT {self._COLUMN_LIST} FROM GAME WHERE {where}", tuple(params))
            row = await cur.fetchone()
            return self._row_to_record(row) if row else None

    @staticmethod
    def _row_to_record(row: Sequence[object]) -> GameRecord:
        """Convert a DB row tuple into a GameRecord."""
        return GameRecord(
            id=row[0],
            slug=row[1],
            title=row[2],
            description=row[3] or "",
            genre=row[4] or "",
            subgenre=row[5] or "",
            tagline=row[6] or "",
            primary_color=row[7],
            prompt_model=row[8] or "",
            prompt_text=row[9] or "",
            image_url=row[10],
            created_at=row[11],
        )
