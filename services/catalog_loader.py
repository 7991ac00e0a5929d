"""Seed the GAME table from a JSON catalog file."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List

from dal.game_dal import GameDAL
from models.game_record import GameRecord

LOGGER = logging.getLogger(__name__)


def read_catalog(path: Path) -> List[GameRecord]:
    """Parse a catalog file holding a JSON list of games.

    Raises:
        ValueError: If the file is not a list or an entry has no slug/title.
    """
    with open(path, "r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if not isinstance(payload, list):
        raise ValueError(f"Game catalog {path} must contain a JSON list")

    records = []
    for entry in payload:
        record = GameRecord.from_json(entry)
        if not record.slug or not record.title:
            raise ValueError(f"Game catalog entry is missing slug or title: {entry!r}")
        record.id = None
        records.append(record)
    return records


async def seed_games(game_dal: GameDAL, path: Path) -> int:
    """Insert every game from `path` that is not stored yet. Returns the count added."""
    if not path.exists():
        LOGGER.warning("Game catalog %s not found; starting with no games", path)
        return 0

    added = 0
    for record in read_catalog(path):
        if await game_dal.get_game_by_slug(record.slug) is not None:
            continue
        await game_dal.create_game(record)
        added += 1
    LOGGER.info("Loaded %d games from %s", added, path)
    return added
