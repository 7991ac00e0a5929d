"""Play a story in the terminal against a running story service.

Run: start the service (`uvicorn main:app`), then
      `python play.py --game lantern-in-the-fog`.
Type a choice number or free text at the prompt; an empty line or Ctrl-D quits.
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv

from models.session_models import ASSISTANT, Message
from player.api_client import PlayApiClient
from player.config import PlayerConfig
from player.errors import PlayerError, TurnFailedError
from player.session_controller import SessionController
from player.transcript_store import APPENDED, PATCHED


class TerminalRenderer:
    """Print streamed narration as it grows, plus choices and images once known."""

    def __init__(self) -> None:
        self._printed: dict = {}
        self._closed: set = set()
        self._announced_images: set = set()

    def __call__(self, event: str, message: Message) -> None:
        if message.role != ASSISTANT or event not in (APPENDED, PATCHED):
            return
        shown = self._printed.get(message.id, "")
        if message.content.startswith(shown) and len(message.content) > len(shown):
            sys.stdout.write(message.content[len(shown):])
            sys.stdout.flush()
            self._printed[message.id] = message.content
        if message.options is not None and message.id not in self._closed:
            self._closed.add(message.id)
            sys.stdout.write("\n\n")
            for option in message.options:
                sys.stdout.write(f"  {option.id}. {option.text}\n")
        if message.narrative_image is not None and message.id not in self._announced_images:
            self._announced_images.add(message.id)
            url = message.narrative_image.url
            sys.stdout.write(f"\n[illustration ready: {url[:80]}{'...' if len(url) > 80 else ''}]\n")


def _resolve_choice(controller: SessionController, raw: str) -> str:
    """Map a bare option number to its text; anything else is sent verbatim."""
    last = controller.store.last()
    if last is not None and last.options and raw.strip().isdigit():
        for option in last.options:
            if str(option.id) == raw.strip():
                return option.text
    return raw


async def play(slug: str, config: PlayerConfig) -> int:
    api = PlayApiClient(config.base_url, timeout=config.http_timeout)
    try:
        game = await api.get_game(slug)
    except PlayerError as exc:
        print(f"Could not load game {slug!r}: {exc}", file=sys.stderr)
        await api.aclose()
        return 1

    controller = SessionController(game, api, config=config)
    controller.store.subscribe(TerminalRenderer())
    print(f"== {game.title} ==\n{game.tagline}\n")
    if config.illustrate_turns:
        cover = await controller.cover_image()
        if cover is not None:
            print(f"[cover art: {cover.url[:80]}]\n")
    try:
        await controller.start()
        while True:
            raw: Optional[str] = await asyncio.to_thread(_read_line)
            if not raw:
                break
            print()
            try:
                await controller.send(_resolve_choice(controller, raw))
            except TurnFailedError as exc:
                print(f"\n[the narrator lost the thread: {exc}; try again]")
    except PlayerError as exc:
        print(f"\n[could not start the game: {exc}]", file=sys.stderr)
        return 1
    finally:
        await controller.aclose()
    return 0


def _read_line() -> Optional[str]:
    try:
        return input("\n> ")
    except EOFError:
        return None


def main() -> None:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Play a streamed story in the terminal.")
    parser.add_argument("--game", required=True, help="Slug of the game to play")
    parser.add_argument("--base-url", help="Story service URL (default: STORYLOOM_BASE_URL)")
    parser.add_argument("--no-images", action="store_true", help="Do not request turn illustrations")
    args = parser.parse_args()

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = PlayerConfig.from_env()
    if args.base_url:
        config.base_url = args.base_url.rstrip("/")
    if args.no_images:
        config.illustrate_turns = False
    sys.exit(asyncio.run(play(args.game, config)))


if __name__ == "__main__":
    main()
