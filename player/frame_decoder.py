"""Decode a chunked turn stream into typed frames.

The stream is plain text split into lines. Lines starting with ``data: ``
carry a JSON payload describing one frame; every other line is ignored.
Malformed payloads are logged and skipped so one bad line never ends a turn.
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, List, Optional

from models.session_models import GameplayOption
from models.stream_frames import (
    CONTENT,
    END,
    FRAME_PREFIX,
    OPTIONS,
    ContentFrame,
    EndFrame,
    Frame,
    OptionsFrame,
)

LOGGER = logging.getLogger(__name__)


def _parse_options(raw: Any) -> List[GameplayOption]:
    """Return the options carried by an options payload, in order."""
    if not raw:
        return []
    if not isinstance(raw, list):
        LOGGER.warning("Options payload is not a list (%s); treating as empty", type(raw).__name__)
        return []
    options: List[GameplayOption] = []
    for index, entry in enumerate(raw, start=1):
        if not isinstance(entry, dict) or not isinstance(entry.get("text"), str):
            LOGGER.warning("Skipping malformed option at position %d: %r", index, entry)
            continue
        option_id = entry.get("id")
        options.append(GameplayOption(id=option_id if option_id is not None else index, text=entry["text"]))
    return options


def parse_frame_line(line: str, prefix: str = FRAME_PREFIX) -> Optional[Frame]:
    """Return the frame carried by one stream line, or None if there is none.

    Args:
        line: A single line of decoded stream text, without its terminator.
        prefix: Marker that identifies frame lines.

    Returns:
        The parsed frame, or None for non-frame lines and dropped payloads.
    """
    if not line.startswith(prefix):
        return None
    raw = line[len(prefix):]
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        LOGGER.warning("Dropping malformed stream frame %r: %s", raw[:200], exc)
        return None
    if not isinstance(payload, dict):
        LOGGER.warning("Dropping stream frame that is not a JSON object: %r", raw[:200])
        return None

    frame_type = payload.get("type")
    if frame_type == CONTENT:
        text = payload.get("content")
        if not isinstance(text, str):
            LOGGER.warning("Dropping content frame without text: %r", raw[:200])
            return None
        return ContentFrame(text=text)
    if frame_type == OPTIONS:
        return OptionsFrame(options=_parse_options(payload.get("options")))
    if frame_type == END:
        return EndFrame()
    LOGGER.warning("Ignoring stream frame with unknown type %r", frame_type)
    return None


class StreamFrameDecoder:
    """Turn raw stream bytes into an ordered sequence of frames.

    Bytes may arrive split anywhere, including inside a multi-byte character
    or in the middle of a line; partial data is buffered until it completes.
    """

    def __init__(self, prefix: str = FRAME_PREFIX, encoding: str = "utf-8") -> None:
        self.prefix = prefix
        self._text_decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop decoding; no further frames are emitted after this call."""
        self._cancelled = True

    def feed(self, chunk: bytes) -> List[Frame]:
        """Consume one chunk and return the frames completed by it."""
        if self._cancelled:
            return []
        text = self._pending + self._text_decoder.decode(chunk)
        lines = text.split("\n")
        self._pending = lines.pop()
        return self._parse_lines(lines)

    def flush(self) -> List[Frame]:
        """Return frames from any trailing data once the stream has ended."""
        if self._cancelled:
            return []
        text = self._pending + self._text_decoder.decode(b"", final=True)
        self._pending = ""
        return self._parse_lines(text.split("\n")) if text else []

    async def decode(self, chunks: AsyncIterable[bytes]) -> AsyncIterator[Frame]:
        """Yield frames from an async byte stream in arrival order.

        Errors raised by the transport after `cancel()` are treated as the
        expected consequence of aborting the reader and end the sequence.
        """
        try:
            async for chunk in chunks:
                if self._cancelled:
                    return
                for frame in self.feed(chunk):
                    if self._cancelled:
                        return
                    yield frame
        except Exception as exc:
            if self._cancelled:
                LOGGER.debug("Stream reader closed after cancellation: %s", exc)
                return
            raise
        for frame in self.flush():
            yield frame

    def _parse_lines(self, lines: List[str]) -> List[Frame]:
        frames: List[Frame] = []
        for line in lines:
            frame = parse_frame_line(line.rstrip("\r"), self.prefix)
            if frame is not None:
                frames.append(frame)
        return frames
