"""Deduplicating cache for illustration requests."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from typing import Awaitable, Callable, Dict, Optional, Tuple

from models.session_models import ImageRef

LOGGER = logging.getLogger(__name__)

ImageGenerator = Callable[[], Awaitable[Optional[ImageRef]]]


class ImageRequestCache:
    """Cache generated images by prompt key.

    Concurrent requests for the same key share one pending fetch. Failed
    fetches are never cached, so the next request for that key retries.
    Entries are evicted least-recently-used once `max_entries` is reached and
    expire after `ttl_seconds` when a TTL is set.
    """

    def __init__(
        self,
        max_entries: int = 256,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[ImageRef, float]]" = OrderedDict()
        self._in_flight: Dict[str, "asyncio.Future[Optional[ImageRef]]"] = {}
        self.hits = 0
        self.misses = 0
        self.fetches = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, prompt_key: str) -> bool:
        return self._lookup(prompt_key) is not None

    def get(self, prompt_key: str) -> Optional[ImageRef]:
        """Return the cached image for `prompt_key`, if any."""
        image = self._lookup(prompt_key)
        if image is None:
            self.misses += 1
        else:
            self.hits += 1
        return image

    def is_pending(self, prompt_key: str) -> bool:
        return prompt_key in self._in_flight

    async def fetch_and_cache(self, prompt_key: str, generator: ImageGenerator) -> Optional[ImageRef]:
        """Return the image for `prompt_key`, generating it at most once at a time.

        Args:
            prompt_key: Deterministic key derived from the image prompt.
            generator: Zero-argument coroutine factory that performs the call.

        Returns:
            The cached or freshly generated image, or None when generation failed.
        """
        cached = self.get(prompt_key)
        if cached is not None:
            return cached

        pending = self._in_flight.get(prompt_key)
        if pending is None:
            pending = asyncio.ensure_future(self._fetch(prompt_key, generator))
            self._in_flight[prompt_key] = pending
        else:
            LOGGER.debug("Joining in-flight image request for %.60r", prompt_key)
        # Shielded so one waiter's cancellation does not abort the shared fetch.
        return await asyncio.shield(pending)

    async def _fetch(self, prompt_key: str, generator: ImageGenerator) -> Optional[ImageRef]:
        self.fetches += 1
        try:
            try:
                image = await generator()
            except Exception as exc:
                LOGGER.warning("Image generation failed for %.60r: %s", prompt_key, exc)
                return None
            if image is None:
                LOGGER.warning("Image generation returned nothing for %.60r", prompt_key)
                return None
            self._store(prompt_key, image)
            return image
        finally:
            self._in_flight.pop(prompt_key, None)

    def _lookup(self, prompt_key: str) -> Optional[ImageRef]:
        entry = self._entries.get(prompt_key)
        if entry is None:
            return None
        image, stored_at = entry
        if self.ttl_seconds is not None and self._clock() - stored_at > self.ttl_seconds:
            del self._entries[prompt_key]
            return None
        self._entries.move_to_end(prompt_key)
        return image

    def _store(self, prompt_key: str, image: ImageRef) -> None:
        self._entries[prompt_key] = (image, self._clock())
        self._entries.move_to_end(prompt_key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            LOGGER.debug("Evicted cached image %.60r", evicted)
