"""Illustration service using the OpenAI Images API."""

import logging
from typing import Any

from openai import AsyncOpenAI


class ImageGenerator:
    """Turn a text prompt into an image URL the player can display."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-image-1", size: str = "1536x1024") -> None:
        if client is None:
            raise ValueError("OpenAI client must be provided.")
        self.client = client
        self.model = model
        self.size = size

    async def generate(self, prompt: str) -> str:
        """Return a URL (hosted or base64 data URL) for the generated image.

        Raises:
            ValueError: If the prompt is empty.
            RuntimeError: If the API returns no usable image.
        """
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValueError("Image prompt is required.")
        try:
            response = await self.client.images.generate(model=self.model, prompt=prompt, size=self.size, n=1)
        except Exception as exc:
            logging.error("OpenAI image generation failed: %s", exc)
            raise
        return self._image_url(response)

    @staticmethod
    def _image_url(response: Any) -> str:
        data = getattr(response, "data", None) or []
        if not data:
            raise RuntimeError("Image generation returned no data.")
        first = data[0]
        b64_json = getattr(first, "b64_json", None)
        if b64_json:
            return f"data:image/png;base64,{b64_json}"
        url = getattr(first, "url", None)
        if url:
            return url
        raise RuntimeError("Image generation returned neither a URL nor image bytes.")
