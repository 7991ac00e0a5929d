from typing import Dict

from fastapi import Request

from services.openai.image_generator import ImageGenerator


async def generate_image(request: Request, prompt: str) -> Dict[str, str]:
    """Controller that renders an illustration for a prompt.

    Args:
        request: FastAPI Request (to access app.state.image_generator).
        prompt: Text prompt built by the player.

    Returns:
        A dict with the `imageUrl` of the generated image.
    """
    generator: ImageGenerator = request.app.state.image_generator
    image_url = await generator.generate(prompt)
    return {"imageUrl": image_url}
