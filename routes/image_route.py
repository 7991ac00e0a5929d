from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.image_controller import generate_image

router = APIRouter(prefix="/api")


class ImagePayload(BaseModel):
	prompt: str


@router.post("/generate-image")
async def generate_image_route(request: Request, payload: ImagePayload):
	"""Return the URL of an illustration generated for the prompt."""
	try:
		return await generate_image(request, payload.prompt)
	except HTTPException:
		raise
	except ValueError as exc:
		raise HTTPException(status_code=400, detail=str(exc)) from exc
	except Exception as exc:
		raise HTTPException(status_code=502, detail=str(exc))
