import inspect
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from openai import AsyncOpenAI

from dal.game_dal import GameDAL
from routes.game_route import router as game_router
from routes.image_route import router as image_router
from routes.session_route import router as session_router
from services.catalog_loader import seed_games
from services.openai.image_generator import ImageGenerator
from services.openai.story_generator import StoryGenerator
from services.story.session_store import SessionStore
from utils.database_init import AsyncDatabaseInitializer

BASE_DIR = Path(__file__).resolve().parent

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file if present


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the SQLite database (always new on startup, at DATABASE_DIR/app.db),
        seeded from the GAMES_FILE catalog
      - the OpenAI async client and the narrator/illustrator built on it
      - the in-memory conversation store
    and attach them to `app.state`.
    """
    db_initializer = AsyncDatabaseInitializer()

    # This will delete any existing DB at db_path and create a fresh one.
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer

    games_file = Path(os.getenv("GAMES_FILE") or BASE_DIR / "games.json")
    await seed_games(GameDAL(db_initializer), games_file)

    openai_api_key = os.getenv("OPENAI_API_KEY")
    if not openai_api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable is not set")

    try:
        openai_client = AsyncOpenAI()
    except Exception as exc:
        raise RuntimeError("Failed to initialize OpenAI Async client") from exc

    app.state.openai_client = openai_client
    app.state.story_generator = StoryGenerator(openai_client, model=os.getenv("STORY_MODEL") or "gpt-5")
    app.state.image_generator = ImageGenerator(openai_client, model=os.getenv("IMAGE_MODEL") or "gpt-image-1")
    app.state.session_store = SessionStore()

    try:
        yield
    finally:
        # Gracefully close the OpenAI client if it exposes a close/aclose method.
        client = getattr(app.state, "openai_client", None)
        if client is not None:
            aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
            if aclose is not None:
                try:
                    if inspect.iscoroutinefunction(aclose):
                        await aclose()
                    else:
                        result = aclose()
                        if inspect.isawaitable(result):
                            await result
                except Exception:
                    # Ignore shutdown errors to avoid masking more important issues.
                    pass


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(lifespan=lifespan)

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that verifies DB initializer and OpenAI client presence.
        """
        has_db = hasattr(request.app.state, "db_initializer")
        has_openai = (
            hasattr(request.app.state, "openai_client")
            and request.app.state.openai_client is not None
        )
        return {"ok": True, "db_initialized": has_db, "openai_available": has_openai}

    app.include_router(session_router)
    app.include_router(game_router)
    app.include_router(image_router)

    return app


app = create_app()
