"""End-to-end tests: the player driving the FastAPI service in-process."""

from typing import List

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from controllers.game_controller import format_frame
from dal.game_dal import GameDAL
from models.game_record import GameRecord
from models.session_models import GameplayOption
from models.stream_frames import ContentFrame, EndFrame, OptionsFrame
from player.api_client import PlayApiClient
from player.config import PlayerConfig
from player.errors import TurnFailedError
from player.session_controller import ControllerState, SessionController
from routes.game_route import router as game_router
from routes.image_route import router as image_router
from routes.session_route import router as session_router
from services.story.session_store import SessionStore
from utils.database_init import AsyncDatabaseInitializer

BASE_URL = "http://service.test"
FAIL = object()


class ScriptedNarrator:
    """Replays canned turns and records the history each turn saw."""

    def __init__(self, turns: List[list]) -> None:
        self.turns = turns
        self.histories: List[List[str]] = []

    async def stream_turn(self, game, history):
        self.histories.append([f"{m.role}:{m.content}" for m in history])
        for frame in self.turns.pop(0):
            if frame is FAIL:
                raise RuntimeError("model overloaded")
            yield frame


class StubIllustrator:
    def __init__(self) -> None:
        self.prompts: List[str] = []

    async def generate(self, prompt: str) -> str:
        prompt = prompt.strip()
        if not prompt:
            raise ValueError("Image prompt is required.")
        self.prompts.append(prompt)
        return f"https://img.test/{len(self.prompts)}.png"


def _turn(text: str, *choices: str) -> list:
    return [
        ContentFrame(text),
        OptionsFrame([GameplayOption(i, c) for i, c in enumerate(choices, start=1)]),
        EndFrame(),
    ]


@pytest_asyncio.fixture
async def app(tmp_path):
    app = FastAPI()
    app.include_router(session_router)
    app.include_router(game_router)
    app.include_router(image_router)
    app.state.db_initializer = AsyncDatabaseInitializer(tmp_path)
    app.state.session_store = SessionStore()
    app.state.image_generator = StubIllustrator()
    await GameDAL(app.state.db_initializer).create_game(
        GameRecord(id=None, slug="orbit-of-ash", title="Orbit of Ash", genre="sci-fi", primary_color="#38bdf8")
    )
    return app


@pytest.fixture
def http(app):
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=BASE_URL)


@pytest.mark.asyncio
async def test_game_lookup(http):
    found = await http.get("/api/games/orbit-of-ash")
    missing = await http.get("/api/games/nowhere")

    assert found.status_code == 200
    assert found.json()["primaryColor"] == "#38bdf8"
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_session_endpoint_issues_ids(http):
    first = (await http.get("/api/session/new")).json()
    second = (await http.get("/api/session/new")).json()

    assert first["success"] is True
    assert first["data"]["sessionId"] != second["data"]["sessionId"]


@pytest.mark.asyncio
async def test_chat_validates_input(http):
    empty = await http.post("/api/games/chat", json={"sessionId": "s", "gameId": 1, "message": "  "})
    bad_id = await http.post("/api/games/chat", json={"sessionId": "s", "gameId": "abc", "message": "hi"})
    unknown = await http.post("/api/games/chat", json={"sessionId": "s", "gameId": 99, "message": "hi"})

    assert empty.status_code == 400
    assert bad_id.status_code == 400
    assert unknown.status_code == 404


@pytest.mark.asyncio
async def test_image_endpoint(app, http):
    ok = await http.post("/api/generate-image", json={"prompt": "a dead station"})
    empty = await http.post("/api/generate-image", json={"prompt": " "})

    assert ok.json() == {"imageUrl": "https://img.test/1.png"}
    assert empty.status_code == 400


@pytest.mark.asyncio
async def test_player_plays_against_service(app, http):
    narrator = ScriptedNarrator(
        [
            _turn("Alarms wail.\n1. Seal the door\n2. Run", "Seal the door", "Run"),
            _turn("The door hisses shut.", "Breathe"),
        ]
    )
    app.state.story_generator = narrator
    api = PlayApiClient(BASE_URL, client=http)
    game = await api.get_game("orbit-of-ash")
    controller = SessionController(game, api, config=PlayerConfig(base_url=BASE_URL))

    await controller.start()
    reply = await controller.send("Seal the door")
    await controller.wait_for_images()

    messages = controller.store.messages()
    assert [m.content for m in messages] == ["Alarms wail.", "Seal the door", "The door hisses shut."]
    assert reply.options[0].text == "Breathe"
    assert messages[-1].narrative_image.url.startswith("https://img.test/")
    assert "Seal the door" in narrator.histories[1][-1]
    assert len(narrator.histories[1]) == 3


@pytest.mark.asyncio
async def test_failed_narration_is_reported_and_forgotten(app, http):
    narrator = ScriptedNarrator(
        [
            _turn("Alarms wail.", "Run"),
            [ContentFrame("The hull"), FAIL],
            _turn("You run.", "Hide"),
        ]
    )
    app.state.story_generator = narrator
    api = PlayApiClient(BASE_URL, client=http)
    controller = SessionController(
        await api.get_game("orbit-of-ash"), api, config=PlayerConfig(illustrate_turns=False)
    )
    await controller.start()

    with pytest.raises(TurnFailedError):
        await controller.send("Run")
    assert controller.state is ControllerState.PLAYING

    await controller.send("Run")

    # The failed exchange never reached the server-side conversation.
    assert narrator.histories[2][1:] == ["assistant:Alarms wail.", "user:Run"]


def test_frames_are_written_as_data_lines():
    assert format_frame(ContentFrame("Alarms wail.")) == 'data: {"type": "content", "content": "Alarms wail."}\n\n'
    assert format_frame(OptionsFrame([GameplayOption(1, "Run")])) == (
        'data: {"type": "options", "options": [{"id": 1, "text": "Run"}]}\n\n'
    )
    assert format_frame(EndFrame()) == 'data: {"type": "end"}\n\n'
