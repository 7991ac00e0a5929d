import pytest

from models.session_models import ASSISTANT, USER, GameplayOption, ImageRef, Message
from player.transcript_store import APPENDED, PATCHED, ROLLED_BACK, TranscriptStore


def _message(role: str, content: str = "", **kwargs) -> Message:
    return Message(session_id="sess-1", game_id=7, role=role, content=content, **kwargs)


def test_messages_keep_creation_order():
    store = TranscriptStore()
    first = store.append(_message(ASSISTANT, "Intro"))
    second = store.append(_message(USER, "Open the door"))

    assert [m.id for m in store.messages()] == [first.id, second.id]
    assert store.last().id == second.id


def test_duplicate_ids_are_rejected():
    store = TranscriptStore()
    message = store.append(_message(USER, "Hi"))
    with pytest.raises(ValueError):
        store.append(message)


def test_rollback_removes_user_message_entirely():
    store = TranscriptStore()
    intro = store.append(_message(ASSISTANT, "Intro", options=[]))
    prompt = store.append(_message(USER, "Jump"))

    store.rollback(prompt.id)

    assert [m.id for m in store.messages()] == [intro.id]
    with pytest.raises(KeyError):
        store.get(prompt.id)


def test_assistant_messages_cannot_be_rolled_back():
    store = TranscriptStore()
    message = store.append(_message(ASSISTANT, "Intro"))
    with pytest.raises(ValueError):
        store.rollback(message.id)


def test_finalized_assistant_message_only_accepts_image_changes():
    store = TranscriptStore()
    message = store.append(_message(ASSISTANT, "Done", options=[GameplayOption(1, "Go")]))

    store.patch(message.id, is_generating_image=True)
    store.patch(message.id, narrative_image=ImageRef(url="https://img.test/1.png"), is_generating_image=False)

    assert store.get(message.id).narrative_image.url == "https://img.test/1.png"
    with pytest.raises(ValueError):
        store.patch(message.id, content="rewritten")


def test_patch_rejects_unknown_fields():
    store = TranscriptStore()
    message = store.append(_message(ASSISTANT, "x", is_streaming=True))
    with pytest.raises(ValueError):
        store.patch(message.id, role=USER)


def test_snapshot_is_detached_from_store():
    store = TranscriptStore()
    message = store.append(_message(ASSISTANT, "Intro", options=[GameplayOption(1, "Go")]))

    snapshot = store.messages()
    snapshot[0].content = "changed"
    snapshot[0].options.append(GameplayOption(2, "Stay"))

    assert store.get(message.id).content == "Intro"
    assert len(store.get(message.id).options) == 1


def test_listeners_see_every_mutation():
    store = TranscriptStore()
    events = []
    unsubscribe = store.subscribe(lambda event, msg: events.append((event, msg.content)))

    assistant = store.append(_message(ASSISTANT, "A", is_streaming=True))
    store.patch(assistant.id, content="AB")
    prompt = store.append(_message(USER, "go"))
    store.rollback(prompt.id)
    unsubscribe()
    store.append(_message(USER, "ignored"))

    assert events == [(APPENDED, "A"), (PATCHED, "AB"), (APPENDED, "go"), (ROLLED_BACK, "go")]


def test_failing_listener_does_not_break_the_store():
    store = TranscriptStore()

    def broken(event, message):
        raise RuntimeError("renderer crashed")

    store.subscribe(broken)
    message = store.append(_message(USER, "still here"))

    assert store.get(message.id).content == "still here"
