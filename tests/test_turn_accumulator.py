import pytest

from models.session_models import ASSISTANT, USER, GameplayOption, Message, Session
from models.stream_frames import ContentFrame, EndFrame, OptionsFrame
from player.transcript_store import TranscriptStore
from player.turn_accumulator import TurnAccumulator, split_narrative

SESSION = Session(session_id="sess-1", game_id=7)


def _run(store: TranscriptStore, *frames):
    accumulator = TurnAccumulator(store, SESSION)
    result = None
    for frame in frames:
        result = accumulator.apply(frame) or result
    return accumulator, result


def test_content_frames_concatenate_and_options_attach_on_end():
    store = TranscriptStore()
    options = [GameplayOption(id=1, text="Light a torch")]

    _, message = _run(
        store,
        ContentFrame("You enter a "),
        ContentFrame("dark room."),
        OptionsFrame(options),
        EndFrame(),
    )

    assert message.content == "You enter a dark room."
    assert message.options == options
    assert message.is_finalized
    assert len(store) == 1


def test_enumerated_list_is_cut_from_narrative():
    store = TranscriptStore()
    options = [GameplayOption(id=1, text="Push"), GameplayOption(id=2, text="Pull")]

    _, message = _run(store, ContentFrame("The door creaks.\n1. Push\n2. Pull"), OptionsFrame(options), EndFrame())

    assert message.content == "The door creaks."
    assert [o.text for o in message.options] == ["Push", "Pull"]


def test_parenthesis_marker_and_blank_lines_are_recognized():
    options = [GameplayOption(id=1, text="Run")]
    assert split_narrative("Wolves howl.  \n\n  1) Run\n2) Hide", options) == "Wolves howl."


def test_text_without_marker_is_kept_verbatim():
    options = [GameplayOption(id=1, text="Wait")]
    content = "Rain hammers the shutters.\nYou count to 10. Nothing."
    assert split_narrative(content, options) == content


def test_marker_is_ignored_when_there_are_no_options():
    store = TranscriptStore()
    _, message = _run(store, ContentFrame("Intro.\n1. Something"), OptionsFrame([]), EndFrame())
    assert message.content == "Intro.\n1. Something"
    assert message.options == []


def test_marker_at_very_start_is_not_truncated():
    options = [GameplayOption(id=1, text="Go")]
    assert split_narrative("\n1. Go", options) == "\n1. Go"


def test_split_is_idempotent():
    options = [GameplayOption(id=1, text="Push")]
    once = split_narrative("The door creaks.\n1. Push", options)
    assert split_narrative(once, options) == once


def test_message_is_created_lazily_on_first_content():
    store = TranscriptStore()
    accumulator = TurnAccumulator(store, SESSION)

    accumulator.apply(OptionsFrame([GameplayOption(id=1, text="Go")]))
    assert len(store) == 0

    accumulator.apply(ContentFrame("Fog rolls in."))
    assert len(store) == 1
    assert store.last().role == ASSISTANT
    assert store.last().is_streaming
    assert store.last().options is None


def test_new_turn_appends_instead_of_mutating_previous_assistant_message():
    store = TranscriptStore()
    _, first = _run(store, ContentFrame("First."), EndFrame())
    _, second = _run(store, ContentFrame("Second."), EndFrame())

    assert first.id != second.id
    assert [m.content for m in store.messages()] == ["First.", "Second."]


def test_end_without_content_still_yields_one_assistant_message():
    store = TranscriptStore()
    store.append(Message(session_id="sess-1", game_id=7, role=USER, content="Look around"))

    _, message = _run(store, OptionsFrame([]), EndFrame())

    assert message.role == ASSISTANT
    assert message.content == ""
    assert [m.role for m in store.messages()] == [USER, ASSISTANT]


def test_frames_after_end_are_ignored(caplog):
    store = TranscriptStore()
    accumulator, message = _run(store, ContentFrame("Done."), EndFrame())

    assert accumulator.apply(ContentFrame(" More?")) is None
    assert store.get(message.id).content == "Done."
    assert "after the turn ended" in caplog.text


def test_turn_without_end_stays_open():
    store = TranscriptStore()
    accumulator, result = _run(store, ContentFrame("The bridge sways"), OptionsFrame([GameplayOption(1, "Cross")]))

    assert result is None
    assert not accumulator.finalized
    assert accumulator.message.is_streaming
    assert accumulator.message.options is None


def test_next_turn_closes_message_left_open():
    store = TranscriptStore()
    stale, _ = _run(store, ContentFrame("Half a sentence"))

    TurnAccumulator(store, SESSION)

    assert store.open_assistant() is None
    assert store.get(stale.message_id).content == "Half a sentence"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Mist.\r\n1. Go", "Mist."),
        ("Mist.\n\t1.  Go", "Mist."),
        ("Mist.\n2. Go", "Mist.\n2. Go"),
        ("Mist.\n1.Go", "Mist.\n1.Go"),
    ],
)
def test_marker_variants(raw, expected):
    assert split_narrative(raw, [GameplayOption(id=1, text="Go")]) == expected
