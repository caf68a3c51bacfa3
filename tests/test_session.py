"""Session state, accounting and persistence."""

import json
import os
from unittest.mock import patch

import pytest

from sagestate.errors import ConfigIOError, ResolutionError, UsageError
from sagestate.input import Input
from sagestate.models import Model
from sagestate.session import SUMMARY_PROMPT, Session


@pytest.fixture
def model() -> Model:
    return Model("openai", "gpt-4", max_input_tokens=100, max_output_tokens=50)


def test_new_session_is_clean(model):
    session = Session("work", model, temperature=0.4)
    assert session.is_empty()
    assert session.dirty is False
    assert session.compressing is False
    assert session.model_id == "openai:gpt-4"
    assert session.temperature == 0.4
    assert session.save_session is None


@pytest.mark.parametrize(
    "mutate",
    [
        lambda s: s.add_message(Input("hi"), "hello"),
        lambda s: s.set_temperature(0.1),
        lambda s: s.set_top_p(0.2),
        lambda s: s.set_save_session(False),
        lambda s: s.set_model(Model("claude", "claude-3-haiku-20240307")),
        lambda s: s.clear_messages(),
    ],
)
def test_mutations_mark_dirty(model, mutate):
    session = Session("work", model)
    mutate(session)
    assert session.dirty is True


def test_bind_model_keeps_clean(model):
    session = Session("work", model)
    session.bind_model(Model("claude", "claude-3-haiku-20240307"))
    assert session.model_id == "claude:claude-3-haiku-20240307"
    assert session.dirty is False


def test_messages_and_accounting(model):
    session = Session("work", model)
    session.add_message(Input("hello there"), "general kenobi")
    session.add_message(Input("one", medias=["a.png"]), "two")

    assert session.user_messages_len() == 2
    assert session.messages[2] == {"role": "user", "content": "![](a.png)\none"}
    # 2 + 2 + 2 + 1 words
    assert session.tokens_and_percent() == (7, 7.0)

    session.clear_messages()
    assert session.is_empty()
    assert session.tokens_and_percent() == (0, 0.0)


def test_percent_without_input_window():
    session = Session("work", Model("ollama", "llama3"))
    session.add_message(Input("a b"), "c")
    assert session.tokens_and_percent() == (3, 0)


def test_build_messages_uses_patched_text(model):
    session = Session("work", model)
    session.add_message(Input("q1"), "a1")
    pending = Input("raw question", patched_text="augmented question")
    messages = session.build_messages(pending)
    assert [m["role"] for m in messages] == ["user", "assistant", "user"]
    assert messages[-1]["content"] == "augmented question"
    assert len(session.messages) == 2


def test_compress_folds_history(model):
    session = Session("work", model)
    session.add_message(Input("long question"), "long answer")
    session.compressing = True

    session.compress("  we talked  ")

    assert session.compressing is False
    assert session.messages == [
        {"role": "system", "content": f"{SUMMARY_PROMPT}we talked"}
    ]
    assert len(session.compressed_messages) == 2
    assert not session.is_empty()


def test_needs_compression(model):
    session = Session("work", model)
    session.add_message(Input("a b c"), "d e")
    assert session.needs_compression(4) is True
    assert session.needs_compression(10) is False
    assert session.needs_compression(0) is False

    session.compressing = True
    assert session.needs_compression(4) is False


def test_needs_compression_on_full_window():
    session = Session("work", Model("openai", "tiny", max_input_tokens=3))
    session.add_message(Input("a b"), "c")
    assert session.needs_compression(0) is True


def test_save_and_load_round_trip(tmp_path, model):
    session = Session("work", model, temperature=0.7, top_p=0.9)
    session.set_save_session(False)
    session.add_message(Input("first"), "one")
    session.add_message(Input("second"), "two")

    session.save(str(tmp_path))

    path = tmp_path / "work.json"
    assert session.dirty is False
    assert session.path == str(path)
    assert not (tmp_path / "work.json.tmp").exists()
    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["name"] == "work"
    assert raw["model"] == "openai:gpt-4"

    loaded = Session.load("work", str(path))
    assert loaded.model_id == "openai:gpt-4"
    assert loaded.temperature == 0.7
    assert loaded.top_p == 0.9
    assert loaded.save_session is False
    assert loaded.messages == session.messages
    assert loaded.dirty is False


def test_failed_write_keeps_previous_file(tmp_path, model):
    session = Session("work", model)
    session.add_message(Input("keep me"), "kept")
    session.save(str(tmp_path))
    before = (tmp_path / "work.json").read_text(encoding="utf-8")

    session.add_message(Input("lost"), "lost")
    with patch("sagestate.session.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(ConfigIOError, match="Failed to write session"):
            session.save(str(tmp_path))

    assert (tmp_path / "work.json").read_text(encoding="utf-8") == before
    assert session.dirty is True
    assert not (tmp_path / "work.json.tmp").exists()


def test_exit_respects_save_toggle(tmp_path, model):
    session = Session("work", model)
    session.add_message(Input("hi"), "hello")

    session.exit(str(tmp_path), save_session=False)
    assert not os.path.exists(tmp_path / "work.json")

    session.exit(str(tmp_path), save_session=True)
    assert os.path.exists(tmp_path / "work.json")


def test_load_errors(tmp_path):
    with pytest.raises(ResolutionError, match="No session file"):
        Session.load("ghost", str(tmp_path / "ghost.json"))

    broken = tmp_path / "broken.json"
    broken.write_text("[1, 2", encoding="utf-8")
    with pytest.raises(ResolutionError, match="Corrupted session file"):
        Session.load("broken", str(broken))

    no_model = tmp_path / "nomodel.json"
    no_model.write_text(json.dumps({"messages": []}), encoding="utf-8")
    with pytest.raises(ResolutionError, match="Invalid session file"):
        Session.load("nomodel", str(no_model))


@pytest.mark.parametrize(
    "data",
    [
        {"model": 42},
        {"model": "openai:gpt-4", "temperature": "hot"},
        {"model": "openai:gpt-4", "top_p": True},
        {"model": "openai:gpt-4", "save_session": "false"},
        {"model": "openai:gpt-4", "save_session": 0},
        {"model": "openai:gpt-4", "messages": {"role": "user"}},
        {"model": "openai:gpt-4", "messages": [{"content": "x"}]},
        {"model": "openai:gpt-4", "compressed_messages": ["x"]},
    ],
)
def test_load_rejects_mistyped_fields(tmp_path, data):
    path = tmp_path / "typed.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    with pytest.raises(ResolutionError, match="Invalid session file"):
        Session.load("typed", str(path))


def test_load_accepts_integer_sampling_values(tmp_path):
    path = tmp_path / "ints.json"
    path.write_text(
        json.dumps({"model": "openai:gpt-4", "temperature": 1, "save_session": False}),
        encoding="utf-8",
    )
    session = Session.load("ints", str(path))
    assert session.temperature == 1
    assert session.save_session is False


def test_save_rejects_names_outside_sessions_dir(tmp_path, model):
    session = Session(os.path.join("..", "escape"), model)
    session.add_message(Input("hi"), "hello")
    with pytest.raises(UsageError, match="Invalid session name"):
        session.save(str(tmp_path / "sessions"))
    assert not (tmp_path / "escape.json").exists()


def test_export_includes_accounting(model):
    session = Session("work", model)
    session.add_message(Input("a"), "b")
    data = json.loads(session.export())
    assert data["name"] == "work"
    assert data["total_tokens"] == 2
    assert data["consume_percent"] == 2.0
    assert data["path"] == "-"
