"""REPL command dispatch and `.set` completion."""

from unittest.mock import MagicMock, patch

import pytest
from prompt_toolkit.document import Document

from sagestate.cli_controller import (
    CLIController,
    SetCompleter,
    complete_bool,
    complete_option_bool,
)
from sagestate.config import GlobalConfig
from sagestate.errors import ConfigIOError
from sagestate.input import Input
from sagestate.ui import GlobalPanels, UIConstructor


@pytest.fixture
def handle(config) -> GlobalConfig:
    return GlobalConfig(config)


@pytest.fixture
def controller(handle) -> CLIController:
    ui = UIConstructor(handle)
    panel = GlobalPanels(ui)
    panel.spawn_error_panel = MagicMock()
    return CLIController(handle, panel, ui)


def test_parse_prefers_longest_command(controller):
    assert controller.parse(".session work") == (".session", "work")
    assert controller.parse(".sessions") == (".sessions", "")
    assert controller.parse(".exit session") == (".exit session", "")
    assert controller.parse(".save session keeper") == (".save session", "keeper")
    assert controller.parse(".SET temperature 0.5") == (".set", "temperature 0.5")
    assert controller.parse("hello") == ("", "hello")


def test_non_command_is_not_handled(controller):
    assert controller.handle_input("tell me a joke") is False


def test_set_and_session_commands(controller, config, isolated_paths):
    assert controller.handle_input(".set temperature 0.4") is True
    assert config.settings.temperature == 0.4

    controller.handle_input(".session work")
    assert config.session.name == "work"
    controller.handle_input(".set temperature 0.9")
    assert config.session.temperature == 0.9
    assert config.settings.temperature == 0.4

    controller.handle_input(".exit session")
    assert config.session is None
    assert (isolated_paths / "sessions" / "work.json").exists()
    controller.panel.spawn_error_panel.assert_not_called()


def test_errors_become_panels(controller, config):
    controller.handle_input(".set temperature")
    controller.panel.spawn_error_panel.assert_called_once()
    assert controller.panel.spawn_error_panel.call_args[0][0] == "USAGE ERROR"

    controller.panel.spawn_error_panel.reset_mock()
    controller.handle_input(".model nowhere:nothing")
    assert controller.panel.spawn_error_panel.call_args[0][0] == "NOT FOUND"

    controller.panel.spawn_error_panel.reset_mock()
    controller.handle_input(".info please")
    assert controller.panel.spawn_error_panel.call_args[0][0] == "USAGE ERROR"

    controller.panel.spawn_error_panel.reset_mock()
    controller.handle_input(".exit session")
    assert controller.panel.spawn_error_panel.call_args[0][0] == "USAGE ERROR"


def test_info_and_listing_commands(controller, config):
    controller.handle_input(".info")
    controller.handle_input(".sessions")
    controller.handle_input(".help")
    controller.handle_input(".session")
    controller.handle_input(".info")
    controller.handle_input(".clear messages")
    controller.panel.spawn_error_panel.assert_not_called()


def test_quit_saves_dirty_session(controller, config, isolated_paths):
    controller.handle_input(".session notes")
    with controller.config.write() as cfg:
        cfg.save_message(Input("remember"), "noted")
    with pytest.raises(SystemExit) as exc:
        controller.handle_input(".quit")
    assert exc.value.code == 0
    assert config.session is None
    assert (isolated_paths / "sessions" / "notes.json").exists()


def test_quit_stays_when_save_fails(controller, config, isolated_paths):
    controller.handle_input(".session notes")
    with controller.config.write() as cfg:
        cfg.save_message(Input("remember"), "noted")
    with patch(
        "sagestate.session.Session.save",
        side_effect=ConfigIOError("disk full"),
    ):
        controller.handle_input(".quit")

    controller.panel.spawn_error_panel.assert_called_once()
    assert controller.panel.spawn_error_panel.call_args[0][0] == "ERROR SAVING"
    assert config.session.name == "notes"
    assert config.session.dirty is True
    assert not (isolated_paths / "sessions" / "notes.json").exists()


def test_complete_helpers():
    assert complete_bool(True) == ["false"]
    assert complete_option_bool(None) == ["true", "false"]
    assert complete_option_bool(True) == ["false", "null"]
    assert complete_option_bool(False) == ["true", "null"]


def test_set_completer(handle):
    completer = SetCompleter(handle)

    def complete(text):
        return [c.text for c in completer.get_completions(Document(text), None)]

    assert complete(".set te") == ["temperature"]
    assert complete(".set save_session ") == ["true", "false"]
    assert complete(".set save ") == ["true"]
    assert complete(".set temperature ") == []
    assert "openai:gpt-4" in complete(".set model openai:")
    assert complete(".model x") == []

    with handle.write() as cfg:
        cfg.set_temperature(0.3)
    assert complete(".set temperature ") == ["0.3", "null"]
