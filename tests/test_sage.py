"""
A 'mock and drive' test for sage.py.

- Points the config at a synthesized platform
- Mocks the user's keystrokes
- Starts the application and exits
"""

from unittest.mock import patch

import pytest

from sagestate import sage


@patch("sagestate.sage.setup_keyring_backend")
@patch("sagestate.sage.init_logger")
@patch("sagestate.globals.prompt")  # Mock the user input
def test_application_startup_and_quit(
    mock_prompt, mock_init_logger, mock_keyring, monkeypatch
):
    """
    1. Starts sage.py with an environment-defined platform.
    2. Mocks the user typing a command, then '.exit'.
    3. Verifies the app shuts down cleanly.
    """
    monkeypatch.setenv("SAGESTATE_PLATFORM", "openai")
    mock_prompt.side_effect = [".set temperature 0.2", "", "hello?", ".exit"]

    with pytest.raises(SystemExit) as exc:
        sage.main()

    assert exc.value.code == 0
    assert mock_prompt.call_count == 4
    mock_init_logger.assert_called_once()


@patch("sagestate.sage.setup_keyring_backend")
@patch("sagestate.sage.init_logger")
@patch("sagestate.globals.prompt")
def test_application_ctrl_d_quits(mock_prompt, mock_init_logger, mock_keyring, monkeypatch):
    monkeypatch.setenv("SAGESTATE_PLATFORM", "openai")
    mock_prompt.side_effect = EOFError

    with pytest.raises(SystemExit) as exc:
        sage.main()
    assert exc.value.code == 0


@patch("sagestate.sage.setup_keyring_backend")
@patch("sagestate.sage.init_logger")
@patch("sagestate.globals.prompt")
def test_startup_error_is_reported(
    mock_prompt, mock_init_logger, mock_keyring, monkeypatch
):
    """An unresolvable platform stops startup before the prompt loop."""
    monkeypatch.setenv("SAGESTATE_PLATFORM", "nonexistent")

    assert sage.main() is None
    mock_prompt.assert_not_called()
