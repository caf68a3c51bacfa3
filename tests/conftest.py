"""
Shared fixtures.

- Every path (config file, sessions, message log) points into tmp_path
- Token counting uses a word counter so no tiktoken download is needed
"""

import pytest

from sagestate.config import Config
from sagestate.settings import Settings

ENV_KEYS = (
    "SAGESTATE_CONFIG_FILE",
    "SAGESTATE_MESSAGES_FILE",
    "SAGESTATE_SESSIONS_DIR",
    "SAGESTATE_PLATFORM",
    "SAGESTATE_MODEL_NAME",
)


@pytest.fixture(autouse=True)
def isolated_paths(tmp_path, monkeypatch):
    monkeypatch.setenv("SAGESTATE_CONFIG_DIR", str(tmp_path))
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr("sagestate.session.encode", lambda text: len(text.split()))
    return tmp_path


@pytest.fixture
def settings() -> Settings:
    s = Settings()
    s.model_id = "openai:gpt-4"
    s.clients = [{"type": "openai"}, {"type": "claude"}]
    return s


@pytest.fixture
def config(settings) -> Config:
    """A ready Config whose seeding confirmation always answers no"""
    cfg = Config(settings, confirm=lambda message: False)
    cfg.setup_model()
    return cfg
