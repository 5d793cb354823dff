"""Pytest fixtures and config."""


import pytest


@pytest.fixture(autouse=True)
def env_cleanup(monkeypatch):
    """Avoid picking up real credentials or overrides from the environment."""
    for name in (
        "OPENAI_API_KEY",
        "OPENAI_BASE_URL",
        "OPENAI_ORG_ID",
        "OPENAI_MODEL",
        "STREAM_EMPTY_MESSAGES_LIMIT",
        "STREAM_DETECT_INLINE_ERRORS",
        "LOG_LEVEL",
        "CHATSTREAM_ENV_PREFIX",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
