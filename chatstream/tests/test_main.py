"""Tests for the command-line entry point."""

from unittest.mock import MagicMock, patch

from chatstream.core.errors import APIError, ErrorDetail
from chatstream.main import main


def _mock_client(mock_cls, tokens=None, error=None):
    client = MagicMock()
    mock_cls.return_value.__enter__.return_value = client

    def gen(*args, **kwargs):
        yield from tokens or []
        if error is not None:
            raise error

    client.generate_stream.side_effect = gen
    return client


def test_main_requires_prompt(capsys):
    assert main([]) == 2
    assert "usage" in capsys.readouterr().err


def test_main_requires_api_key():
    assert main(["Hi"]) == 1


def test_main_streams_tokens(monkeypatch, capsys):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("OPENAI_MODEL", "gpt-4")
    with patch("chatstream.main.Client") as mock_cls:
        client = _mock_client(mock_cls, tokens=["Hel", "lo"])
        assert main(["Hi", "Be brief."]) == 0
    assert capsys.readouterr().out == "Hello\n"
    client.generate_stream.assert_called_once_with("Hi", model="gpt-4", system="Be brief.")


def test_main_reports_stream_error(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    with patch("chatstream.main.Client") as mock_cls:
        _mock_client(mock_cls, tokens=["partial"], error=APIError(ErrorDetail(message="boom")))
        assert main(["Hi"]) == 1
