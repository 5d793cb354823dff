"""chatstream: typed client for OpenAI-compatible chat and completion APIs."""

from chatstream.client import AsyncClient, Client, endpoint_supports_model
from chatstream.core.errors import (
    APIError,
    ChatStreamError,
    EndOfStream,
    RequestError,
    StreamDecodeError,
    TooManyEmptyStreamMessages,
)
from chatstream.stream.reader import AsyncStreamReader, StreamReader

__all__ = [
    "APIError",
    "AsyncClient",
    "AsyncStreamReader",
    "ChatStreamError",
    "Client",
    "EndOfStream",
    "RequestError",
    "StreamDecodeError",
    "StreamReader",
    "TooManyEmptyStreamMessages",
    "endpoint_supports_model",
]
