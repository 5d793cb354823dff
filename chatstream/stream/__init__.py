"""Event-stream reading: line sources and typed stream readers."""

from chatstream.stream.lines import (
    AsyncLineSource,
    AsyncResponseLineSource,
    FileLineSource,
    LineSource,
    ResponseLineSource,
)
from chatstream.stream.reader import AsyncStreamReader, StreamReader

__all__ = [
    "AsyncLineSource",
    "AsyncResponseLineSource",
    "AsyncStreamReader",
    "FileLineSource",
    "LineSource",
    "ResponseLineSource",
    "StreamReader",
]
