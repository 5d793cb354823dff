"""Line sources for event-stream readers.

A line source hands out one `\\n`-terminated line per `read_line()` call and
raises `EOFError` once the body is exhausted. A trailing fragment without a
terminator counts as exhaustion and is dropped. Transport errors from the
underlying body propagate unchanged.
"""

from __future__ import annotations

from typing import AsyncIterator, BinaryIO, Iterator, Protocol, runtime_checkable

import httpx

_NEWLINE = b"\n"


@runtime_checkable
class LineSource(Protocol):
    """Blocking line source."""

    def read_line(self) -> bytes:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class AsyncLineSource(Protocol):
    """Line source read from a coroutine."""

    async def read_line(self) -> bytes:
        ...

    async def close(self) -> None:
        ...


class FileLineSource:
    """Wraps a binary file-like object (io.BytesIO, a socket file, a pipe)."""

    def __init__(self, fileobj: BinaryIO) -> None:
        self._file = fileobj

    def read_line(self) -> bytes:
        line = self._file.readline()
        if not line.endswith(_NEWLINE):
            raise EOFError("stream closed")
        return line

    def close(self) -> None:
        self._file.close()


def _split_line(buf: bytearray) -> bytes | None:
    idx = buf.find(_NEWLINE)
    if idx < 0:
        return None
    line = bytes(buf[: idx + 1])
    del buf[: idx + 1]
    return line


class ResponseLineSource:
    """Reads lines from an open streaming `httpx.Response`. Owns the response."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        self._chunks: Iterator[bytes] = response.iter_bytes()
        self._buf = bytearray()

    def read_line(self) -> bytes:
        while True:
            line = _split_line(self._buf)
            if line is not None:
                return line
            try:
                chunk = next(self._chunks)
            except StopIteration:
                raise EOFError("response body closed") from None
            self._buf += chunk

    def close(self) -> None:
        self.response.close()


class AsyncResponseLineSource:
    """Async counterpart of ResponseLineSource over `aiter_bytes()`."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        self._chunks: AsyncIterator[bytes] = response.aiter_bytes()
        self._buf = bytearray()

    async def read_line(self) -> bytes:
        while True:
            line = _split_line(self._buf)
            if line is not None:
                return line
            try:
                chunk = await self._chunks.__anext__()
            except StopAsyncIteration:
                raise EOFError("response body closed") from None
            self._buf += chunk

    async def close(self) -> None:
        await self.response.aclose()
