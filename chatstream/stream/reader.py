"""Incremental event-stream reader.

Consumes a streamed API response line by line:

- `data: <json>` lines are decoded into the reader's target type, one value per `recv()`.
- `data: [DONE]` ends the stream cleanly; `recv()` raises EndOfStream from then on.
- Any other line (keep-alive blank lines, comments, a bare JSON error body) is
  appended to an error accumulator. When the body ends or fails, the accumulator
  is decoded as `{"error": {...}}` and, if it holds an error, APIError is raised
  instead of the read failure.
- With inline error detection, `data: {"error": ...}` is accumulated (without its
  prefix) rather than decoded as an event.

Readers never log. One reader serves one caller; it is not safe for concurrent use.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from pydantic import TypeAdapter, ValidationError

from chatstream.core.errors import (
    APIError,
    EndOfStream,
    ErrorResponse,
    StreamDecodeError,
    TooManyEmptyStreamMessages,
)
from chatstream.stream.lines import AsyncLineSource, LineSource

T = TypeVar("T")

DEFAULT_EMPTY_MESSAGES_LIMIT = 300

_SKIP = object()


@dataclass
class _Scan:
    """Per-`recv()` state: reset on every call."""

    empty_messages: int = 0
    has_error_prefix: bool = False


class _BaseStreamReader(Generic[T]):
    DATA_PREFIX = b"data: "
    ERROR_PREFIX = b'data: {"error":'
    DONE = b"[DONE]"

    def __init__(
        self,
        model: Optional[type[T]] = None,
        *,
        decode: Optional[Callable[[bytes], T]] = None,
        empty_messages_limit: int = DEFAULT_EMPTY_MESSAGES_LIMIT,
        detect_inline_errors: bool = True,
    ) -> None:
        if decode is None:
            if model is None:
                raise TypeError("either model or decode is required")
            decode = TypeAdapter(model).validate_json
        self._decode = decode
        self.empty_messages_limit = empty_messages_limit
        self.detect_inline_errors = detect_inline_errors
        self._errors = bytearray()
        self._finished = False
        self._closed = False

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def accumulated(self) -> bytes:
        """Non-payload bytes collected so far."""
        return bytes(self._errors)

    def _handle_line(self, scan: _Scan, raw: bytes) -> Any:
        line = raw.strip()
        if self.detect_inline_errors and line.startswith(self.ERROR_PREFIX):
            scan.has_error_prefix = True
        if not line.startswith(self.DATA_PREFIX) or scan.has_error_prefix:
            if scan.has_error_prefix:
                line = line[len(self.DATA_PREFIX) :]
            self._errors += line
            scan.empty_messages += 1
            if scan.empty_messages > self.empty_messages_limit:
                raise TooManyEmptyStreamMessages(self.empty_messages_limit)
            return _SKIP

        payload = line[len(self.DATA_PREFIX) :]
        if payload == self.DONE:
            self._finished = True
            raise EndOfStream()
        try:
            return self._decode(payload)
        except ValueError as e:
            raise StreamDecodeError(payload) from e

    def _raise_accumulated(self, cause: Optional[BaseException]) -> None:
        """Raise APIError if the accumulator holds an error body; otherwise return."""
        if not self._errors:
            return
        try:
            envelope = ErrorResponse.model_validate_json(bytes(self._errors))
        except ValidationError:
            return
        if envelope.error is not None:
            raise APIError(envelope.error) from cause

    def _raise_flagged(self) -> None:
        self._raise_accumulated(None)
        raise StreamDecodeError(bytes(self._errors), "unreadable error payload in stream")


class StreamReader(_BaseStreamReader[T]):
    """Blocking reader: `recv()` returns the next decoded event.

    Usage:
        with StreamReader(source, ChatCompletionStreamResponse) as stream:
            for chunk in stream:
                ...
    """

    def __init__(self, source: LineSource, model: Optional[type[T]] = None, **kwargs: Any) -> None:
        super().__init__(model, **kwargs)
        self._source = source

    def recv(self) -> T:
        if self._finished:
            raise EndOfStream()
        try:
            return self._process_lines()
        except Exception:
            # failed streams behave like finished ones
            self._finished = True
            raise

    def _process_lines(self) -> T:
        scan = _Scan()
        while True:
            try:
                raw = self._source.read_line()
            except Exception as e:
                self._raise_accumulated(e)
                raise
            if scan.has_error_prefix:
                self._raise_flagged()
            result = self._handle_line(scan, raw)
            if result is not _SKIP:
                return result

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._source.close()

    def __iter__(self) -> "StreamReader[T]":
        return self

    def __next__(self) -> T:
        try:
            return self.recv()
        except EndOfStream:
            raise StopIteration from None

    def __enter__(self) -> "StreamReader[T]":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class AsyncStreamReader(_BaseStreamReader[T]):
    """Async reader: `await recv()` returns the next decoded event.

    Usage:
        async with AsyncStreamReader(source, ChatCompletionStreamResponse) as stream:
            async for chunk in stream:
                ...
    """

    def __init__(
        self, source: AsyncLineSource, model: Optional[type[T]] = None, **kwargs: Any
    ) -> None:
        super().__init__(model, **kwargs)
        self._source = source

    async def recv(self) -> T:
        if self._finished:
            raise EndOfStream()
        try:
            return await self._process_lines()
        except Exception:
            self._finished = True
            raise

    async def _process_lines(self) -> T:
        scan = _Scan()
        while True:
            try:
                raw = await self._source.read_line()
            except Exception as e:
                self._raise_accumulated(e)
                raise
            if scan.has_error_prefix:
                self._raise_flagged()
            result = self._handle_line(scan, raw)
            if result is not _SKIP:
                return result

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._source.close()

    def __aiter__(self) -> "AsyncStreamReader[T]":
        return self

    async def __anext__(self) -> T:
        try:
            return await self.recv()
        except EndOfStream:
            raise StopAsyncIteration from None

    async def __aenter__(self) -> "AsyncStreamReader[T]":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
