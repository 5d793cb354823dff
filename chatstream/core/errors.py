"""Error envelopes returned by the API and the exceptions raised by the client."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Inner error object of an API error body."""

    message: str = ""
    type: Optional[str] = None
    param: Optional[str] = None
    code: Any = None


class ErrorResponse(BaseModel):
    """`{"error": {...}}` body sent on failed requests and in broken streams."""

    error: Optional[ErrorDetail] = Field(default=None)


class ChatStreamError(Exception):
    """Base for all errors raised by chatstream."""


class EndOfStream(EOFError):
    """Clean end of an event stream: the server sent `data: [DONE]`."""

    def __init__(self, message: str = "end of stream") -> None:
        super().__init__(message)


class APIError(ChatStreamError):
    """Error reported by the server, either as an HTTP error body or inside a stream."""

    def __init__(self, detail: ErrorDetail, status_code: int | None = None) -> None:
        self.detail = detail
        self.status_code = status_code
        super().__init__(self._format())

    def _format(self) -> str:
        if self.status_code:
            return f"error, status code: {self.status_code}, message: {self.detail.message}"
        return f"error, {self.detail.message}"

    @property
    def message(self) -> str:
        return self.detail.message

    @property
    def type(self) -> Optional[str]:
        return self.detail.type

    @property
    def param(self) -> Optional[str]:
        return self.detail.param

    @property
    def code(self) -> Any:
        return self.detail.code


class RequestError(ChatStreamError):
    """Non-2xx response whose body is not an API error envelope."""

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"error, status code: {status_code}, body: {body[:200]}")


class TooManyEmptyStreamMessages(ChatStreamError):
    """Stream kept sending non-payload lines past the configured limit."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"stream has sent too many empty messages (limit {limit})")


class StreamDecodeError(ChatStreamError):
    """A `data: ` payload (or a flagged error body) could not be decoded."""

    def __init__(self, payload: bytes, message: str = "failed to decode stream payload") -> None:
        self.payload = payload
        super().__init__(f"{message}: {payload[:200]!r}")


class ChatCompletionStreamNotSupported(ChatStreamError):
    def __init__(self) -> None:
        super().__init__(
            "streaming is not supported with this method, please use create_chat_completion_stream"
        )


class ChatCompletionInvalidModel(ChatStreamError):
    def __init__(self, model: str) -> None:
        self.model = model
        super().__init__(
            f"model {model!r} is not supported with this method, "
            "please use create_completion instead"
        )


class CompletionStreamNotSupported(ChatStreamError):
    def __init__(self) -> None:
        super().__init__(
            "streaming is not supported with this method, please use create_completion_stream"
        )


class CompletionInvalidModel(ChatStreamError):
    def __init__(self, model: str) -> None:
        self.model = model
        super().__init__(
            f"model {model!r} is not supported with this method, "
            "please use create_chat_completion instead"
        )


class ContentFieldsMisused(ChatStreamError):
    def __init__(self) -> None:
        super().__init__("can't use both content and multi_content properties simultaneously")
