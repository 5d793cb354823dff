"""HTTP clients for the chat and completion endpoints.

`Client` wraps `httpx.Client`, `AsyncClient` wraps `httpx.AsyncClient`. Both build the
same requests; streaming methods return a reader that owns the open response and
must be closed by the caller (use it as a context manager).
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Iterator, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from chatstream.config.loader import Config, get_config
from chatstream.core.errors import (
    APIError,
    ChatCompletionInvalidModel,
    ChatCompletionStreamNotSupported,
    ChatStreamError,
    CompletionInvalidModel,
    CompletionStreamNotSupported,
    ErrorResponse,
    RequestError,
)
from chatstream.models.chat import (
    ROLE_SYSTEM,
    ROLE_USER,
    ChatCompletionMessage,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatCompletionStreamResponse,
)
from chatstream.models.completion import CompletionRequest, CompletionResponse
from chatstream.stream.lines import AsyncResponseLineSource, ResponseLineSource
from chatstream.stream.reader import AsyncStreamReader, StreamReader

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)

CHAT_COMPLETIONS_SUFFIX = "/chat/completions"
COMPLETIONS_SUFFIX = "/completions"

_CHAT_MODELS = frozenset(
    (
        "gpt-3.5-turbo",
        "gpt-3.5-turbo-0301",
        "gpt-3.5-turbo-0613",
        "gpt-3.5-turbo-1106",
        "gpt-3.5-turbo-16k",
        "gpt-3.5-turbo-16k-0613",
        "gpt-4",
        "gpt-4-0314",
        "gpt-4-0613",
        "gpt-4-1106-preview",
        "gpt-4-vision-preview",
        "gpt-4-32k",
        "gpt-4-32k-0314",
        "gpt-4-32k-0613",
    )
)

_COMPLETION_ONLY_MODELS = frozenset(
    (
        "code-davinci-002",
        "code-cushman-001",
        "code-davinci-001",
        "code-cushman-002",
        "text-davinci-003",
        "text-davinci-002",
        "text-curie-001",
        "text-babbage-001",
        "text-ada-001",
        "text-davinci-001",
        "davinci-instruct-beta",
        "davinci",
        "davinci-002",
        "curie-instruct-beta",
        "curie",
        "ada",
        "babbage",
        "babbage-002",
    )
)

_DISABLED_MODELS_FOR_ENDPOINTS: dict[str, frozenset[str]] = {
    COMPLETIONS_SUFFIX: _CHAT_MODELS,
    CHAT_COMPLETIONS_SUFFIX: _COMPLETION_ONLY_MODELS,
}


def endpoint_supports_model(endpoint: str, model: str) -> bool:
    return model not in _DISABLED_MODELS_FOR_ENDPOINTS.get(endpoint, frozenset())


def _chat_messages(prompt: str, system: str | None) -> list[ChatCompletionMessage]:
    messages = []
    if system:
        messages.append(ChatCompletionMessage(role=ROLE_SYSTEM, content=system))
    messages.append(ChatCompletionMessage(role=ROLE_USER, content=prompt))
    return messages


def _first_delta(chunk: ChatCompletionStreamResponse) -> str:
    if not chunk.choices:
        return ""
    return chunk.choices[0].delta.content or ""


class _BaseClient:
    """Settings and request building shared by the sync and async clients."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        org_id: str | None = None,
        timeout: float | None = None,
        empty_messages_limit: int | None = None,
        detect_inline_errors: bool | None = None,
        config: Config | None = None,
    ) -> None:
        cfg = config or get_config()
        self.api_key = api_key if api_key is not None else cfg.client.api_key
        self.base_url = (base_url or cfg.client.base_url).rstrip("/")
        self.org_id = org_id if org_id is not None else cfg.client.org_id
        self.timeout = timeout if timeout is not None else cfg.client.timeout
        self.empty_messages_limit = (
            empty_messages_limit
            if empty_messages_limit is not None
            else cfg.stream.empty_messages_limit
        )
        self.detect_inline_errors = (
            detect_inline_errors
            if detect_inline_errors is not None
            else cfg.stream.detect_inline_errors
        )

    def _url(self, suffix: str) -> str:
        return f"{self.base_url}{suffix}"

    def _headers(self, stream: bool = False) -> dict[str, str]:
        headers = {"Content-Type": "application/json; charset=utf-8"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        if self.org_id:
            headers["OpenAI-Organization"] = self.org_id
        if stream:
            headers["Accept"] = "text/event-stream"
            headers["Cache-Control"] = "no-cache"
            headers["Connection"] = "keep-alive"
        return headers

    def _reader_options(self) -> dict[str, Any]:
        return {
            "empty_messages_limit": self.empty_messages_limit,
            "detect_inline_errors": self.detect_inline_errors,
        }

    @staticmethod
    def _chat_payload(request: ChatCompletionRequest, stream: bool) -> dict[str, Any]:
        if not stream and request.stream:
            raise ChatCompletionStreamNotSupported()
        if not endpoint_supports_model(CHAT_COMPLETIONS_SUFFIX, request.model):
            raise ChatCompletionInvalidModel(request.model)
        if stream:
            request = request.model_copy(update={"stream": True})
        return request.to_payload()

    @staticmethod
    def _completion_payload(request: CompletionRequest, stream: bool) -> dict[str, Any]:
        if not stream and request.stream:
            raise CompletionStreamNotSupported()
        if not endpoint_supports_model(COMPLETIONS_SUFFIX, request.model):
            raise CompletionInvalidModel(request.model)
        if stream:
            request = request.model_copy(update={"stream": True})
        return request.to_payload()

    @staticmethod
    def _error_for(status_code: int, body: bytes) -> ChatStreamError:
        try:
            envelope = ErrorResponse.model_validate_json(body)
        except ValidationError:
            envelope = None
        if envelope is not None and envelope.error is not None:
            logger.warning(
                "API request failed",
                extra={"status_code": status_code, "error_type": envelope.error.type},
            )
            return APIError(envelope.error, status_code=status_code)
        logger.warning("API request failed without error body", extra={"status_code": status_code})
        return RequestError(status_code, body.decode("utf-8", errors="replace"))


class Client(_BaseClient):
    """Blocking client over httpx.Client."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        http_client: httpx.Client | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(api_key, **kwargs)
        # a caller-supplied http_client stays open on close()
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(timeout=self.timeout)

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _send(self, suffix: str, payload: dict[str, Any], response_model: type[R]) -> R:
        logger.debug("POST %s", suffix, extra={"model": payload.get("model")})
        resp = self._http.post(self._url(suffix), json=payload, headers=self._headers())
        if resp.is_error:
            raise self._error_for(resp.status_code, resp.content)
        return response_model.model_validate_json(resp.content)

    def _open_stream(
        self, suffix: str, payload: dict[str, Any], event_model: type[R]
    ) -> StreamReader[R]:
        logger.debug("POST %s (stream)", suffix, extra={"model": payload.get("model")})
        request = self._http.build_request(
            "POST", self._url(suffix), json=payload, headers=self._headers(stream=True)
        )
        response = self._http.send(request, stream=True)
        if response.is_error:
            try:
                body = response.read()
            finally:
                response.close()
            raise self._error_for(response.status_code, body)
        return StreamReader(ResponseLineSource(response), event_model, **self._reader_options())

    def create_chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        payload = self._chat_payload(request, stream=False)
        return self._send(CHAT_COMPLETIONS_SUFFIX, payload, ChatCompletionResponse)

    def create_chat_completion_stream(
        self, request: ChatCompletionRequest
    ) -> StreamReader[ChatCompletionStreamResponse]:
        payload = self._chat_payload(request, stream=True)
        return self._open_stream(CHAT_COMPLETIONS_SUFFIX, payload, ChatCompletionStreamResponse)

    def create_completion(self, request: CompletionRequest) -> CompletionResponse:
        payload = self._completion_payload(request, stream=False)
        return self._send(COMPLETIONS_SUFFIX, payload, CompletionResponse)

    def create_completion_stream(
        self, request: CompletionRequest
    ) -> StreamReader[CompletionResponse]:
        payload = self._completion_payload(request, stream=True)
        return self._open_stream(COMPLETIONS_SUFFIX, payload, CompletionResponse)

    def generate_stream(
        self, prompt: str, *, model: str, system: str | None = None
    ) -> Iterator[str]:
        """Generator of content deltas for a single-turn chat."""
        request = ChatCompletionRequest(model=model, messages=_chat_messages(prompt, system))
        with self.create_chat_completion_stream(request) as stream:
            for chunk in stream:
                content = _first_delta(chunk)
                if content:
                    yield content


class AsyncClient(_BaseClient):
    """Async client over httpx.AsyncClient."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(api_key, **kwargs)
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=self.timeout)

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "AsyncClient":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def _send(self, suffix: str, payload: dict[str, Any], response_model: type[R]) -> R:
        logger.debug("POST %s", suffix, extra={"model": payload.get("model")})
        resp = await self._http.post(self._url(suffix), json=payload, headers=self._headers())
        if resp.is_error:
            raise self._error_for(resp.status_code, resp.content)
        return response_model.model_validate_json(resp.content)

    async def _open_stream(
        self, suffix: str, payload: dict[str, Any], event_model: type[R]
    ) -> AsyncStreamReader[R]:
        logger.debug("POST %s (stream)", suffix, extra={"model": payload.get("model")})
        request = self._http.build_request(
            "POST", self._url(suffix), json=payload, headers=self._headers(stream=True)
        )
        response = await self._http.send(request, stream=True)
        if response.is_error:
            try:
                body = await response.aread()
            finally:
                await response.aclose()
            raise self._error_for(response.status_code, body)
        return AsyncStreamReader(
            AsyncResponseLineSource(response), event_model, **self._reader_options()
        )

    async def create_chat_completion(
        self, request: ChatCompletionRequest
    ) -> ChatCompletionResponse:
        payload = self._chat_payload(request, stream=False)
        return await self._send(CHAT_COMPLETIONS_SUFFIX, payload, ChatCompletionResponse)

    async def create_chat_completion_stream(
        self, request: ChatCompletionRequest
    ) -> AsyncStreamReader[ChatCompletionStreamResponse]:
        payload = self._chat_payload(request, stream=True)
        return await self._open_stream(
            CHAT_COMPLETIONS_SUFFIX, payload, ChatCompletionStreamResponse
        )

    async def create_completion(self, request: CompletionRequest) -> CompletionResponse:
        payload = self._completion_payload(request, stream=False)
        return await self._send(COMPLETIONS_SUFFIX, payload, CompletionResponse)

    async def create_completion_stream(
        self, request: CompletionRequest
    ) -> AsyncStreamReader[CompletionResponse]:
        payload = self._completion_payload(request, stream=True)
        return await self._open_stream(COMPLETIONS_SUFFIX, payload, CompletionResponse)

    def generate_stream(
        self, prompt: str, *, model: str, system: Optional[str] = None
    ) -> AsyncIterator[str]:
        """Async generator of content deltas for a single-turn chat."""

        async def _stream() -> AsyncIterator[str]:
            request = ChatCompletionRequest(model=model, messages=_chat_messages(prompt, system))
            stream = await self.create_chat_completion_stream(request)
            async with stream:
                async for chunk in stream:
                    content = _first_delta(chunk)
                    if content:
                        yield content

        return _stream()
