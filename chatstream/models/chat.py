"""Chat completion payloads: requests, responses and streaming chunks."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_serializer, model_validator

from chatstream.core.errors import ContentFieldsMisused
from chatstream.models.common import FinishReasonMixin, PromptAnnotation, Usage

# Chat message roles
ROLE_SYSTEM = "system"
ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLE_FUNCTION = "function"


class ImageURLDetail(str, Enum):
    HIGH = "high"
    LOW = "low"
    AUTO = "auto"


class ChatMessagePartType(str, Enum):
    TEXT = "text"
    IMAGE_URL = "image_url"


class ChatMessageImageURL(BaseModel):
    url: Optional[str] = None
    detail: Optional[ImageURLDetail] = None


class ChatMessagePart(BaseModel):
    type: Optional[ChatMessagePartType] = None
    text: Optional[str] = None
    image_url: Optional[ChatMessageImageURL] = None


class FunctionCall(BaseModel):
    name: Optional[str] = None
    # JSON-encoded arguments
    arguments: Optional[str] = None


class FunctionDefinition(BaseModel):
    name: str
    description: Optional[str] = None
    # JSON schema object; a dict or any JSON-serializable value
    parameters: Any = None


class ChatCompletionMessage(BaseModel):
    """One chat message.

    `content` carries plain text; `multi_content` carries text and image parts.
    Only one may be set. On the wire both use the `content` key.
    """

    role: str
    content: str = ""
    multi_content: Optional[list[ChatMessagePart]] = None
    name: Optional[str] = None
    function_call: Optional[FunctionCall] = None

    @model_validator(mode="before")
    @classmethod
    def _split_content(cls, data: Any) -> Any:
        if isinstance(data, dict):
            content = data.get("content")
            if isinstance(content, list):
                data = dict(data)
                data["multi_content"] = data.pop("content")
            elif "content" in data and content is None:
                data = {**data, "content": ""}
        return data

    def check_content(self) -> None:
        if self.content and self.multi_content is not None:
            raise ContentFieldsMisused()

    def model_dump(self, **kwargs: Any) -> dict[str, Any]:
        self.check_content()
        return super().model_dump(**kwargs)

    def model_dump_json(self, **kwargs: Any) -> str:
        self.check_content()
        return super().model_dump_json(**kwargs)

    @model_serializer(mode="plain")
    def _serialize(self) -> dict[str, Any]:
        # nested dumps surface this as PydanticSerializationError
        self.check_content()
        out: dict[str, Any] = {"role": self.role}
        if self.multi_content:
            out["content"] = [
                p.model_dump(mode="json", exclude_none=True) for p in self.multi_content
            ]
        else:
            out["content"] = self.content
        if self.name:
            out["name"] = self.name
        if self.function_call is not None:
            out["function_call"] = self.function_call.model_dump(mode="json", exclude_none=True)
        return out


class ChatCompletionRequest(BaseModel):
    """Request body for POST /chat/completions. Unset optional fields are omitted."""

    model: str
    messages: list[ChatCompletionMessage]
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    n: Optional[int] = None
    stream: bool = False
    stop: Optional[list[str]] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    # Keys are token ids as strings, not words: {"1639": 6}
    logit_bias: Optional[dict[str, int]] = None
    user: Optional[str] = None
    functions: Optional[list[FunctionDefinition]] = None
    # "none", "auto" or {"name": "..."}
    function_call: Any = None

    def to_payload(self) -> dict[str, Any]:
        for message in self.messages:
            message.check_content()
        payload = self.model_dump(mode="json", exclude_none=True)
        if not self.stream:
            payload.pop("stream", None)
        if not self.max_tokens:
            payload.pop("max_tokens", None)
        return payload


class ChatCompletionChoice(FinishReasonMixin):
    index: int = 0
    message: ChatCompletionMessage


class ChatCompletionResponse(BaseModel):
    id: str = ""
    object: str = ""
    created: int = 0
    model: str = ""
    choices: list[ChatCompletionChoice] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)


class ChatCompletionStreamChoiceDelta(BaseModel):
    content: Optional[str] = None
    role: Optional[str] = None
    function_call: Optional[FunctionCall] = None


class ChatCompletionStreamChoice(FinishReasonMixin):
    index: int = 0
    delta: ChatCompletionStreamChoiceDelta = Field(default_factory=ChatCompletionStreamChoiceDelta)


class ChatCompletionStreamResponse(BaseModel):
    """One `data: ` chunk of a streamed chat completion."""

    id: str = ""
    object: str = ""
    created: int = 0
    model: str = ""
    choices: list[ChatCompletionStreamChoice] = Field(default_factory=list)
    prompt_annotations: Optional[list[PromptAnnotation]] = None
