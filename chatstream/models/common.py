"""Types shared by chat and completion payloads."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_serializer


class FinishReason(str, Enum):
    """Why the model stopped generating.

    stop: complete message, or one of the stop sequences was hit
    length: max_tokens or the context limit was reached
    function_call: the model decided to call a function
    content_filter: content was omitted by the content filter
    null: response still in progress or incomplete
    """

    STOP = "stop"
    LENGTH = "length"
    FUNCTION_CALL = "function_call"
    CONTENT_FILTER = "content_filter"
    NULL = "null"


def serialize_finish_reason(reason: Optional[FinishReason | str]) -> Optional[str]:
    """`null` and empty reasons go on the wire as JSON null."""
    if reason is None:
        return None
    value = reason.value if isinstance(reason, FinishReason) else str(reason)
    if value in ("", FinishReason.NULL.value):
        return None
    return value


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class FilterResult(BaseModel):
    filtered: bool = False
    severity: Optional[str] = None


class ContentFilterResults(BaseModel):
    hate: FilterResult = Field(default_factory=FilterResult)
    self_harm: FilterResult = Field(default_factory=FilterResult)
    sexual: FilterResult = Field(default_factory=FilterResult)
    violence: FilterResult = Field(default_factory=FilterResult)


class PromptAnnotation(BaseModel):
    prompt_index: int = 0
    content_filter_results: ContentFilterResults = Field(default_factory=ContentFilterResults)


class FinishReasonMixin(BaseModel):
    """Mixin for choices carrying a finish_reason."""

    finish_reason: Optional[FinishReason | str] = None

    @field_serializer("finish_reason")
    def _serialize_finish_reason(self, reason: Optional[FinishReason | str]) -> Optional[str]:
        return serialize_finish_reason(reason)
