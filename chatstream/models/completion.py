"""Legacy text completion payloads (POST /completions)."""

from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from chatstream.models.common import FinishReasonMixin, Usage


class CompletionRequest(BaseModel):
    model: str
    # A string, a list of strings, or token arrays
    prompt: Union[str, list[str], list[int], list[list[int]], None] = None
    suffix: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    n: Optional[int] = None
    stream: bool = False
    logprobs: Optional[int] = None
    echo: Optional[bool] = None
    stop: Optional[list[str]] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    best_of: Optional[int] = None
    logit_bias: Optional[dict[str, int]] = None
    user: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        payload = self.model_dump(mode="json", exclude_none=True)
        if not self.stream:
            payload.pop("stream", None)
        return payload


class LogprobResult(BaseModel):
    tokens: list[str] = Field(default_factory=list)
    token_logprobs: list[Optional[float]] = Field(default_factory=list)
    top_logprobs: list[Optional[dict[str, float]]] = Field(default_factory=list)
    text_offset: list[int] = Field(default_factory=list)


class CompletionChoice(FinishReasonMixin):
    text: str = ""
    index: int = 0
    logprobs: Optional[LogprobResult] = None


class CompletionResponse(BaseModel):
    """Full completion response; also the shape of each streamed completion chunk."""

    id: str = ""
    object: str = ""
    created: int = 0
    model: str = ""
    choices: list[CompletionChoice] = Field(default_factory=list)
    usage: Optional[Usage] = None
