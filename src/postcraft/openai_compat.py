from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from .models import CompletionEnvelope, FinishReason


class ChatCompletionMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ResponseFormat(BaseModel):
    type: Literal["json_object", "text"] = "json_object"


class ChatCompletionRequestBody(BaseModel):
    """Outbound body for ``POST /chat/completions``."""

    model: str
    messages: list[ChatCompletionMessage]

    temperature: float | None = None
    max_tokens: int | None = None
    max_completion_tokens: int | None = None
    response_format: ResponseFormat | None = None
    reasoning_effort: Literal["low", "medium", "high"] | None = None

    @model_validator(mode="after")
    def _validate_dialect_fields(self) -> "ChatCompletionRequestBody":
        if self.max_tokens is not None and self.max_completion_tokens is not None:
            raise ValueError("Provide only one of max_tokens or max_completion_tokens.")
        if self.temperature is not None and self.max_completion_tokens is not None:
            raise ValueError("temperature is not accepted alongside max_completion_tokens.")
        return self

    @field_validator("temperature")
    @classmethod
    def _validate_temperature(cls, v: float | None) -> float | None:
        if v is None:
            return None
        if not (0.0 <= v <= 2.0):
            raise ValueError("temperature must be between 0 and 2.")
        return v

    @field_validator("max_tokens", "max_completion_tokens")
    @classmethod
    def _validate_budget(cls, v: int | None) -> int | None:
        if v is None:
            return None
        if v <= 0:
            raise ValueError("output budget must be > 0.")
        return v

    @field_validator("messages")
    @classmethod
    def _validate_messages(cls, v: list[ChatCompletionMessage]) -> list[ChatCompletionMessage]:
        if not any(m.role == "user" and m.content for m in v):
            raise ValueError("at least one non-empty user message is required.")
        return v


class ChatCompletionAssistantMessage(BaseModel):
    role: str = "assistant"
    content: str | None = None
    refusal: str | None = None


class ChatCompletionChoice(BaseModel):
    index: int = 0
    message: ChatCompletionAssistantMessage | None = None
    finish_reason: str | None = None


class ChatCompletionResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    model: str | None = None
    choices: list[ChatCompletionChoice] | None = None


_FINISH_REASONS = {
    "stop": FinishReason.STOP,
    "length": FinishReason.LENGTH,
}


def classify_finish_reason(raw: str | None, content: str) -> FinishReason:
    if not raw:
        return FinishReason.OTHER if content.strip() else FinishReason.EMPTY
    return _FINISH_REASONS.get(raw.lower(), FinishReason.OTHER)


def envelope_from_response(data: dict[str, Any]) -> CompletionEnvelope:
    resp = ChatCompletionResponse.model_validate(data)
    if not resp.choices:
        return CompletionEnvelope(model=resp.model)
    choice = resp.choices[0]
    content = (choice.message.content if choice.message else None) or ""
    return CompletionEnvelope(
        content=content,
        finish_reason=classify_finish_reason(choice.finish_reason, content),
        raw_finish_reason=choice.finish_reason,
        model=resp.model,
    )


class OpenAIError(BaseModel):
    message: str
    type: str = "api_error"
    param: str | None = None
    code: str | None = None
    upstream_status: int | None = None


class OpenAIErrorResponse(BaseModel):
    error: OpenAIError


def make_openai_error_response(
    *,
    message: str,
    type: str = "api_error",
    param: str | None = None,
    code: str | None = None,
    upstream_status: int | None = None,
) -> OpenAIErrorResponse:
    return OpenAIErrorResponse(
        error=OpenAIError(message=message, type=type, param=param, code=code, upstream_status=upstream_status)
    )
