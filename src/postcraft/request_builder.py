from __future__ import annotations

from dataclasses import replace
from typing import Any

from .config import DEFAULT_MODEL
from .dialects import ModelDialect, dialect_for_model, traits_for
from .errors import ConfigurationError
from .models import CapturedContent, CompletionRequest, ReasoningEffort, ResponseFormatHint
from .openai_compat import ChatCompletionMessage, ChatCompletionRequestBody, ResponseFormat
from .prompt import build_prompt
from .truncation import DEFAULT_MAX_CHARS

BASELINE_OUTPUT_BUDGET = 1000
BUDGET_ESCALATION_FACTOR = 2
LEGACY_TEMPERATURE = 0.3
LEGACY_ESCALATED_TEMPERATURE = 0.2


def build_completion_request(
    content: CapturedContent,
    categories: list[str],
    model: str | None = None,
    *,
    output_budget: int = BASELINE_OUTPUT_BUDGET,
    max_input_chars: int = DEFAULT_MAX_CHARS,
) -> CompletionRequest:
    if not categories:
        raise ConfigurationError("At least one category is required.")
    model_name = (model or "").strip() or DEFAULT_MODEL
    dialect = dialect_for_model(model_name)
    traits = traits_for(dialect)

    return CompletionRequest(
        model=model_name,
        prompt_text=build_prompt(content, categories, max_input_chars=max_input_chars),
        output_budget=output_budget,
        dialect=dialect,
        temperature=LEGACY_TEMPERATURE if traits.supports_temperature else None,
        response_format=ResponseFormatHint.JSON if traits.supports_json_mode else ResponseFormatHint.NONE,
        reasoning_effort=ReasoningEffort(traits.reasoning_effort) if traits.reasoning_effort else None,
    )


def escalate_request(request: CompletionRequest) -> CompletionRequest:
    """Second-attempt variant: bigger output budget, tighter sampling where allowed."""
    temperature = request.temperature
    if request.dialect is ModelDialect.LEGACY and temperature is not None:
        temperature = LEGACY_ESCALATED_TEMPERATURE
    return replace(
        request,
        output_budget=request.output_budget * BUDGET_ESCALATION_FACTOR,
        temperature=temperature,
    )


def to_request_body(request: CompletionRequest) -> dict[str, Any]:
    traits = traits_for(request.dialect)
    fields: dict[str, Any] = {traits.budget_field: request.output_budget}
    if request.temperature is not None:
        fields["temperature"] = request.temperature
    if request.response_format is ResponseFormatHint.JSON:
        fields["response_format"] = ResponseFormat(type="json_object")
    if request.reasoning_effort is not None and request.reasoning_effort is not ReasoningEffort.DEFAULT:
        fields["reasoning_effort"] = request.reasoning_effort.value

    body = ChatCompletionRequestBody(
        model=request.model,
        messages=[ChatCompletionMessage(role="user", content=request.prompt_text)],
        **fields,
    )
    return body.model_dump(exclude_none=True)
