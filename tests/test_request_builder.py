import pytest

from postcraft.dialects import ModelDialect, dialect_for_model, traits_for
from postcraft.errors import ConfigurationError
from postcraft.models import CapturedContent, ReasoningEffort, ResponseFormatHint
from postcraft.request_builder import build_completion_request, escalate_request, to_request_body

CATEGORIES = ["🚀 Developer Productivity", "🤖 AI/ML Engineering"]


def _content(**overrides) -> CapturedContent:
    data = {"selectedText": "AI just got 10x cheaper", "sourceUrl": "https://x.com/a", "pageTitle": "Title"}
    data.update(overrides)
    return CapturedContent(**data)


@pytest.mark.parametrize(
    "model,expected",
    [
        ("gpt-4o-mini", ModelDialect.LEGACY),
        ("gpt-4.1", ModelDialect.LEGACY),
        ("gpt-5", ModelDialect.COMPLETION_TOKENS),
        ("GPT-5-mini", ModelDialect.COMPLETION_TOKENS),
        ("openai/gpt-5-nano-2025", ModelDialect.COMPLETION_TOKENS),
        ("", ModelDialect.LEGACY),
        (None, ModelDialect.LEGACY),
    ],
)
def test_dialect_for_model(model, expected):
    assert dialect_for_model(model) is expected


def test_legacy_request_uses_max_tokens_and_low_temperature():
    req = build_completion_request(_content(), CATEGORIES, "gpt-4o-mini")
    assert req.dialect is ModelDialect.LEGACY
    assert req.output_budget == 1000
    assert req.temperature == 0.3
    assert req.response_format is ResponseFormatHint.NONE

    body = to_request_body(req)
    assert body["model"] == "gpt-4o-mini"
    assert body["max_tokens"] == 1000
    assert body["temperature"] == 0.3
    assert "max_completion_tokens" not in body
    assert "response_format" not in body
    assert body["messages"] == [{"role": "user", "content": req.prompt_text}]


def test_next_gen_request_uses_completion_budget_and_json_mode_without_temperature():
    req = build_completion_request(_content(), CATEGORIES, "gpt-5-mini")
    assert req.dialect is ModelDialect.COMPLETION_TOKENS
    assert req.temperature is None
    assert req.reasoning_effort is ReasoningEffort.LOW

    body = to_request_body(req)
    assert body["max_completion_tokens"] == 1000
    assert "max_tokens" not in body
    assert "temperature" not in body
    assert body["response_format"] == {"type": "json_object"}
    assert body["reasoning_effort"] == "low"


def test_missing_model_defaults_to_baseline_model():
    req = build_completion_request(_content(), CATEGORIES, None)
    assert req.model == "gpt-4o-mini"


def test_prompt_enumerates_categories_and_required_fields():
    req = build_completion_request(_content(author="Ada"), CATEGORIES, "gpt-4o-mini")
    for name in ("linkedinPost", "characterCount", "category", "isNewCategory"):
        assert name in req.prompt_text
    assert '"🚀 Developer Productivity"' in req.prompt_text
    assert '"🤖 AI/ML Engineering"' in req.prompt_text
    assert "AI just got 10x cheaper" in req.prompt_text
    assert "https://x.com/a" in req.prompt_text
    assert "Original Author: Ada" in req.prompt_text


def test_prompt_truncates_long_selection():
    long_text = "start " + ("x" * 20000) + " end"
    req = build_completion_request(_content(selectedText=long_text), CATEGORIES, "gpt-4o-mini", max_input_chars=500)
    assert long_text not in req.prompt_text
    assert "start" in req.prompt_text
    assert "end" in req.prompt_text


def test_empty_categories_rejected():
    with pytest.raises(ConfigurationError):
        build_completion_request(_content(), [], "gpt-4o-mini")


def test_escalation_doubles_budget_and_lowers_legacy_temperature():
    req = escalate_request(build_completion_request(_content(), CATEGORIES, "gpt-4o-mini"))
    assert req.output_budget == 2000
    assert req.temperature == 0.2
    assert to_request_body(req)["max_tokens"] == 2000


def test_escalation_keeps_next_gen_temperature_unset():
    req = escalate_request(build_completion_request(_content(), CATEGORIES, "gpt-5"))
    assert req.output_budget == 2000
    assert req.temperature is None
    body = to_request_body(req)
    assert body["max_completion_tokens"] == 2000
    assert "temperature" not in body


def test_traits_are_mutually_exclusive_per_dialect():
    for dialect in ModelDialect:
        traits = traits_for(dialect)
        assert not (traits.supports_temperature and traits.budget_field == "max_completion_tokens")
