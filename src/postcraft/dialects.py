from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ModelDialect(str, Enum):
    LEGACY = "legacy"
    COMPLETION_TOKENS = "completion_tokens"


@dataclass(frozen=True)
class DialectTraits:
    budget_field: str
    supports_temperature: bool
    supports_json_mode: bool
    reasoning_effort: str | None = None


# Checked in order; first case-insensitive substring hit wins.
_FAMILY_MARKERS: tuple[tuple[str, ModelDialect], ...] = (("gpt-5", ModelDialect.COMPLETION_TOKENS),)

_TRAITS: dict[ModelDialect, DialectTraits] = {
    ModelDialect.LEGACY: DialectTraits(
        budget_field="max_tokens",
        supports_temperature=True,
        supports_json_mode=False,
    ),
    ModelDialect.COMPLETION_TOKENS: DialectTraits(
        budget_field="max_completion_tokens",
        supports_temperature=False,
        supports_json_mode=True,
        reasoning_effort="low",
    ),
}


def dialect_for_model(model: str | None) -> ModelDialect:
    name = (model or "").lower()
    for marker, dialect in _FAMILY_MARKERS:
        if marker in name:
            return dialect
    return ModelDialect.LEGACY


def traits_for(dialect: ModelDialect) -> DialectTraits:
    return _TRAITS[dialect]
