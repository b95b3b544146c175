from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .dialects import ModelDialect

# Models sometimes answer with several comma-joined categories; only the first is kept.
CATEGORY_SEPARATOR = ","


class FinishReason(str, Enum):
    STOP = "stop"
    LENGTH = "length"
    OTHER = "other"
    EMPTY = "empty"


class ResponseFormatHint(str, Enum):
    NONE = "none"
    JSON = "json"


class ReasoningEffort(str, Enum):
    DEFAULT = "default"
    LOW = "low"


class CapturedContent(BaseModel):
    """Selection handed over by the capture collaborator."""

    model_config = ConfigDict(populate_by_name=True)

    selected_text: str = Field(alias="selectedText")
    source_url: str = Field(default="", alias="sourceUrl")
    page_title: str = Field(default="", alias="pageTitle")
    author: str | None = None

    @field_validator("selected_text")
    @classmethod
    def _validate_selected_text(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("selectedText must be non-empty.")
        return v


class PipelineSettings(BaseModel):
    """Key-value settings snapshot, read once per invocation."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    api_key: str | None = Field(default=None, alias="apiKey")
    model: str | None = None
    categories: list[str] = Field(default_factory=list)

    @field_validator("categories")
    @classmethod
    def _normalize_categories(cls, v: list[str]) -> list[str]:
        seen: list[str] = []
        for raw in v:
            name = raw.strip() if isinstance(raw, str) else ""
            if CATEGORY_SEPARATOR in name:
                raise ValueError(f"Category names must not contain {CATEGORY_SEPARATOR!r}: {name!r}")
            if name and name not in seen:
                seen.append(name)
        return seen


class StructuredPost(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    linkedin_post: str = Field(alias="linkedinPost")
    character_count: int = Field(alias="characterCount")
    category: str
    is_new_category: bool = Field(default=False, alias="isNewCategory")
    original_text: str = Field(alias="originalText")
    source_url: str = Field(default="", alias="sourceUrl")
    timestamp: str
    page_title: str = Field(default="", alias="pageTitle")
    author: str | None = None
    model: str | None = None
    degraded: bool = False


@dataclass(frozen=True)
class CompletionRequest:
    model: str
    prompt_text: str
    output_budget: int
    dialect: ModelDialect
    temperature: float | None = None
    response_format: ResponseFormatHint = ResponseFormatHint.NONE
    reasoning_effort: ReasoningEffort | None = None


@dataclass(frozen=True)
class CompletionEnvelope:
    content: str = ""
    finish_reason: FinishReason = FinishReason.EMPTY
    raw_finish_reason: str | None = None
    model: str | None = None


@dataclass(frozen=True)
class CompletionAttempt:
    attempt_number: int
    request: CompletionRequest
    raw_text: str
    finish_reason: FinishReason

    @property
    def succeeded(self) -> bool:
        return bool(self.raw_text.strip()) and self.finish_reason is FinishReason.STOP
