"""
Turn a raw completion into post fields.

Models asked for JSON do not always return only JSON: some wrap the object in
prose or a markdown fence, some get cut off, some ignore the instruction
entirely. Extraction tries, in order:

1. a strict parse of the whole text,
2. the first parseable object embedded anywhere in the text,
3. a synthetic record that uses the whole text as the post body.

A parsed object only counts when it carries a post body; prose that merely
quotes a JSON snippet falls through to step 3. Empty text is the only failure.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from .errors import ConfigurationError, EmptyCompletionError
from .metrics import extraction_strategy_total

log = structlog.get_logger()


class ExtractionStrategy(str, Enum):
    STRICT = "strict"
    EMBEDDED = "embedded"
    SYNTHESIZED = "synthesized"


@dataclass(frozen=True)
class Extraction:
    fields: dict[str, Any]
    strategy: ExtractionStrategy

    @property
    def degraded(self) -> bool:
        return self.strategy is ExtractionStrategy.SYNTHESIZED


def parse_json_object(text: str) -> dict[str, Any] | None:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return value if isinstance(value, dict) else None


def _closing_brace_candidates(text: str, start: int) -> Iterator[int]:
    # Yields every closing-brace index after `start` where the object opened at `start` could end.
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth <= 0:
                yield i


def find_first_json_object(
    text: str | None, accept: Callable[[dict[str, Any]], bool] | None = None
) -> dict[str, Any] | None:
    """Return the first substring of `text` that parses as a JSON object (and satisfies `accept`), or None."""
    if not text:
        return None
    start = text.find("{")
    while start != -1:
        for end in _closing_brace_candidates(text, start):
            obj = parse_json_object(text[start : end + 1])
            if obj is not None and (accept is None or accept(obj)):
                return obj
        start = text.find("{", start + 1)
    return None


def synthesize_fields(raw_text: str, categories: list[str]) -> dict[str, Any]:
    if not categories:
        raise ConfigurationError("At least one category is required.")
    return {
        "linkedinPost": raw_text,
        "characterCount": len(raw_text),
        "category": categories[0],
        "isNewCategory": False,
    }


def has_post_body(fields: dict[str, Any] | None) -> bool:
    if not fields:
        return False
    body = fields.get("linkedinPost")
    if body is None:
        body = fields.get("summary")
    return body is not None and bool(str(body).strip())


def extract_post_fields(raw_text: str | None, categories: list[str]) -> Extraction:
    text = (raw_text or "").strip()
    if not text:
        raise EmptyCompletionError()

    strict = parse_json_object(text)
    if has_post_body(strict):
        extraction = Extraction(fields=strict, strategy=ExtractionStrategy.STRICT)
    else:
        embedded = find_first_json_object(text, accept=has_post_body)
        if has_post_body(embedded):
            extraction = Extraction(fields=embedded, strategy=ExtractionStrategy.EMBEDDED)
        else:
            log.warning("extraction_fallback", raw_chars=len(text), preview=text[:120])
            extraction = Extraction(fields=synthesize_fields(text, categories), strategy=ExtractionStrategy.SYNTHESIZED)

    extraction_strategy_total.labels(strategy=extraction.strategy.value).inc()
    return extraction
