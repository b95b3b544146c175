from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from .errors import EmptyCompletionError
from .models import CATEGORY_SEPARATOR, CapturedContent, StructuredPost


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_category(value: Any, categories: list[str]) -> str:
    """Collapse whatever the model put in ``category`` to a single name."""
    if isinstance(value, (list, tuple)):
        value = next((v for v in value if isinstance(v, str) and v.strip()), None)
    if not isinstance(value, str):
        value = "" if value is None else str(value)
    if CATEGORY_SEPARATOR in value:
        value = value.split(CATEGORY_SEPARATOR, 1)[0]
    value = value.strip()
    if not value and categories:
        return categories[0]
    return value


def _post_body(fields: dict[str, Any]) -> str:
    body = fields.get("linkedinPost")
    if body is None:
        # older prompt revisions asked for a "summary"
        body = fields.get("summary")
    if body is None:
        return ""
    return body if isinstance(body, str) else str(body)


def normalize_post(
    fields: dict[str, Any],
    content: CapturedContent,
    categories: list[str],
    *,
    model: str | None = None,
    degraded: bool = False,
    now: Callable[[], datetime] = _utc_now,
) -> StructuredPost:
    post = _post_body(fields).strip()
    if not post:
        raise EmptyCompletionError("The model response contained no post text. Try again or choose a different model.")

    category = normalize_category(fields.get("category"), categories)
    is_new = bool(category) and category not in categories

    return StructuredPost(
        linkedin_post=post,
        character_count=len(post),
        category=category,
        is_new_category=is_new,
        original_text=content.selected_text,
        source_url=content.source_url,
        page_title=content.page_title,
        author=content.author,
        timestamp=now().isoformat(),
        model=model,
        degraded=degraded,
    )
