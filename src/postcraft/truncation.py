from __future__ import annotations

DEFAULT_MAX_CHARS = 8000
ELLIPSIS = "..."
HEAD_RATIO = 0.6


def truncate_text(text: str | None, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """Shorten `text` to at most `max_chars`, cutting from the middle.

    Keeps the opening (the framing of the piece) and the ending (its
    conclusion), joined by a literal ``...``. Output of a cut is exactly
    `max_chars` long, so truncating it again is a no-op.
    """
    if not text:
        return ""
    if max_chars <= 0:
        return ""
    if len(text) <= max_chars:
        return text

    head = int(max_chars * HEAD_RATIO)
    tail = max_chars - head - len(ELLIPSIS)
    if tail <= 0:
        return text[:max_chars]
    return f"{text[:head]}{ELLIPSIS}{text[-tail:]}"
