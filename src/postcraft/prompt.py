from __future__ import annotations

import json

from .models import CapturedContent
from .truncation import DEFAULT_MAX_CHARS, truncate_text

_GUIDELINES = """\
Create a LinkedIn post following these guidelines:

1. OPENING HOOK (choose the most impactful approach):
   - A counterintuitive insight or surprising fact from the content
   - A bold prediction or claim that challenges conventional thinking
   - A specific metric or data point that tells a story
   - A provocative statement that reframes the discussion
   - A brief anecdote or scenario that illustrates the key point
   - Occasionally a rhetorical question (but avoid overusing this)

   The opening must be punchy, specific, and immediately valuable, not generic.

2. Write in a conversational tone that is engaging and approachable.

3. Keep the post between 1,000 and 2,000 characters (aim for about 1,500).

4. Include relevant emojis to make it visually appealing, without overdoing it.

5. Connect to developer experience, AI infrastructure, or productivity challenges when relevant, naturally and not forced.

6. Attribute the original author or source naturally within the post.

7. End with ONE of these:
   - A thought-provoking question to spark discussion
   - An actionable takeaway or call-to-action
   - A forward-looking insight about what this means for the industry

8. No hashtags."""

_OUTPUT_CONTRACT = """\
Respond with a single JSON object and nothing else. It must have exactly these four fields:
{{
  "linkedinPost": "<the complete LinkedIn post with emojis>",
  "characterCount": <number of characters in linkedinPost>,
  "category": "<exactly ONE category>",
  "isNewCategory": <true or false>
}}

"category" must be exactly one of the following values, copied verbatim:
{choices}
Never return more than one category and never join categories with commas.
Only if none of them fits, propose a single new category and set "isNewCategory" to true."""


def build_prompt(
    content: CapturedContent,
    categories: list[str],
    *,
    max_input_chars: int = DEFAULT_MAX_CHARS,
) -> str:
    text = truncate_text(content.selected_text, max_input_chars)
    lines = [
        "You are helping the CEO of a software startup that builds AI development infrastructure. "
        "Transform the selected text into an engaging LinkedIn post that builds awareness and "
        "establishes thought leadership.",
        "",
        f"Content to transform: {json.dumps(text, ensure_ascii=False)}",
        f"Source URL: {content.source_url}",
        f"Page Title: {json.dumps(content.page_title, ensure_ascii=False)}",
    ]
    if content.author:
        lines.append(f"Original Author: {content.author}")
    lines.extend(["", _GUIDELINES, ""])
    choices = "\n".join(f"- {json.dumps(c, ensure_ascii=False)}" for c in categories)
    lines.append(_OUTPUT_CONTRACT.format(choices=choices))
    return "\n".join(lines)
