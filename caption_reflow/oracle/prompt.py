"""Prompt text for the caption reformatting oracle.

WHY: The oracle is a general-purpose language model. Everything it knows
about caption layout — the one-line principle, the two-line cap, when to
split — comes from this prompt, so it lives in one place where it can be
read and tuned without touching client code.

RULES:
- The input/output contract is [{id, text}] -> [{id, text: str | [str]}]
- ids must be echoed back unchanged and in the same order
- A list text means "split into sequential captions"; it is only allowed
  when two lines of max_line_chars are not enough
- The reply must be bare JSON (no markdown fences)
"""

from __future__ import annotations

import json
from collections.abc import Sequence

from caption_reflow.core.models import CaptionEntry

_PROMPT_TEMPLATE = """You are an expert subtitle formatter API for vertical short-form video. \
Your task is to process a JSON array of subtitle entries.
You MUST return only a valid JSON array of objects. Do not include any other text, \
explanations, or markdown formatting (like ```json).

CRITICAL RULES:

1. THE ONE-LINE PRINCIPLE (HIGHEST PRIORITY): For each entry, first replace any existing \
newlines with a space to create a single line. If the character count of this single line \
is LESS THAN OR EQUAL TO {max_chars}, your output "text" for that entry MUST be that single, \
flattened line.

2. TWO-LINE MAX (if rule 1 fails): If the text is longer than {max_chars}, reformat it into \
one or two lines using a single newline character ("\\n"). No line may exceed {max_chars} \
characters.

3. SPLIT (if two lines are not enough): If and only if the text would require 3 or more lines, \
the "text" field must be an ARRAY of strings. Each string in the array is a new, sequential \
subtitle of at most two lines.

NATURAL LINE BREAKING (applies to rules 2 and 3):
1. Punctuation first: prefer to break a line right after a comma or period.
2. Meaningful phrases: otherwise break between complete phrases. Keep closely related words \
together; never split a word.
3. Grammar: do not break a line right before a particle, article, or preposition that belongs \
to the following word.

Never change, translate, add, or remove words. Only change where lines and subtitles break.

INPUT/OUTPUT FORMAT:
- INPUT: [{{"id": number, "text": string}}, ...]
- OUTPUT: a JSON array of objects in the same order: [{{"id": number, "text": string | string[]}}, ...]
  - "id" MUST match the original id.
  - "text" is a string for rules 1 and 2, an array of strings for rule 3.

Max characters per line: {max_chars}
Input JSON:
{entries_json}

Output JSON:"""


def build_prompt(entries: Sequence[CaptionEntry], max_line_chars: int) -> str:
    """Render the oracle prompt for one batch of captions."""
    payload = [{"id": entry.id, "text": entry.text} for entry in entries]
    return _PROMPT_TEMPLATE.format(
        max_chars=max_line_chars,
        entries_json=json.dumps(payload, ensure_ascii=False, indent=2),
    )
