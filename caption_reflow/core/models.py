"""Value types shared by the parser, the oracle client, and the reallocator.

WHY: The parser, the oracle, and the reallocator all talk about the same
two things — a timed caption and the oracle's verdict on it. Typed,
immutable dataclasses make that contract explicit and stop one stage from
quietly mutating what another stage still holds.

HOW: CaptionEntry is one SRT block with integer millisecond timing.
FormattingDecision is one item of the oracle's reply: either a single
reflowed string or a tuple of chunks to split into sequential captions.
from_dict() parses one raw JSON item from the oracle, tolerating bad types.

RULES:
- Both types are frozen; derive new values with dataclasses.replace()
- Times are integer milliseconds, never float seconds
- CaptionEntry.end_ms >= start_ms (enforced by the parser)
- FormattingDecision.text is None when the oracle sent an unusable value;
  the reallocator then keeps the original text
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Tuple, Union

logger = logging.getLogger(__name__)

DecisionText = Union[str, Tuple[str, ...], None]


@dataclass(frozen=True)
class CaptionEntry:
    """One time-coded caption block.

    Attributes:
        id: Positive sequence number from the SRT block header.
        start_ms: Start offset from the beginning of the file, in ms.
        end_ms: End offset in ms, never before start_ms.
        text: Display lines joined with ``\\n``. Empty only when the source
            block had no text lines.
    """

    id: int
    start_ms: int
    end_ms: int
    text: str

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms


@dataclass(frozen=True)
class FormattingDecision:
    """The oracle's verdict for one caption.

    Attributes:
        entry_id: id of the caption this decision refers to. May not match
            any caption in the batch; the reallocator drops such decisions.
        text: A single string (reflow), a tuple of strings (split into
            sequential captions), or None (unusable, keep original text).
    """

    entry_id: int
    text: DecisionText

    @property
    def is_split(self) -> bool:
        return isinstance(self.text, tuple)

    @classmethod
    def keep(cls, entry: CaptionEntry) -> FormattingDecision:
        """Identity decision: leave the caption's text as it is."""
        return cls(entry_id=entry.id, text=entry.text)

    @classmethod
    def from_dict(cls, data: Any) -> FormattingDecision | None:
        """Parse one ``{"id": ..., "text": ...}`` item from the oracle reply.

        WHY: The oracle is a language model; its ids may come back as
        strings and its text may have the wrong type. One bad item must
        not sink the batch.

        RULES:
        - id may be an int or a decimal string; anything else -> None
        - str text is kept as is; list text keeps only its str elements
        - any other text type becomes None (fallback to original text)
        """
        if not isinstance(data, dict):
            logger.warning("Oracle item is not an object, skipping: %r", data)
            return None

        entry_id = _coerce_id(data.get("id"))
        if entry_id is None:
            logger.warning("Oracle item has no usable id, skipping: %r", data)
            return None

        raw_text = data.get("text")
        if isinstance(raw_text, str):
            text = raw_text  # type: DecisionText
        elif isinstance(raw_text, list):
            text = tuple(chunk for chunk in raw_text if isinstance(chunk, str))
        else:
            logger.warning(
                "Oracle item %d has invalid text %r, keeping original", entry_id, raw_text
            )
            text = None

        return cls(entry_id=entry_id, text=text)


def _coerce_id(value: Any) -> int | None:
    # bool is an int subclass; True is not a caption id
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    return None
