"""Caption file error taxonomy.

RULES:
- All caption format errors are ValueErrors, so callers that only care
  about "bad input" can catch one type
- These errors are fatal: the whole file is rejected, nothing is emitted
"""

from __future__ import annotations


class CaptionFormatError(ValueError):
    """Base class for unreadable caption input."""


class MalformedTimestamp(CaptionFormatError):
    """Raised when a time string is not a valid ``HH:MM:SS,mmm`` offset."""


class MalformedInput(CaptionFormatError):
    """Raised when a structurally valid block carries impossible values.

    The only such case today is a block whose end time precedes its start.
    """


class NoEntriesParsed(CaptionFormatError):
    """Raised when non-empty input yields zero caption blocks.

    Distinguishes garbage input from an empty file, which parses to ``[]``.
    """
