"""Shared test fixtures for the caption_reflow test suite.

WHY: Parser, pipeline, CLI, and HTTP API tests all need the same sample
caption file and a stand-in for the Gemini oracle. Centralizing them here
keeps the expected timings in one place.

HOW: SAMPLE_SRT is a small, well-formed three-caption file. FakeOracle
implements the oracle interface in memory: it records every batch it was
asked about and answers from a fixed {id: text} mapping (identity for
ids it does not know), or raises a preset error.

RULES:
- No test talks to the real Gemini API
- FakeOracle answers in batch order, like the real oracle is asked to
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Union

import pytest

from caption_reflow.core.models import CaptionEntry, FormattingDecision

SAMPLE_SRT = (
    "1\n"
    "00:00:01,000 --> 00:00:05,000\n"
    "A\n"
    "\n"
    "2\n"
    "00:00:05,500 --> 00:00:08,000\n"
    "Hello there,\n"
    "how are you?\n"
    "\n"
    "3\n"
    "00:00:09,000 --> 00:00:10,000\n"
    "Bye"
)

SAMPLE_ENTRIES = [
    CaptionEntry(id=1, start_ms=1000, end_ms=5000, text="A"),
    CaptionEntry(id=2, start_ms=5500, end_ms=8000, text="Hello there,\nhow are you?"),
    CaptionEntry(id=3, start_ms=9000, end_ms=10000, text="Bye"),
]


class FakeOracle:
    """In-memory oracle that answers from a fixed mapping."""

    def __init__(
        self,
        answers: Optional[Dict[int, Union[str, List[str]]]] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.answers = answers or {}
        self.error = error
        self.calls = []  # type: List[List[CaptionEntry]]
        self.max_line_chars = []  # type: List[int]
        self.closed = False

    async def __aenter__(self) -> "FakeOracle":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.closed = True

    async def reformat(
        self,
        entries: Sequence[CaptionEntry],
        max_line_chars: int,
    ) -> List[FormattingDecision]:
        self.calls.append(list(entries))
        self.max_line_chars.append(max_line_chars)
        if self.error is not None:
            raise self.error

        decisions = []
        for entry in entries:
            answer = self.answers.get(entry.id, entry.text)
            text = tuple(answer) if isinstance(answer, list) else answer
            decisions.append(FormattingDecision(entry_id=entry.id, text=text))
        return decisions


@pytest.fixture
def sample_srt():
    """A well-formed three-caption SRT file."""
    return SAMPLE_SRT


@pytest.fixture
def sample_entries():
    """The entries SAMPLE_SRT parses to."""
    return list(SAMPLE_ENTRIES)


@pytest.fixture
def fake_oracle_factory():
    """Build FakeOracle instances with custom answers or errors."""
    return FakeOracle
