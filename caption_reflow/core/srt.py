"""SRT parser and serializer.

WHY: Caption files arrive from editors, exporters, and ASR tools with
inconsistent line endings, stray blank blocks, and trailing junk. The
reformatter needs a tolerant reader that still refuses files it cannot
make sense of, and a writer that emits exactly one canonical layout.

HOW: parse() normalizes line endings, splits on blank lines, and checks
each block's header (id line + timing line). Structurally broken blocks
are skipped; impossible values abort the whole file. serialize() renders
entries in list order with one blank line between blocks.

RULES:
- A blank line (empty or whitespace-only) always terminates a block
- Block line 1: decimal id > 0. Line 2: "<ts> --> <ts>". Rest: text, verbatim
- Skipped blocks are logged at DEBUG, never raised
- end < start raises MalformedInput; out-of-range timestamps raise
  MalformedTimestamp; non-empty input with no valid block raises NoEntriesParsed
- serialize() never writes a trailing blank line
- parse(serialize(parse(x))) == parse(x)
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from caption_reflow.core.errors import MalformedInput, NoEntriesParsed
from caption_reflow.core.models import CaptionEntry
from caption_reflow.core.timecode import TIMESTAMP_PATTERN, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

_BLOCK_SEPARATOR_RE = re.compile(r"\n[ \t\f\v]*\n\s*")
_ID_RE = re.compile(r"^[0-9]+$")
# Trailing text after the end time (SRT position coordinates) is ignored.
_TIMING_RE = re.compile(
    r"^({ts})\s*-->\s*({ts})(?:\s.*)?$".format(ts=TIMESTAMP_PATTERN)
)


def parse(raw_text: str) -> list[CaptionEntry]:
    """Parse SRT text into caption entries, in file order.

    Args:
        raw_text: The full contents of an SRT file.

    Returns:
        Entries in the order their blocks appear. An empty or
        whitespace-only input returns an empty list.

    Raises:
        MalformedTimestamp: A timing line has the right shape but an
            impossible value (e.g. 61 seconds).
        MalformedInput: A block ends before it starts.
        NoEntriesParsed: The input is non-empty but no block is valid.
    """
    text = raw_text.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n").strip()
    if not text:
        return []

    entries = []  # type: list[CaptionEntry]
    seen_ids = set()  # type: set[int]

    for block in _BLOCK_SEPARATOR_RE.split(text):
        entry = _parse_block(block)
        if entry is None:
            continue
        if entry.id in seen_ids:
            logger.warning("Duplicate caption id %d", entry.id)
        seen_ids.add(entry.id)
        entries.append(entry)

    if not entries:
        raise NoEntriesParsed("Invalid SRT format. No entries could be parsed.")

    return entries


def _parse_block(block: str) -> CaptionEntry | None:
    lines = block.split("\n")
    if len(lines) < 2:
        logger.debug("Skipping block without timing line: %r", block)
        return None

    id_line = lines[0].strip()
    if not _ID_RE.match(id_line) or int(id_line) == 0:
        logger.debug("Skipping block with invalid id line: %r", lines[0])
        return None

    timing = _TIMING_RE.match(lines[1].strip())
    if timing is None:
        logger.debug("Skipping block %s with invalid timing line: %r", id_line, lines[1])
        return None

    entry_id = int(id_line)
    start_ms = parse_timestamp(timing.group(1))
    end_ms = parse_timestamp(timing.group(2))
    if end_ms < start_ms:
        raise MalformedInput(
            "Caption {} ends before it starts ({} --> {})".format(
                entry_id, timing.group(1), timing.group(2)
            )
        )

    return CaptionEntry(
        id=entry_id,
        start_ms=start_ms,
        end_ms=end_ms,
        text="\n".join(lines[2:]),
    )


def serialize(entries: Iterable[CaptionEntry]) -> str:
    """Render entries as SRT text, one blank line between blocks."""
    return "\n\n".join(_format_block(entry) for entry in entries)


def _format_block(entry: CaptionEntry) -> str:
    return "{}\n{} --> {}\n{}".format(
        entry.id,
        format_timestamp(entry.start_ms),
        format_timestamp(entry.end_ms),
        entry.text,
    )
