"""Split-duration reallocation: oracle decisions -> timed caption entries.

WHY: The oracle may reflow a caption in place, or split one caption into
several sequential captions. A split has no timing of its own, so the
original caption's time span must be shared out between the chunks. Text
length is the best proxy for reading time we have: a chunk twice as long
stays on screen twice as long.

HOW: reallocate_entry() handles one (entry, decision) pair. A single
string keeps the original span. A chunk sequence is cleaned, weighted by
its newline-stripped character count, and laid out with a running cursor;
the last chunk always ends exactly at the original end so rounding drift
never leaves a gap or spills past the span. reallocate_batch() walks a
whole batch of decisions, matching each to its original caption by id,
and threads the id counter through so callers can continue numbering
across batches.

RULES:
- Output ids are fresh and strictly increasing; original ids are never reused
- Split chunks tile [original.start_ms, original.end_ms] with no gap or overlap
- Each non-final share is rounded half-up on its own; only the last chunk
  absorbs the residual. Intermediate ends are clamped to original.end_ms
- Empty or whitespace-only chunks are discarded; fewer than two survivors
  collapse into a single caption with the original timing (DegenerateSplit)
- A decision whose id matches no original caption is dropped (UnmatchedDecisionId)
- Nothing here raises on bad oracle output; anomalies are logged at WARNING
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from caption_reflow.core.models import CaptionEntry, FormattingDecision

logger = logging.getLogger(__name__)


def chunk_weight(chunk: str) -> int:
    """Visible character count of a chunk; line breaks carry no reading time."""
    return len(chunk.replace("\n", ""))


def reallocate_entry(
    original: CaptionEntry,
    decision: FormattingDecision,
    next_id: int,
) -> tuple[list[CaptionEntry], int]:
    """Turn one oracle decision into replacement caption entries.

    Args:
        original: The caption the decision refers to.
        decision: The oracle's verdict. Its entry_id is not checked here.
        next_id: The id to give the first emitted entry.

    Returns:
        The replacement entries in display order, and the next unused id.
    """
    text = decision.text

    if text is None:
        return [_single(original, original.text, next_id)], next_id + 1

    if isinstance(text, str):
        return [_single(original, text, next_id)], next_id + 1

    chunks = [chunk for chunk in text if chunk.strip()]
    if len(chunks) < 2:
        logger.warning(
            "DegenerateSplit: caption %d split into %d usable chunk(s), keeping one caption",
            original.id,
            len(chunks),
        )
        combined = " ".join(chunks) or original.text
        return [_single(original, combined, next_id)], next_id + 1

    spans = _split_spans(original, chunks)
    entries = []  # type: list[CaptionEntry]
    for chunk, (start_ms, end_ms) in zip(chunks, spans):
        entries.append(
            CaptionEntry(
                id=next_id,
                start_ms=start_ms,
                end_ms=end_ms,
                text=_drop_blank_lines(chunk),
            )
        )
        next_id += 1
    return entries, next_id


def reallocate_batch(
    entries: Sequence[CaptionEntry],
    decisions: Iterable[FormattingDecision],
    next_id: int = 1,
) -> tuple[list[CaptionEntry], int]:
    """Apply a batch of oracle decisions to the captions they refer to.

    Decisions are applied in the order the oracle returned them. When
    several captions share an id, the last one wins the lookup.

    Returns:
        The new entries and the next unused id.
    """
    originals = {entry.id: entry for entry in entries}
    result = []  # type: list[CaptionEntry]

    for decision in decisions:
        original = originals.get(decision.entry_id)
        if original is None:
            logger.warning(
                "UnmatchedDecisionId: oracle returned id %d with no matching caption, dropping it",
                decision.entry_id,
            )
            continue
        new_entries, next_id = reallocate_entry(original, decision, next_id)
        result.extend(new_entries)

    return result, next_id


def reallocate(
    entries: Sequence[CaptionEntry],
    decisions: Iterable[FormattingDecision],
    start_id: int = 1,
) -> list[CaptionEntry]:
    """Apply oracle decisions and return the renumbered caption list."""
    result, _ = reallocate_batch(entries, decisions, start_id)
    return result


# ---------------------------------------------------------------------------
# Helpers (module-private)
# ---------------------------------------------------------------------------


def _single(original: CaptionEntry, text: str, entry_id: int) -> CaptionEntry:
    return CaptionEntry(
        id=entry_id,
        start_ms=original.start_ms,
        end_ms=original.end_ms,
        text=_drop_blank_lines(text),
    )


def _split_spans(original: CaptionEntry, chunks: Sequence[str]) -> list[tuple[int, int]]:
    """Partition the original span between chunks.

    Proportional to chunk weight when both the total weight and the
    duration are positive, otherwise an equal split. Either way the
    last span ends at original.end_ms.
    """
    total_duration = original.duration_ms
    weights = [chunk_weight(chunk) for chunk in chunks]
    total_weight = sum(weights)
    proportional = total_weight > 0 and total_duration > 0
    equal_share = total_duration // len(chunks)

    spans = []  # type: list[tuple[int, int]]
    cursor = original.start_ms
    for weight in weights[:-1]:
        if proportional:
            share = _round_half_up(total_duration * weight, total_weight)
        else:
            share = equal_share
        end_ms = min(cursor + share, original.end_ms)
        spans.append((cursor, end_ms))
        cursor = end_ms
    spans.append((cursor, original.end_ms))
    return spans


def _round_half_up(numerator: int, denominator: int) -> int:
    # Integer form of floor(numerator / denominator + 0.5); exact for any size.
    return (2 * numerator + denominator) // (2 * denominator)


def _drop_blank_lines(text: str) -> str:
    # A blank line would end the SRT block early.
    if "\n" not in text:
        return text
    return "\n".join(line for line in text.split("\n") if line.strip())
