"""End-to-end reformatting pipeline: SRT text in, SRT text out.

WHY: The CLI and the HTTP API run exactly the same sequence — parse,
ask the oracle batch by batch, reallocate timings, serialize. Keeping it
in one function means both surfaces behave identically and tests can
drive the whole flow with a fake oracle.

HOW: parse() the input, cut the entries into batches, await the oracle
once per batch (sequentially), reallocate each batch while threading the
id counter across batches, then serialize() the combined result.

RULES:
- Empty input returns "" without calling the oracle
- Parse errors and oracle errors propagate unchanged
- Output is only produced after every batch succeeded; a failure in any
  batch discards the work of earlier batches
- Output ids run 1..N across the whole file
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence

from caption_reflow.config import DEFAULT_BATCH_SIZE, DEFAULT_MAX_LINE_CHARS
from caption_reflow.core.models import CaptionEntry
from caption_reflow.core.reallocator import reallocate_batch
from caption_reflow.core.srt import parse, serialize
from caption_reflow.oracle.client import ReformatOracle

logger = logging.getLogger(__name__)


def batched(entries: Sequence[CaptionEntry], size: int) -> Iterator[Sequence[CaptionEntry]]:
    """Yield consecutive slices of at most ``size`` entries.

    A size of 0 or less yields the whole sequence as one batch.
    """
    if size <= 0:
        if entries:
            yield entries
        return
    for start in range(0, len(entries), size):
        yield entries[start:start + size]


async def reformat_entries(
    entries: Sequence[CaptionEntry],
    oracle: ReformatOracle,
    max_line_chars: int = DEFAULT_MAX_LINE_CHARS,
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_status: Callable[[str], None] | None = None,
) -> list[CaptionEntry]:
    """Run already-parsed captions through the oracle and the reallocator.

    Args:
        entries: Parsed source captions, in file order.
        oracle: Decides each caption's layout (usually a GeminiOracle
            already entered as a context manager).
        max_line_chars: Maximum characters per caption line.
        batch_size: Captions per oracle request; 0 means all at once.
        on_status: Optional callback for human-readable progress messages.

    Returns:
        The new captions, numbered 1..N.

    Raises:
        OracleError: Any oracle request failed.
    """
    if max_line_chars < 1:
        raise ValueError("max_line_chars must be at least 1, got {}".format(max_line_chars))

    batches = list(batched(entries, batch_size))
    if on_status:
        on_status("Parsed {} captions; sending {} batch(es)...".format(len(entries), len(batches)))

    result = []  # type: list[CaptionEntry]
    next_id = 1
    for index, batch in enumerate(batches, start=1):
        if on_status and len(batches) > 1:
            on_status("Reformatting batch {}/{}...".format(index, len(batches)))
        decisions = await oracle.reformat(batch, max_line_chars)
        new_entries, next_id = reallocate_batch(batch, decisions, next_id)
        result.extend(new_entries)

    logger.info("Reformatted %d captions into %d", len(entries), len(result))
    if on_status:
        on_status("Reformatted {} captions into {}.".format(len(entries), len(result)))
    return result


async def reformat_srt(
    raw_text: str,
    oracle: ReformatOracle,
    max_line_chars: int = DEFAULT_MAX_LINE_CHARS,
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_status: Callable[[str], None] | None = None,
) -> str:
    """Reformat a whole SRT file for the given line limit.

    Returns:
        The reformatted SRT text, or "" for empty input.

    Raises:
        CaptionFormatError: The input could not be parsed.
        OracleError: Any oracle request failed.
    """
    entries = parse(raw_text)
    if not entries:
        return ""

    result = await reformat_entries(
        entries,
        oracle,
        max_line_chars=max_line_chars,
        batch_size=batch_size,
        on_status=on_status,
    )
    return serialize(result)
