"""Command-line interface for the caption reformatter.

WHY: Editors need a simple way to reflow an SRT file for vertical video
from the terminal. The CLI wires together file validation, the Gemini
oracle, the reformatting pipeline, and file saving behind one command.

HOW: Uses argparse to accept an input SRT path (or "-" for stdin), a line
limit, a batch size, an optional model name, and an output path. Runs the
async pipeline via asyncio.run(). Status messages go to stderr; the result
is saved next to the source as {stem}_processed.srt unless -o says otherwise.

RULES:
- Positional argument: input .srt path, or "-" to read stdin
- Validates the extension against SUPPORTED_CAPTION_EXTENSIONS before any API call
- Default output: {stem}_processed.srt beside the input, numeric suffix on
  conflict ({stem}_processed-2.srt); stdin input defaults to stdout
- -o PATH overwrites PATH; -o - writes to stdout
- Exit codes: 0 success, 1 input/config/oracle error, 130 interrupted
- Status output goes to stderr (not stdout)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from caption_reflow.config import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_LINE_CHARS,
    GEMINI_MODEL,
    SUPPORTED_CAPTION_EXTENSIONS,
    output_filename,
)
from caption_reflow.core.errors import CaptionFormatError
from caption_reflow.oracle.client import GeminiOracle, OracleError
from caption_reflow.pipeline import reformat_srt

STDIO_PATH = "-"


def _status(msg: str) -> None:
    """Print a status message to stderr, flushed immediately."""
    print(msg, file=sys.stderr, flush=True)


def _fail(msg: str) -> None:
    print("Error: {}".format(msg), file=sys.stderr)
    sys.exit(1)


def _resolve_output_path(input_path: Path) -> Path:
    """Resolve the default output path, adding a numeric suffix on conflict.

    WHY: Users may run the reformatter several times with different limits.
    Overwriting an earlier result would lose work.

    RULES:
    - First attempt: {stem}_processed.srt beside the input
    - Conflict: {stem}_processed-2.srt, -3, ... until a free name is found
    """
    base_path = input_path.with_name(output_filename(input_path.name))
    if not base_path.exists():
        return base_path

    counter = 2
    while True:
        candidate = base_path.with_name(
            "{}-{}{}".format(base_path.stem, counter, base_path.suffix)
        )
        if not candidate.exists():
            return candidate
        counter += 1


def _read_input(input_file: str) -> str:
    if input_file == STDIO_PATH:
        return sys.stdin.read()

    input_path = Path(input_file)
    if not input_path.is_file():
        _fail("Input file not found: {}".format(input_path))

    ext = input_path.suffix.lower()
    if ext not in SUPPORTED_CAPTION_EXTENSIONS:
        _fail(
            "Unsupported file type '{}'. Supported formats: {}".format(
                ext, ", ".join(sorted(SUPPORTED_CAPTION_EXTENSIONS))
            )
        )

    # utf-8-sig drops the BOM some caption editors write.
    return input_path.read_text(encoding="utf-8-sig")


async def _run_pipeline(args: argparse.Namespace) -> None:
    """Read, reformat, and write one caption file.

    RULES:
    - Parse and oracle errors print "Error: ..." and exit 1 with no output written
    - The output file is only created after the whole file reformatted
    """
    raw_text = _read_input(args.input_file)

    try:
        async with GeminiOracle(model=args.model) as oracle:
            _status("Reformatting captions (max {} chars/line)...".format(args.max_chars))
            result = await reformat_srt(
                raw_text,
                oracle,
                max_line_chars=args.max_chars,
                batch_size=args.batch_size,
                on_status=_status,
            )
    except CaptionFormatError as e:
        _fail("Failed to parse SRT file: {}".format(e))
    except OracleError as e:
        _fail(str(e))
    except ValueError as e:
        # Config errors (missing API key, bad limits)
        _fail(str(e))

    if args.output == STDIO_PATH or (args.output is None and args.input_file == STDIO_PATH):
        sys.stdout.write(result)
        if result:
            sys.stdout.write("\n")
        return

    output_path = Path(args.output) if args.output else _resolve_output_path(Path(args.input_file))
    output_path.write_text(result, encoding="utf-8")
    _status("Saved: {}".format(output_path))


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable — tests can inspect the parser without running the pipeline.
    """
    parser = argparse.ArgumentParser(
        prog="caption_reflow",
        description="Reflow and split SRT captions to fit short-form vertical video.",
    )

    parser.add_argument(
        "input_file",
        help="Path to the .srt file to reformat, or '-' to read stdin.",
    )

    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Output path, or '-' for stdout (default: {stem}_processed.srt beside the input).",
    )

    parser.add_argument(
        "--max-chars",
        type=int,
        default=DEFAULT_MAX_LINE_CHARS,
        help="Maximum characters per caption line (default: %(default)s).",
    )

    parser.add_argument(
        "--batch-size",
        type=int,
        default=DEFAULT_BATCH_SIZE,
        help="Captions per oracle request; 0 sends the whole file at once "
             "(default: %(default)s).",
    )

    parser.add_argument(
        "--model",
        default=GEMINI_MODEL,
        help="Gemini model name (default: %(default)s).",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log pipeline details (dropped decisions, degenerate splits) to stderr.",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.max_chars < 1:
        parser.error("--max-chars must be at least 1")

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        asyncio.run(_run_pipeline(args))
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)


if __name__ == "__main__":
    main()
