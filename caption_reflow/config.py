"""Configuration constants, oracle defaults, and .env loading.

WHY: Centralizes all configurable values so they are easy to find,
update, and override. Display limits, batch sizing, and Gemini API
defaults are plain module-level values — not buried in logic — so the
CLI, the HTTP API, and tests all read the same numbers.

HOW: python-dotenv loads the .env file on import. Constants are defined
at module level with os.getenv overrides. load_api_key() provides a clear
error when the key is missing.

RULES:
- API key is loaded from .env via python-dotenv, never hardcoded
- GEMINI_API_KEY is preferred; API_KEY is accepted as a fallback
- DEFAULT_BATCH_SIZE = 0 sends the whole file in one oracle request
- All defaults can be overridden via environment variables
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Caption files
# ---------------------------------------------------------------------------

SUPPORTED_CAPTION_EXTENSIONS: set[str] = {".srt"}
"""Caption file extensions accepted by the CLI and HTTP API (lowercase, with dot)."""

PROCESSED_SUFFIX = "_processed"
"""Appended to the input stem when naming the reformatted file."""

DEFAULT_MAX_LINE_CHARS = int(os.getenv("DEFAULT_MAX_LINE_CHARS", "15"))
"""Characters per caption line, including spaces. 15 suits 9:16 video."""

DEFAULT_BATCH_SIZE = int(os.getenv("DEFAULT_BATCH_SIZE", "0"))
"""Captions per oracle request; 0 or less means one request per file."""

# ---------------------------------------------------------------------------
# Gemini (reformatting oracle) defaults
# ---------------------------------------------------------------------------

GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
)
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_TEMPERATURE = float(os.getenv("GEMINI_TEMPERATURE", "0.3"))
GEMINI_TIMEOUT_S = float(os.getenv("GEMINI_TIMEOUT_S", "120"))


def output_filename(input_name: str) -> str:
    """Name of the reformatted file for an uploaded/input caption file.

    RULES:
    - "clip.srt" -> "clip_processed.srt"
    - Case of the extension is preserved; only the stem is changed
    - A name without an extension gets ".srt" appended
    """
    stem, dot, ext = input_name.rpartition(".")
    if not dot or not stem:
        return "{}{}.srt".format(input_name, PROCESSED_SUFFIX)
    return "{}{}.{}".format(stem, PROCESSED_SUFFIX, ext)


def load_api_key() -> str:
    """Load the Gemini API key from the environment.

    WHY: The key is required for every oracle call. Loading it from the
    environment (via .env) keeps it out of source code.

    RULES:
    - Raises ValueError if the key is missing or empty
    - Never returns a default/placeholder value
    """
    key = (os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY") or "").strip()
    if not key:
        raise ValueError(
            "Gemini API key not configured. "
            "Add GEMINI_API_KEY to the .env file in the app folder."
        )
    return key
