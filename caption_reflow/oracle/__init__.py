"""Reformatting oracle package — async HTTP interface to the Gemini API.

WHY: The reformatter delegates line-breaking and split decisions to a
language model. This package encapsulates all oracle communication behind
one client class and a typed error hierarchy.

HOW: GeminiOracle (client.py) sends one generateContent request per batch
and returns FormattingDecision objects. The prompt lives in prompt.py.

RULES:
- All oracle HTTP calls go through GeminiOracle (no direct httpx usage elsewhere)
- Authentication is via the x-goog-api-key header from config
- Any object with an async reformat(entries, max_line_chars) method can
  stand in for GeminiOracle (see ReformatOracle)
"""

from caption_reflow.oracle.client import (
    GeminiOracle,
    OracleError,
    OracleInvalidCredential,
    OracleMalformedResponse,
    OracleQuotaExceeded,
    OracleUnavailable,
    ReformatOracle,
)

__all__ = [
    "GeminiOracle",
    "OracleError",
    "OracleInvalidCredential",
    "OracleMalformedResponse",
    "OracleQuotaExceeded",
    "OracleUnavailable",
    "ReformatOracle",
]
