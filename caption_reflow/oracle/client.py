"""Async HTTP client for the Gemini caption reformatting oracle.

WHY: Deciding where a caption's lines break, and when a caption must be
split, is a language judgment the deterministic core does not make. A
Gemini model makes it. This module encapsulates the request/response
exchange behind a single client class so callers (pipeline, CLI, HTTP
API, tests) don't need to know HTTP or Gemini envelope details.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. GeminiOracle is an
async context manager — enter it to get an authenticated client, exit to
close the connection pool. reformat() sends one batch as a single
generateContent request, validates the reply envelope and the decoded
decision array with jsonschema, and returns FormattingDecision objects.

RULES:
- Always use the async context manager (async with GeminiOracle(...) as oracle:)
- One request per batch; the reply is consumed whole, never streamed
- No retries here — a failed batch raises and the caller decides
- Transport errors and unexpected HTTP statuses -> OracleUnavailable
- HTTP 429 / RESOURCE_EXHAUSTED -> OracleQuotaExceeded
- HTTP 401/403, invalid key, PERMISSION_DENIED -> OracleInvalidCredential
- Invalid JSON or a reply that is not a JSON array -> OracleMalformedResponse
- Empty reply or a reply of the wrong length -> identity decisions (logged)
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Protocol

import httpx
import jsonschema

from caption_reflow.config import (
    GEMINI_BASE_URL,
    GEMINI_MODEL,
    GEMINI_TEMPERATURE,
    GEMINI_TIMEOUT_S,
    load_api_key,
)
from caption_reflow.core.models import CaptionEntry, FormattingDecision
from caption_reflow.oracle.prompt import build_prompt

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

GENERATE_CONTENT_SCHEMA = {
    "type": "object",
    "properties": {
        "candidates": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "content": {
                        "type": "object",
                        "properties": {
                            "parts": {
                                "type": "array",
                                "items": {
                                    "type": "object",
                                    "properties": {"text": {"type": "string"}},
                                },
                            },
                        },
                    },
                },
            },
        },
    },
}
"""Subset of the generateContent reply envelope this client reads."""

DECISIONS_SCHEMA = {"type": "array"}
"""The decoded reply must be an array. Item-level problems are tolerated
individually by FormattingDecision.from_dict."""

_CREDENTIAL_MARKERS = ("API key not valid", "API_KEY_INVALID", "PERMISSION_DENIED")
_QUOTA_MARKERS = ("RESOURCE_EXHAUSTED",)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class OracleError(Exception):
    """Base class for a failed oracle call.

    WHY: Callers present one user-facing message per failure category and
    let the user retry the whole operation. A typed hierarchy lets them
    branch on category without parsing message strings.

    RULES:
    - status_code is the HTTP status, or None when no response arrived
    - message is the response body text or a summary
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        self.message = message
        if status_code is None:
            super().__init__(message)
        else:
            super().__init__("Oracle error {}: {}".format(status_code, message))


class OracleUnavailable(OracleError):
    """Network failure, timeout, or an unexpected HTTP status."""


class OracleQuotaExceeded(OracleError):
    """The API key's rate limit or quota is exhausted (HTTP 429)."""


class OracleInvalidCredential(OracleError):
    """The API key is invalid, expired, or lacks permission."""


class OracleMalformedResponse(OracleError):
    """The oracle replied, but not with a usable JSON decision array."""


# ---------------------------------------------------------------------------
# Oracle interface
# ---------------------------------------------------------------------------


class ReformatOracle(Protocol):
    """Anything that can decide how a batch of captions should be laid out."""

    async def reformat(
        self,
        entries: Sequence[CaptionEntry],
        max_line_chars: int,
    ) -> list[FormattingDecision]:
        ...


class GeminiOracle:
    """Async client for Gemini's generateContent endpoint.

    WHY: Provides a clean, typed interface for the one call the pipeline
    needs: "here are N captions and a line limit, tell me how to lay each
    one out". Handles auth, request building, envelope validation, and
    error classification.

    HOW: Wraps httpx.AsyncClient with the x-goog-api-key header. Use as
    an async context manager to ensure the HTTP connection pool is closed.

    RULES:
    - Use as: async with GeminiOracle() as oracle: ...
    - api_key defaults to load_api_key() from .env
    - base_url, model, temperature default to config values
    - transport is for tests (httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key or load_api_key()
        self._base_url = (base_url or GEMINI_BASE_URL).rstrip("/")
        self._model = model or GEMINI_MODEL
        self._temperature = GEMINI_TEMPERATURE if temperature is None else temperature
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def model(self) -> str:
        return self._model

    async def __aenter__(self) -> GeminiOracle:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"x-goog-api-key": self._api_key},
            timeout=httpx.Timeout(GEMINI_TIMEOUT_S, connect=30.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "GeminiOracle must be used as an async context manager: "
                "async with GeminiOracle() as oracle: ..."
            )
        return self._client

    async def reformat(
        self,
        entries: Sequence[CaptionEntry],
        max_line_chars: int,
    ) -> list[FormattingDecision]:
        """Ask the oracle how to lay out one batch of captions.

        WHY: This is the single asynchronous boundary of the pipeline.
        Everything before and after it is pure.

        HOW: Builds the prompt, POSTs models/{model}:generateContent with
        a JSON response MIME type, classifies any failure, then decodes
        the candidate text into decisions.

        RULES:
        - An empty batch returns [] without calling the API
        - Raises an OracleError subclass on failure; never returns partial results
        - Returns identity decisions when the reply is empty or its length
          does not match the batch

        Args:
            entries: The captions in this batch.
            max_line_chars: Maximum characters per caption line.

        Returns:
            One FormattingDecision per usable reply item, in reply order.
        """
        if not entries:
            return []

        client = self._ensure_client()
        body = {
            "contents": [
                {"role": "user", "parts": [{"text": build_prompt(entries, max_line_chars)}]}
            ],
            "generationConfig": {
                "responseMimeType": "application/json",
                "temperature": self._temperature,
            },
        }

        logger.info(
            "Requesting reformat of %d captions (model=%s, max_line_chars=%d)",
            len(entries),
            self._model,
            max_line_chars,
        )
        try:
            resp = await client.post(
                "/models/{}:generateContent".format(self._model), json=body
            )
        except httpx.HTTPError as exc:
            raise OracleUnavailable(
                "Could not reach the reformatting service: {}".format(exc)
            ) from exc

        if resp.status_code != 200:
            raise _classify_error(resp.status_code, resp.text)

        return decode_decisions(_candidate_text(resp), entries)


# ---------------------------------------------------------------------------
# Response helpers (module-private unless noted)
# ---------------------------------------------------------------------------


def _classify_error(status_code: int, body: str) -> OracleError:
    if status_code == 429 or any(marker in body for marker in _QUOTA_MARKERS):
        return OracleQuotaExceeded(body, status_code)
    if status_code in (401, 403) or any(marker in body for marker in _CREDENTIAL_MARKERS):
        return OracleInvalidCredential(body, status_code)
    return OracleUnavailable(body, status_code)


def _candidate_text(resp: httpx.Response) -> str:
    """Extract the first candidate's concatenated text from a 200 reply."""
    try:
        envelope = resp.json()
    except ValueError as exc:
        raise OracleMalformedResponse(
            "Reply envelope is not valid JSON: {}".format(exc), resp.status_code
        ) from exc

    try:
        jsonschema.validate(instance=envelope, schema=GENERATE_CONTENT_SCHEMA)
    except jsonschema.ValidationError as exc:
        raise OracleMalformedResponse(
            "Unexpected reply envelope: {}".format(exc.message), resp.status_code
        ) from exc

    candidates = envelope.get("candidates") or []
    if not candidates:
        reason = (envelope.get("promptFeedback") or {}).get("blockReason", "no candidates")
        raise OracleMalformedResponse(
            "The reformatting service returned no result ({}). "
            "The content may have been blocked.".format(reason),
            resp.status_code,
        )

    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts)


def decode_decisions(
    raw_text: str,
    entries: Sequence[CaptionEntry],
) -> list[FormattingDecision]:
    """Decode the oracle's JSON reply text into decisions for a batch.

    RULES:
    - Blank reply -> identity decisions for every caption
    - Invalid JSON or non-array JSON -> OracleMalformedResponse
    - Array length != batch size -> identity decisions (logged at ERROR)
    - Items without a usable id are dropped by FormattingDecision.from_dict
    """
    text = raw_text.strip()
    if not text:
        logger.warning("Oracle returned an empty reply; keeping %d captions as is", len(entries))
        return [FormattingDecision.keep(entry) for entry in entries]

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise OracleMalformedResponse(
            "The reformatting service did not return valid JSON ({}). "
            "Please try again later.".format(exc)
        ) from exc

    try:
        jsonschema.validate(instance=data, schema=DECISIONS_SCHEMA)
    except jsonschema.ValidationError as exc:
        raise OracleMalformedResponse(
            "Expected a JSON array of captions: {}".format(exc.message)
        ) from exc

    if len(data) != len(entries):
        logger.error(
            "Oracle reply length mismatch (expected %d, got %d); keeping batch as is",
            len(entries),
            len(data),
        )
        return [FormattingDecision.keep(entry) for entry in entries]

    decisions = []  # type: list[FormattingDecision]
    for item in data:
        decision = FormattingDecision.from_dict(item)
        if decision is not None:
            decisions.append(decision)
    return decisions
