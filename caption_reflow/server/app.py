"""FastAPI application exposing the caption reformatter over HTTP.

WHY: Web front-ends and automation tools (n8n, curl, an upload page)
need to hand over an SRT file and get the reformatted file back without
installing the CLI. FastAPI provides request validation and OpenAPI docs.

HOW: POST /reformat accepts a multipart .srt upload and returns the
reformatted file as a download. POST /reformat/text accepts and returns
JSON for callers that already hold the text. Both run the same pipeline
the CLI runs, awaiting the oracle inline (one request per batch).

RULES:
- Error responses use the ErrorResponse schema ({"detail": ...})
- 400: wrong extension, undecodable upload, or unparsable SRT
- 429: oracle quota exhausted
- 502: oracle unreachable or returned an unusable reply
- 503: oracle credential missing or rejected
- Oracle failures are never partially applied; the client retries
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, List, NoReturn
from urllib.parse import quote

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import Response

from caption_reflow import __version__
from caption_reflow.config import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_LINE_CHARS,
    SUPPORTED_CAPTION_EXTENSIONS,
    output_filename,
)
from caption_reflow.core.errors import CaptionFormatError
from caption_reflow.core.models import CaptionEntry
from caption_reflow.core.srt import parse, serialize
from caption_reflow.oracle.client import (
    GeminiOracle,
    OracleError,
    OracleInvalidCredential,
    OracleQuotaExceeded,
)
from caption_reflow.pipeline import reformat_entries
from caption_reflow.server.models import (
    ErrorResponse,
    HealthResponse,
    ReformatRequest,
    ReformatResponse,
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Caption Reflow API",
    description=(
        "Reflow and split SRT captions so every caption fits short-form "
        "vertical video limits. Timings of split captions are redistributed "
        "in proportion to their text length."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid file type or unparsable SRT"},
    429: {"model": ErrorResponse, "description": "Oracle quota exhausted"},
    502: {"model": ErrorResponse, "description": "Oracle unreachable or reply unusable"},
    503: {"model": ErrorResponse, "description": "Oracle credential missing or rejected"},
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_oracle() -> GeminiOracle:
    """Create the oracle client for one request (patched in tests)."""
    return GeminiOracle()


def _validate_file_extension(filename: str) -> None:
    """Raise HTTPException if the file extension is not supported."""
    ext = Path(filename).suffix.lower()
    if ext not in SUPPORTED_CAPTION_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail="Unsupported file type '{}'. Supported formats: {}".format(
                ext, ", ".join(sorted(SUPPORTED_CAPTION_EXTENSIONS))
            ),
        )


def _content_disposition(filename: str) -> str:
    # Header values are latin-1; non-ASCII names go in the RFC 5987 parameter.
    fallback = filename.encode("ascii", "ignore").decode("ascii").replace("\"", "") or "captions.srt"
    return "attachment; filename=\"{}\"; filename*=UTF-8''{}".format(fallback, quote(filename))


def _raise_oracle_error(exc: OracleError) -> NoReturn:
    if isinstance(exc, OracleQuotaExceeded):
        status_code = 429
    elif isinstance(exc, OracleInvalidCredential):
        status_code = 503
    else:
        status_code = 502
    logger.warning("Oracle call failed (%s): %s", type(exc).__name__, exc.message)
    raise HTTPException(status_code=status_code, detail=str(exc)) from exc


async def _reformat(raw_text: str, max_chars: int, batch_size: int) -> List[CaptionEntry]:
    """Parse, reformat, and map every failure onto an HTTP error."""
    try:
        entries = parse(raw_text)
    except CaptionFormatError as exc:
        raise HTTPException(
            status_code=400, detail="Failed to parse SRT file: {}".format(exc)
        ) from exc
    if not entries:
        return []

    try:
        oracle = _make_oracle()
    except ValueError as exc:
        logger.error("Oracle not configured: %s", exc)
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    try:
        async with oracle:
            return await reformat_entries(
                entries, oracle, max_line_chars=max_chars, batch_size=batch_size
            )
    except OracleError as exc:
        _raise_oracle_error(exc)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.post(
    "/reformat",
    tags=["reformat"],
    summary="Reformat an uploaded SRT file",
    description=(
        "Upload an .srt file. Returns the reformatted file as an attachment "
        "named {stem}_processed.srt."
    ),
    response_class=Response,
    responses={200: {"content": {"text/plain": {}}}, **_ERROR_RESPONSES},
)
async def reformat_file(
    file: Annotated[
        UploadFile,
        File(description="SRT caption file to reformat"),
    ],
    max_chars: Annotated[
        int,
        Form(ge=1, description="Maximum characters per caption line."),
    ] = DEFAULT_MAX_LINE_CHARS,
    batch_size: Annotated[
        int,
        Form(ge=0, description="Captions per oracle request; 0 sends the whole file at once."),
    ] = DEFAULT_BATCH_SIZE,
) -> Response:
    # Sanitize filename to prevent path traversal
    filename = Path(file.filename or "captions.srt").name
    _validate_file_extension(filename)

    content = await file.read()
    try:
        raw_text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=400, detail="SRT file must be UTF-8 encoded") from exc

    entries = await _reformat(raw_text, max_chars, batch_size)
    return Response(
        content=serialize(entries),
        media_type="text/plain",
        headers={"Content-Disposition": _content_disposition(output_filename(filename))},
    )


@app.post(
    "/reformat/text",
    response_model=ReformatResponse,
    tags=["reformat"],
    summary="Reformat SRT text sent as JSON",
    responses=_ERROR_RESPONSES,
)
async def reformat_text(request: ReformatRequest) -> ReformatResponse:
    entries = await _reformat(request.srt, request.max_chars, request.batch_size)
    return ReformatResponse(srt=serialize(entries), caption_count=len(entries))


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["system"],
    summary="Health check",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)


def run_api():
    """Entry point for the caption-reflow-api console script."""
    import uvicorn
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
