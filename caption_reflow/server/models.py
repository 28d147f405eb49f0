"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Response models never expose internal implementation details
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from caption_reflow.config import DEFAULT_BATCH_SIZE, DEFAULT_MAX_LINE_CHARS


class ReformatRequest(BaseModel):
    """JSON body for POST /reformat/text.

    WHY: Automation tools often hold caption text in memory and would
    rather send JSON than build a multipart upload.
    """

    srt: str = Field(description="Full contents of the source SRT file.")
    max_chars: int = Field(
        default=DEFAULT_MAX_LINE_CHARS,
        ge=1,
        description="Maximum characters per caption line.",
    )
    batch_size: int = Field(
        default=DEFAULT_BATCH_SIZE,
        ge=0,
        description="Captions per oracle request; 0 sends the whole file at once.",
    )


class ReformatResponse(BaseModel):
    """JSON result of POST /reformat/text."""

    srt: str = Field(description="The reformatted SRT text.")
    caption_count: int = Field(description="Number of captions in the result.")


class ErrorResponse(BaseModel):
    """Standard error response body.

    RULES:
    - detail is always a human-readable error message
    """

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
