"""Tests for the Gemini oracle client.

WHY: The oracle is the only network dependency. Its failures must arrive
as the right typed error so the CLI and HTTP API can tell the user what
happened, and its quirks (string ids, empty replies, wrong lengths) must
never crash a batch.

HOW: GeminiOracle is pointed at an httpx.MockTransport whose handler
inspects the request and returns canned generateContent envelopes.
Async calls are driven with asyncio.run() from synchronous tests.

RULES:
- The real Gemini API is never called
- Each test builds its own transport and client
"""

import asyncio
import json

import httpx
import pytest

from caption_reflow.core.models import CaptionEntry, FormattingDecision
from caption_reflow.oracle.client import (
    GeminiOracle,
    OracleInvalidCredential,
    OracleMalformedResponse,
    OracleQuotaExceeded,
    OracleUnavailable,
    decode_decisions,
)
from caption_reflow.oracle.prompt import build_prompt


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _envelope(text):
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


def _reply(items):
    return httpx.Response(200, json=_envelope(json.dumps(items)))


def _reformat(handler, entries, max_line_chars=15):
    async def _run():
        oracle = GeminiOracle(api_key="test-key", transport=httpx.MockTransport(handler))
        async with oracle:
            return await oracle.reformat(entries, max_line_chars)

    return asyncio.run(_run())


# ---------------------------------------------------------------------------
# Successful exchanges
# ---------------------------------------------------------------------------


class TestReformatSuccess:

    def test_returns_decisions_in_reply_order(self, sample_entries):
        def handler(request):
            return _reply([
                {"id": 1, "text": "A"},
                {"id": 2, "text": ["Hello there,", "how are you?"]},
                {"id": 3, "text": "Bye"},
            ])

        decisions = _reformat(handler, sample_entries)
        assert decisions == [
            FormattingDecision(1, "A"),
            FormattingDecision(2, ("Hello there,", "how are you?")),
            FormattingDecision(3, "Bye"),
        ]

    def test_request_shape(self, sample_entries):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("x-goog-api-key")
            seen["body"] = json.loads(request.content)
            return _reply([{"id": e.id, "text": e.text} for e in sample_entries])

        _reformat(handler, sample_entries, max_line_chars=12)

        assert seen["url"].endswith("/v1beta/models/gemini-2.5-flash:generateContent")
        assert seen["key"] == "test-key"
        body = seen["body"]
        assert body["generationConfig"]["responseMimeType"] == "application/json"
        prompt = body["contents"][0]["parts"][0]["text"]
        assert "Max characters per line: 12" in prompt
        assert '"id": 2' in prompt
        assert "how are you?" in prompt

    def test_string_ids_are_accepted(self, sample_entries):
        def handler(request):
            return _reply([{"id": str(e.id), "text": e.text} for e in sample_entries])

        decisions = _reformat(handler, sample_entries)
        assert [d.entry_id for d in decisions] == [1, 2, 3]

    def test_reply_split_across_parts(self, sample_entries):
        text = json.dumps([{"id": e.id, "text": e.text} for e in sample_entries])
        half = len(text) // 2

        def handler(request):
            envelope = {"candidates": [{"content": {"parts": [{"text": text[:half]}, {"text": text[half:]}]}}]}
            return httpx.Response(200, json=envelope)

        assert len(_reformat(handler, sample_entries)) == 3

    def test_empty_reply_keeps_batch(self, sample_entries):
        def handler(request):
            return httpx.Response(200, json=_envelope("  "))

        decisions = _reformat(handler, sample_entries)
        assert decisions == [FormattingDecision.keep(e) for e in sample_entries]

    def test_length_mismatch_keeps_batch(self, sample_entries, caplog):
        def handler(request):
            return _reply([{"id": 1, "text": "only one"}])

        decisions = _reformat(handler, sample_entries)
        assert decisions == [FormattingDecision.keep(e) for e in sample_entries]
        assert "length mismatch" in caplog.text

    def test_items_without_id_are_dropped(self, sample_entries):
        def handler(request):
            return _reply([{"id": 1, "text": "A"}, {"text": "lost"}, {"id": 3, "text": "Bye"}])

        decisions = _reformat(handler, sample_entries)
        assert [d.entry_id for d in decisions] == [1, 3]

    def test_empty_batch_makes_no_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        assert _reformat(handler, []) == []


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestReformatErrors:

    def test_rate_limit(self, sample_entries):
        def handler(request):
            return httpx.Response(429, json={"error": {"status": "RESOURCE_EXHAUSTED"}})

        with pytest.raises(OracleQuotaExceeded) as exc_info:
            _reformat(handler, sample_entries)
        assert exc_info.value.status_code == 429

    def test_resource_exhausted_body(self, sample_entries):
        def handler(request):
            return httpx.Response(400, text='{"error": {"status": "RESOURCE_EXHAUSTED"}}')

        with pytest.raises(OracleQuotaExceeded):
            _reformat(handler, sample_entries)

    def test_invalid_api_key(self, sample_entries):
        def handler(request):
            return httpx.Response(
                400,
                json={"error": {"message": "API key not valid. Please pass a valid API key."}},
            )

        with pytest.raises(OracleInvalidCredential):
            _reformat(handler, sample_entries)

    @pytest.mark.parametrize("status", [401, 403])
    def test_forbidden(self, sample_entries, status):
        def handler(request):
            return httpx.Response(status, text="denied")

        with pytest.raises(OracleInvalidCredential):
            _reformat(handler, sample_entries)

    def test_server_error(self, sample_entries):
        def handler(request):
            return httpx.Response(503, text="overloaded")

        with pytest.raises(OracleUnavailable) as exc_info:
            _reformat(handler, sample_entries)
        assert exc_info.value.status_code == 503
        assert exc_info.value.message == "overloaded"

    def test_network_failure(self, sample_entries):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(OracleUnavailable) as exc_info:
            _reformat(handler, sample_entries)
        assert exc_info.value.status_code is None

    def test_invalid_json_text(self, sample_entries):
        def handler(request):
            return httpx.Response(200, json=_envelope("[{\"id\": 1, "))

        with pytest.raises(OracleMalformedResponse):
            _reformat(handler, sample_entries)

    def test_markdown_fenced_json_is_malformed(self, sample_entries):
        def handler(request):
            return httpx.Response(200, json=_envelope("```json\n[]\n```"))

        with pytest.raises(OracleMalformedResponse):
            _reformat(handler, sample_entries)

    def test_reply_not_an_array(self, sample_entries):
        def handler(request):
            return httpx.Response(200, json=_envelope(json.dumps({"id": 1, "text": "A"})))

        with pytest.raises(OracleMalformedResponse):
            _reformat(handler, sample_entries)

    def test_blocked_prompt(self, sample_entries):
        def handler(request):
            return httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})

        with pytest.raises(OracleMalformedResponse, match="SAFETY"):
            _reformat(handler, sample_entries)

    def test_envelope_not_json(self, sample_entries):
        def handler(request):
            return httpx.Response(200, text="<html>oops</html>")

        with pytest.raises(OracleMalformedResponse):
            _reformat(handler, sample_entries)

    def test_unexpected_envelope_shape(self, sample_entries):
        def handler(request):
            return httpx.Response(200, json={"candidates": "nope"})

        with pytest.raises(OracleMalformedResponse):
            _reformat(handler, sample_entries)


# ---------------------------------------------------------------------------
# Construction and helpers
# ---------------------------------------------------------------------------


class TestClientSetup:

    def test_requires_context_manager(self, sample_entries):
        oracle = GeminiOracle(api_key="test-key")
        with pytest.raises(RuntimeError):
            asyncio.run(oracle.reformat(sample_entries, 15))

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("API_KEY", raising=False)
        with pytest.raises(ValueError, match="GEMINI_API_KEY"):
            GeminiOracle()

    def test_api_key_fallback_variable(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.setenv("API_KEY", "fallback-key")
        assert GeminiOracle()._api_key == "fallback-key"

    def test_custom_model(self, sample_entries):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            return _reply([{"id": e.id, "text": e.text} for e in sample_entries])

        async def _run():
            oracle = GeminiOracle(
                api_key="k", model="gemini-2.5-pro", transport=httpx.MockTransport(handler)
            )
            async with oracle:
                await oracle.reformat(sample_entries, 15)

        asyncio.run(_run())
        assert seen["path"].endswith("/models/gemini-2.5-pro:generateContent")


class TestPromptAndDecoding:

    def test_prompt_keeps_non_ascii_text(self):
        entry = CaptionEntry(id=1, start_ms=0, end_ms=1000, text="안녕하세요, 반갑습니다.")
        prompt = build_prompt([entry], 20)
        assert "안녕하세요, 반갑습니다." in prompt
        assert "LESS THAN OR EQUAL TO 20" in prompt

    def test_decode_decisions_direct(self, sample_entries):
        raw = json.dumps([{"id": 1, "text": "A"}, {"id": 2, "text": ["x", "y"]}, {"id": 3, "text": 7}])
        decisions = decode_decisions(raw, sample_entries)
        assert decisions == [
            FormattingDecision(1, "A"),
            FormattingDecision(2, ("x", "y")),
            FormattingDecision(3, None),
        ]
