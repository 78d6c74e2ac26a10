"""
Tests for the code review adapter

Response parsing and the fallback verdict on every failure path.
"""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from integrity_monitor.monitor.analysis import AnalysisVerdict, CodeReviewAnalyzer, fallback_verdict
from integrity_monitor.monitor.analysis.code_reviewer import (
    extract_json_object,
    extract_response_text,
    parse_verdict,
)
from integrity_monitor.monitor.events import EventDraft, EventType, Severity, make_event

VERDICT_JSON = json.dumps({
    "overall_quality": 7,
    "suspicious_patterns": ["Large block pasted mid-session"],
    "improvement_suggestions": ["Handle empty input"],
    "confidence_score": 80,
})

API_URL = "https://llm.example.test/v1/messages"


def _analyzer(handler, **kwargs):
    return CodeReviewAnalyzer(
        api_url=API_URL,
        api_key="test-key",
        timeout=kwargs.pop("timeout", 5.0),
        transport=httpx.MockTransport(handler),
        **kwargs
    )


class TestParseVerdict:
    """Parsing model output"""

    def test_strict_json(self):
        verdict = parse_verdict(VERDICT_JSON)
        assert verdict.overall_quality == 7
        assert verdict.confidence_score == 80
        assert verdict.suspicious_patterns == ["Large block pasted mid-session"]

    def test_embedded_in_prose(self):
        text = f"Here is my review:\n```json\n{VERDICT_JSON}\n```\nHope this helps."
        assert parse_verdict(text).overall_quality == 7

    def test_braces_inside_strings(self):
        payload = {
            "overall_quality": 6,
            "suspicious_patterns": ["dict literal {} returned early", "unbalanced } in comment"],
            "improvement_suggestions": [],
            "confidence_score": 55,
        }
        text = "Result: " + json.dumps(payload) + " trailing {"
        verdict = parse_verdict(text)
        assert verdict.suspicious_patterns == payload["suspicious_patterns"]

    def test_extra_fields_ignored(self):
        data = json.loads(VERDICT_JSON)
        data["notes"] = "extra"
        assert parse_verdict(json.dumps(data)).overall_quality == 7

    def test_out_of_range_quality(self):
        data = json.loads(VERDICT_JSON)
        data["overall_quality"] = 11
        with pytest.raises(ValueError):
            parse_verdict(json.dumps(data))

    def test_out_of_range_confidence(self):
        data = json.loads(VERDICT_JSON)
        data["confidence_score"] = -1
        with pytest.raises(ValueError):
            parse_verdict(json.dumps(data))

    def test_missing_required_field(self):
        with pytest.raises(ValueError):
            parse_verdict('{"overall_quality": 5}')

    def test_not_an_object(self):
        with pytest.raises(ValueError):
            parse_verdict("[1, 2, 3]")

    def test_no_json(self):
        with pytest.raises(ValueError):
            parse_verdict("I cannot review this code.")


class TestExtractJsonObject:

    def test_first_object(self):
        assert extract_json_object('a {"x": {"y": 1}} b {"z": 2}') == '{"x": {"y": 1}}'

    def test_escaped_quote(self):
        text = r'{"s": "quote \" and } brace"}'
        assert extract_json_object(text) == text

    def test_unbalanced(self):
        assert extract_json_object('{"x": 1') is None

    def test_no_brace(self):
        assert extract_json_object("plain text") is None


class TestExtractResponseText:

    def test_content_blocks(self):
        body = {"content": [{"type": "text", "text": VERDICT_JSON}]}
        assert extract_response_text(body) == VERDICT_JSON

    def test_chat_choices(self):
        body = {"choices": [{"message": {"content": "hello"}}]}
        assert extract_response_text(body) == "hello"

    def test_generated_text_list(self):
        assert extract_response_text([{"generated_text": "hi"}]) == "hi"

    def test_bare_verdict(self):
        body = json.loads(VERDICT_JSON)
        assert parse_verdict(extract_response_text(body)).confidence_score == 80


class TestFallbackVerdict:

    def test_fields(self):
        verdict = fallback_verdict()
        assert verdict == AnalysisVerdict(
            overall_quality=5,
            suspicious_patterns=["Unable to complete AI analysis"],
            improvement_suggestions=["Manual review recommended"],
            confidence_score=50,
        )


class TestCodeReviewAnalyzer:
    """End-to-end adapter behaviour against a mock transport"""

    def test_build_prompt(self):
        analyzer = CodeReviewAnalyzer(api_url=API_URL)
        events = [
            make_event(1, EventDraft(EventType.SESSION_START, "Interview session started", Severity.INFO), 0),
            make_event(2, EventDraft(EventType.PASTE, "Large paste detected (80 characters)", Severity.HIGH), 4),
        ]

        prompt = analyzer.build_prompt("print('hi')", events)

        assert "print('hi')" in prompt
        assert "- SESSION_START: Interview session started\n- PASTE: Large paste detected (80 characters)" in prompt
        assert "Respond ONLY with valid JSON" in prompt

    @pytest.mark.asyncio
    async def test_success(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["auth"] = request.headers.get("Authorization")
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"content": [{"type": "text", "text": VERDICT_JSON}]})

        verdict = await _analyzer(handler, model="review-model").analyze("x = 1", [])

        assert verdict.overall_quality == 7
        assert captured["auth"] == "Bearer test-key"
        assert captured["body"]["model"] == "review-model"
        assert captured["body"]["messages"][0]["role"] == "user"

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        def handler(request):
            return httpx.Response(503, text="unavailable")

        assert await _analyzer(handler).analyze("x = 1", []) == fallback_verdict()

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        assert await _analyzer(handler).analyze("x = 1", []) == fallback_verdict()

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        def handler(request):
            return httpx.Response(200, text="Sorry, I can't help with that.")

        assert await _analyzer(handler).analyze("x = 1", []) == fallback_verdict()

    @pytest.mark.asyncio
    async def test_invalid_verdict(self):
        bad = json.dumps({"overall_quality": 0, "confidence_score": 50})

        def handler(request):
            return httpx.Response(200, json={"content": [{"type": "text", "text": bad}]})

        assert await _analyzer(handler).analyze("x = 1", []) == fallback_verdict()

    @pytest.mark.asyncio
    async def test_not_configured(self):
        analyzer = CodeReviewAnalyzer(api_url=API_URL)
        analyzer.api_url = None

        assert await analyzer.analyze("x = 1", []) == fallback_verdict()

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def slow_request(prompt):
            await asyncio.sleep(1)
            return VERDICT_JSON

        analyzer = CodeReviewAnalyzer(api_url=API_URL, timeout=0.01)
        with patch.object(analyzer, "_request", side_effect=slow_request):
            verdict = await analyzer.analyze("x = 1", [])

        assert verdict == fallback_verdict()

    @pytest.mark.asyncio
    async def test_unexpected_error(self):
        analyzer = CodeReviewAnalyzer(api_url=API_URL)
        with patch.object(analyzer, "_request", new=AsyncMock(side_effect=KeyError("content"))):
            verdict = await analyzer.analyze("x = 1", [])

        assert verdict == fallback_verdict()
