"""
Code Review Analyzer - Best-effort external analysis of the candidate's code

Sends the monitored artifact and the event timeline to an LLM endpoint and
parses a structured verdict. Every failure (network, HTTP status, timeout,
non-JSON body, invalid fields) resolves to the same fallback verdict; the
caller never sees an exception.
"""

import asyncio
import json
import logging
from typing import Any, List, Optional, Sequence

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ...config import settings
from ..events import IntegrityEvent

logger = logging.getLogger(__name__)

# Upper bound on how much of a response is scanned for an embedded object
MAX_SCAN_CHARS = 100_000

REVIEW_PROMPT = """You are an interview code reviewer. Analyze this code and provide a JSON response with: overall_quality (1-10), suspicious_patterns (array of strings), improvement_suggestions (array), and confidence_score (0-100).

Code:
{code}

Events during session:
{events}

Respond ONLY with valid JSON, no markdown."""


class AnalysisVerdict(BaseModel):
    """Structured quality/suspicion verdict"""
    model_config = ConfigDict(extra="ignore", frozen=True)

    overall_quality: int = Field(..., ge=1, le=10)
    suspicious_patterns: List[str] = Field(default_factory=list)
    improvement_suggestions: List[str] = Field(default_factory=list)
    confidence_score: int = Field(..., ge=0, le=100)


def fallback_verdict() -> AnalysisVerdict:
    """Verdict used whenever analysis cannot be completed"""
    return AnalysisVerdict(
        overall_quality=5,
        suspicious_patterns=["Unable to complete AI analysis"],
        improvement_suggestions=["Manual review recommended"],
        confidence_score=50,
    )


def extract_json_object(text: str) -> Optional[str]:
    """
    Find the first balanced {...} object in text.

    Braces inside string literals are ignored. Only the first
    MAX_SCAN_CHARS characters are scanned.

    Returns:
        The object substring, or None if no balanced object is found
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    end = min(len(text), start + MAX_SCAN_CHARS)

    for i in range(start, end):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    return None


def parse_verdict(text: str) -> AnalysisVerdict:
    """
    Parse model output into a verdict.

    Tries a strict parse of the whole text first, then the first
    embedded object.

    Raises:
        ValueError: if no valid verdict can be read
    """
    text = text.strip()
    data: Any = None

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        candidate = extract_json_object(text)
        if candidate is None:
            raise ValueError("No JSON object found in analysis response")
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as e:
            raise ValueError(f"Embedded JSON is invalid: {e}")

    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")

    try:
        return AnalysisVerdict(**data)
    except ValidationError as e:
        raise ValueError(f"Analysis response failed validation: {e.error_count()} errors")


def extract_response_text(body: Any) -> str:
    """
    Pull generated text out of common LLM response shapes.

    Handles messages-style `content` blocks, chat `choices`,
    HuggingFace `generated_text` and plain strings.
    """
    if isinstance(body, str):
        return body

    if isinstance(body, list):
        if body and isinstance(body[0], dict) and "generated_text" in body[0]:
            return str(body[0]["generated_text"])
        return json.dumps(body)

    if isinstance(body, dict):
        content = body.get("content")
        if isinstance(content, list):
            for item in content:
                if isinstance(item, dict) and item.get("type") == "text":
                    return item.get("text", "")
        if isinstance(content, str):
            return content

        choices = body.get("choices")
        if isinstance(choices, list) and choices:
            message = choices[0].get("message", {})
            if message.get("content"):
                return message["content"]

        if "generated_text" in body:
            return str(body["generated_text"])

        # The service may have returned the verdict itself
        return json.dumps(body)

    return str(body)


class CodeReviewAnalyzer:
    """
    External analysis adapter.

    analyze() is safe to await from an endpoint while the session keeps
    running; it does not touch session state.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        max_tokens: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_url = api_url or settings.ANALYSIS_API_URL
        self.api_key = api_key or settings.ANALYSIS_API_KEY
        self.model = model or settings.ANALYSIS_MODEL
        self.timeout = timeout if timeout is not None else settings.ANALYSIS_TIMEOUT_SECONDS
        self.max_tokens = max_tokens or settings.ANALYSIS_MAX_TOKENS
        self._transport = transport

        if not self.api_url:
            logger.warning("No ANALYSIS_API_URL configured. Code review will use the fallback verdict.")

    def build_prompt(self, artifact_text: str, events: Sequence[IntegrityEvent]) -> str:
        """Render the review prompt with "- {type}: {message}" event lines"""
        event_lines = "\n".join(f"- {event.summary}" for event in events)
        return REVIEW_PROMPT.format(code=artifact_text, events=event_lines)

    async def _request(self, prompt: str) -> str:
        """POST the prompt and return the generated text"""
        if not self.api_url:
            raise RuntimeError("Analysis service is not configured")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.api_url, json=payload, headers=headers)

        response.raise_for_status()

        try:
            body = response.json()
        except ValueError:
            body = response.text

        return extract_response_text(body)

    async def analyze(self, artifact_text: str, events: Sequence[IntegrityEvent]) -> AnalysisVerdict:
        """
        Review the artifact in the context of the session timeline.

        Args:
            artifact_text: Candidate's code
            events: Ordered event log

        Returns:
            Parsed verdict, or the fallback verdict on any failure
        """
        prompt = self.build_prompt(artifact_text, events)

        try:
            text = await asyncio.wait_for(self._request(prompt), timeout=self.timeout)
            verdict = parse_verdict(text)
            logger.info(
                f"Code review completed: quality={verdict.overall_quality}, "
                f"confidence={verdict.confidence_score}"
            )
            return verdict
        except asyncio.TimeoutError:
            logger.error(f"Code review timed out after {self.timeout}s")
        except httpx.HTTPError as e:
            logger.error(f"Code review request failed: {e}")
        except Exception as e:
            logger.error(f"Code review failed: {e}")

        return fallback_verdict()
