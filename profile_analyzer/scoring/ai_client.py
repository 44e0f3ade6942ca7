"""OpenAI quality analysis collaborator (optional, requires API key)."""

import asyncio
import json
import logging
import math
import time
from collections import deque
from typing import Any, Callable, Optional

from profile_analyzer.exceptions import QualityRequestError, RateLimitError
from profile_analyzer.scoring.quality import generate_prompt

logger = logging.getLogger("profile_analyzer.scoring.ai")

DEFAULT_COOLDOWN_SECONDS = 60


def parse_ai_content(content: str) -> dict:
    """Parse the model's JSON reply, tolerating a markdown code fence."""
    content = content.strip()
    if content.startswith("```"):
        content = content.split("\n", 1)[1].rsplit("```", 1)[0].strip()

    result = json.loads(content)
    if not isinstance(result, dict):
        raise ValueError(f"Expected a JSON object, got {type(result).__name__}")
    return result


class RateLimiter:
    """Sliding window of request start times, plus a cooldown after a 429."""

    def __init__(self, max_requests: int = 10, window_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._requests: deque[float] = deque()
        self._retry_after: Optional[float] = None

    def acquire(self) -> None:
        """Record a request, or raise RateLimitError with the wait in seconds."""
        now = self._clock()

        if self._retry_after is not None and now < self._retry_after:
            raise RateLimitError(math.ceil(self._retry_after - now))

        while self._requests and now - self._requests[0] >= self.window_seconds:
            self._requests.popleft()

        if len(self._requests) >= self.max_requests:
            raise RateLimitError(math.ceil(self._requests[0] + self.window_seconds - now))

        self._requests.append(now)

    def set_cooldown(self, seconds: float) -> None:
        self._retry_after = self._clock() + seconds


def _is_rate_limited(error: Exception) -> bool:
    if getattr(error, "status_code", None) == 429:
        return True
    message = str(error).lower()
    return "429" in message or "rate limit" in message


def _retry_after_seconds(error: Exception) -> int:
    headers = getattr(getattr(error, "response", None), "headers", None) or {}
    try:
        return max(1, int(float(headers.get("retry-after", DEFAULT_COOLDOWN_SECONDS))))
    except (TypeError, ValueError):
        return DEFAULT_COOLDOWN_SECONDS


class OpenAIQualityClient:
    """Scores profile sections with an OpenAI chat model.

    ``analyze`` takes the request built by the pipeline and returns a response
    dict with ``sectionScores``, ``recommendations`` and ``insights``. Any
    failure raises QualityRequestError so the caller can fall back to
    completeness-only output; a spent request budget raises RateLimitError.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        max_tokens: int = 1500,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        if not api_key:
            raise QualityRequestError("OpenAI API key is required for quality analysis")
        try:
            from openai import OpenAI
        except ImportError:
            raise ImportError("openai package required for AI analysis. Install with: pip install openai")

        self.client = OpenAI(api_key=api_key)
        self.model = model
        self.max_tokens = max_tokens
        self.rate_limiter = rate_limiter or RateLimiter()

    def _complete(self, prompt: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0.1,
            max_tokens=self.max_tokens,
        )
        return response.choices[0].message.content or ""

    async def analyze(self, request: dict[str, Any]) -> dict[str, Any]:
        self.rate_limiter.acquire()
        prompt = generate_prompt(request["prepared"])

        try:
            content = await asyncio.to_thread(self._complete, prompt)
        except Exception as e:
            if _is_rate_limited(e):
                wait = _retry_after_seconds(e)
                logger.warning("AI provider rate limited the request, cooling down for %ds", wait)
                self.rate_limiter.set_cooldown(wait)
                raise RateLimitError(wait) from e
            logger.warning("AI quality request failed: %s", e)
            raise QualityRequestError(f"AI request failed: {e}") from e

        try:
            result = parse_ai_content(content)
        except (json.JSONDecodeError, ValueError, IndexError) as e:
            logger.warning("Failed to parse AI response as JSON: %s", e)
            raise QualityRequestError("AI response was not valid JSON") from e

        logger.debug("AI returned section scores: %s", result.get("sectionScores"))

        return {
            "sectionScores": result.get("sectionScores") or {},
            "contentScore": result.get("contentScore"),
            "recommendations": result.get("recommendations") or {},
            "insights": result.get("insights") or {},
            "fromCache": False,
        }
