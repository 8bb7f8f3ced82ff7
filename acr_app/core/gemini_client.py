"""Gemini generateContent client with per-failure-class retry."""

from __future__ import annotations

import logging
import random
import time
from typing import Any

import requests

from .backoff import OVERLOADED, RATE_LIMITED, TRANSIENT, RetryPolicy, SleepFn
from .config import AI_TIMEOUT_SECONDS, GEMINI_API_URL, GENERATION_TEMPERATURE

logger = logging.getLogger(__name__)


class GenerativeAPIError(RuntimeError):
    """Base exception for generative API failures."""

    retryable = False

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(GenerativeAPIError):
    """HTTP 429 from the provider."""

    retryable = True


class ProviderOverloadedError(GenerativeAPIError):
    """HTTP 503 from the provider."""

    retryable = True


class GenerativeConnectionError(GenerativeAPIError):
    """Network failure, timeout, or a 5xx other than 503."""

    retryable = True


class InvalidResponseError(GenerativeAPIError):
    """The provider answered 200 but the body held no generated text."""

    retryable = True


def failure_kind(exc: GenerativeAPIError) -> str:
    if isinstance(exc, RateLimitedError):
        return RATE_LIMITED
    if isinstance(exc, ProviderOverloadedError):
        return OVERLOADED
    return TRANSIENT


class GeminiClient:
    def __init__(
        self,
        api_key: str,
        *,
        url: str = GEMINI_API_URL,
        session: requests.Session | None = None,
        timeout: float = AI_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        self.url = url
        self.session = session or requests.Session()
        self.timeout = timeout

    def generate(
        self, prompt: str, *, max_output_tokens: int, temperature: float = GENERATION_TEMPERATURE
    ) -> str:
        """Single generateContent call; returns the first candidate's text.

        Raises
        ------
        RateLimitedError, ProviderOverloadedError, GenerativeConnectionError,
        InvalidResponseError, GenerativeAPIError
        """
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"maxOutputTokens": max_output_tokens, "temperature": temperature},
        }
        try:
            resp = self.session.post(
                self.url,
                params={"key": self.api_key},
                json=body,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise GenerativeConnectionError(f"Gemini request failed: {exc}") from exc
        status = resp.status_code
        if status == 429:
            raise RateLimitedError("Gemini rate limit exceeded (429)", status)
        if status == 503:
            raise ProviderOverloadedError("Gemini service unavailable (503)", status)
        if status >= 500:
            raise GenerativeConnectionError(f"Gemini server error {status}", status)
        if status >= 400:
            raise GenerativeAPIError(f"Gemini API error {status}: {resp.text[:200]}", status)
        try:
            data = resp.json()
        except ValueError as exc:
            raise InvalidResponseError("Gemini returned a non-JSON body", status) from exc
        return extract_text(data)


def extract_text(data: dict[str, Any]) -> str:
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise InvalidResponseError("Invalid response format from Gemini API") from exc
    if not isinstance(text, str):
        raise InvalidResponseError("Gemini candidate text is not a string")
    return text


def generate_with_retry(
    client: GeminiClient,
    prompt: str,
    *,
    retry: RetryPolicy,
    max_output_tokens: int,
    sleep: SleepFn = time.sleep,
    rng: random.Random | None = None,
    label: str = "",
) -> str:
    """Call ``client.generate`` under ``retry``; re-raise the last error when exhausted."""
    for attempt in range(1, retry.attempts + 1):
        try:
            return client.generate(prompt, max_output_tokens=max_output_tokens)
        except GenerativeAPIError as exc:
            if not exc.retryable or attempt >= retry.attempts:
                raise
            wait = retry.delay(failure_kind(exc), attempt, rng)
            logger.warning(
                "%s attempt %d/%d failed (%s); retrying in %.1fs",
                label or "Gemini",
                attempt,
                retry.attempts,
                exc,
                wait,
            )
            sleep(wait)
    raise GenerativeAPIError("retry policy allows no attempts")
