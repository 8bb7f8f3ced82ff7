"""Drupal.org HTTP client: paced, identity-rotating session with network retries."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Sequence

import requests

from .backoff import TRANSIENT, RetryPolicy, SleepFn, pause
from .config import (
    CLIENT_IDENTITIES,
    DETAIL_RETRY,
    DETAIL_TIMEOUT_SECONDS,
    FEED_ACCEPT_HEADER,
    FEED_PATH,
    FEED_RETRY,
    FEED_TIMEOUT_SECONDS,
    FORGE_BASE_URL,
    REQUEST_DELAY_RANGE,
    SEARCH_PATH,
    SEARCH_RETRY,
    SEARCH_TIMEOUT_SECONDS,
    WARMUP_RETRY,
    WARMUP_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)


class ForgeRequestError(RuntimeError):
    """Raised when a forge request fails at the network level after all retries."""


class ForgeClient:
    """Session state for one collection run.

    Holds the ``requests.Session`` (cookie jar), the request counter that
    drives identity rotation, and the count of successfully collected criteria
    used by the inter-criterion pacing.
    """

    def __init__(
        self,
        base_url: str = FORGE_BASE_URL,
        *,
        session: requests.Session | None = None,
        identities: Sequence[str] = CLIENT_IDENTITIES,
        sleep: SleepFn = time.sleep,
        rng: random.Random | None = None,
        request_delay: tuple[float, float] = REQUEST_DELAY_RANGE,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.identities = tuple(identities) or ("curl/8.7.1",)
        self.sleep = sleep
        self.rng = rng or random.Random()
        self.request_delay = request_delay
        self.request_count = 0
        self.success_count = 0

    # ------------------ URLs ------------------
    def search_url(self, code: str) -> str:
        return f"{self.base_url}{SEARCH_PATH}?status%5BOpen%5D=Open&issue_tags={code}"

    def feed_url(self, code: str) -> str:
        return (
            f"{self.base_url}{FEED_PATH}"
            f"?status%5B0%5D=Open&issue_tags_op=%3D&issue_tags={code}"
        )

    def absolute(self, href: str) -> str:
        if href.startswith("http://") or href.startswith("https://"):
            return href
        return f"{self.base_url}{href if href.startswith('/') else '/' + href}"

    # ------------------ Requests ------------------
    def current_identity(self) -> str:
        return self.identities[self.request_count % len(self.identities)]

    def _headers(self, accept: str) -> dict[str, str]:
        return {"User-Agent": self.current_identity(), "Accept": accept}

    def get(
        self,
        url: str,
        *,
        timeout: float = SEARCH_TIMEOUT_SECONDS,
        retry: RetryPolicy = SEARCH_RETRY,
        accept: str = "*/*",
    ) -> requests.Response:
        """GET ``url`` and return the response whatever its HTTP status.

        Raises
        ------
        ForgeRequestError
            When every attempt failed with a connection error or timeout.
        """
        last_exc: Exception | None = None
        for attempt in range(1, retry.attempts + 1):
            pause(self.sleep, self.request_delay, self.rng)
            headers = self._headers(accept)
            self.request_count += 1
            try:
                resp = self.session.get(url, headers=headers, timeout=timeout)
            except requests.RequestException as exc:
                last_exc = exc
                logger.warning(
                    "Network error on attempt %d/%d for %s: %s", attempt, retry.attempts, url, exc
                )
                if attempt < retry.attempts:
                    self.sleep(retry.delay(TRANSIENT, attempt, self.rng))
                continue
            logger.debug("GET %s -> %s (%s)", url, resp.status_code, headers["User-Agent"])
            return resp
        raise ForgeRequestError(f"Request failed after {retry.attempts} attempts: {url}: {last_exc}")

    def fetch_search(self, code: str) -> requests.Response:
        return self.get(self.search_url(code), timeout=SEARCH_TIMEOUT_SECONDS, retry=SEARCH_RETRY)

    def fetch_feed(self, code: str) -> requests.Response:
        return self.get(
            self.feed_url(code),
            timeout=FEED_TIMEOUT_SECONDS,
            retry=FEED_RETRY,
            accept=FEED_ACCEPT_HEADER,
        )

    def fetch_detail(self, url: str) -> requests.Response:
        return self.get(self.absolute(url), timeout=DETAIL_TIMEOUT_SECONDS, retry=DETAIL_RETRY)

    def warm_up(self) -> bool:
        """Visit the home page once to pick up session cookies; never raises."""
        try:
            resp = self.get(self.base_url + "/", timeout=WARMUP_TIMEOUT_SECONDS, retry=WARMUP_RETRY)
        except ForgeRequestError as exc:
            logger.warning("Session warm-up failed, continuing anyway: %s", exc)
            return False
        if resp.ok:
            logger.info("Session established (%d cookies)", len(self.session.cookies))
            return True
        logger.warning("Session warm-up returned HTTP %s, continuing anyway", resp.status_code)
        return False
