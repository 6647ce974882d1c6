"""
Retry transport for outbound HTTP calls.

Retries transient failures (rate limiting, overload, gateway errors) with
exponential backoff and honors numeric ``retry-after`` headers. After the
retry budget is spent the last failing response is returned to the caller
rather than raised, so the caller can report the status and body.
"""

import logging
import random
import time
from typing import Callable, Optional

import requests

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504, 529})

DEFAULT_MAX_RETRIES = 5
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 60.0
DEFAULT_TIMEOUT = 300.0


def is_retryable(status_code: int) -> bool:
    """Whether a response status is worth retrying."""
    return status_code in RETRYABLE_STATUS_CODES


class RetryTransport:
    """
    Bounded-retry wrapper around a requests session.

    ``max_retries = n`` means at most ``n + 1`` attempts and ``n`` sleeps.
    Connection errors and timeouts are not retried here; they propagate as
    ``requests`` exceptions.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.session = session or requests.Session()
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = timeout
        self._sleep = sleep
        self._rng = rng or random.Random()

    @classmethod
    def from_config(cls, retry_config, **kwargs) -> "RetryTransport":
        """Build a transport from a RetryConfig."""
        return cls(
            max_retries=retry_config.max_retries,
            base_delay=retry_config.base_delay,
            max_delay=retry_config.max_delay,
            timeout=retry_config.timeout,
            **kwargs,
        )

    def compute_delay(self, response: requests.Response, attempt: int) -> float:
        """
        Seconds to wait before retrying.

        Args:
            response: The failing response
            attempt: Zero-based index of the attempt that failed

        Returns:
            The retry-after value when numeric and positive, otherwise
            exponential backoff with jitter in [0.5, 1.0); both capped
            at max_delay.
        """
        retry_after = response.headers.get("retry-after")
        if retry_after:
            try:
                seconds = float(retry_after)
            except ValueError:
                # HTTP-date form is not supported; fall through to backoff
                seconds = 0.0
            if seconds > 0:
                return min(seconds, self.max_delay)

        exponential = self.base_delay * (2 ** attempt)
        jitter = 0.5 + self._rng.random() * 0.5
        return min(exponential * jitter, self.max_delay)

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Send an HTTP request, retrying transient failures.

        Args:
            method: HTTP method
            url: Target URL
            **kwargs: Passed through to ``requests.Session.request``

        Returns:
            The first non-retryable response, or the last failing one once
            retries are exhausted.
        """
        kwargs.setdefault("timeout", self.timeout)
        response = None

        for attempt in range(self.max_retries + 1):
            response = self.session.request(method, url, **kwargs)

            if response.ok or not is_retryable(response.status_code):
                return response

            if attempt < self.max_retries:
                delay = self.compute_delay(response, attempt)
                reason = (
                    "Rate limited"
                    if response.status_code == 429
                    else f"Server error ({response.status_code})"
                )
                logger.warning(
                    f"{reason}, retrying in {delay:.1f}s "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )
                self._sleep(delay)

        logger.error(
            f"Giving up on {method} {url} after {self.max_retries + 1} attempts "
            f"(status {response.status_code})"
        )
        return response

    def post(self, url: str, **kwargs) -> requests.Response:
        return self.request("POST", url, **kwargs)

    def get(self, url: str, **kwargs) -> requests.Response:
        return self.request("GET", url, **kwargs)

    def put(self, url: str, **kwargs) -> requests.Response:
        return self.request("PUT", url, **kwargs)
