"""
HTTP Utilities

Rate-limited HTTP client for the remote tracker APIs. All calls are made one
at a time and paced according to the rate-limit budget the tracker reports,
with a single extended backoff when the tracker throttles a request.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from assessment_sync.core.config import settings
from assessment_sync.core.constants import THROTTLE_STATUS_CODES
from assessment_sync.core.metrics import (
    tracker_api_duration_seconds,
    tracker_api_errors_total,
    tracker_api_requests_total,
    tracker_throttle_backoffs_total,
)

logger = logging.getLogger(__name__)


class HTTPRequestError(Exception):
    """Base exception for HTTP request failures."""

    retryable = False

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ThrottledError(HTTPRequestError):
    """The tracker kept throttling after the extended backoff."""

    retryable = True


class PaginationLimitError(HTTPRequestError):
    """A list endpoint still had pages left after ``max_pages`` pages."""


class RateLimitedClient:
    """
    A wrapper around httpx.Client that paces requests and records metrics.

    Usage:
        with RateLimitedClient("GitHub API", base_url=url, headers=headers) as client:
            milestones = client.paginate("/repos/o/r/milestones")
            created = client.post_json("/repos/o/r/issues", {"title": "..."})

    Pacing rules, applied after every call:
    - sleep at least ``min_interval_seconds`` before the next call
    - sleep ``cooldown_seconds`` when the remaining budget reported in
      ``rate_limit_header`` is at or below ``low_water_mark``
    - on a throttling response sleep ``throttle_backoff_seconds`` and retry
      exactly once; a second throttle raises ThrottledError
    """

    def __init__(
        self,
        service_name: str,
        base_url: str = "",
        headers: Optional[Dict[str, str]] = None,
        rate_limit_header: str = "X-RateLimit-Remaining",
        timeout: Optional[float] = None,
        low_water_mark: Optional[int] = None,
        cooldown_seconds: Optional[float] = None,
        min_interval_seconds: Optional[float] = None,
        throttle_backoff_seconds: Optional[float] = None,
        max_pages: Optional[int] = None,
        **kwargs,
    ):
        self.service_name = service_name
        self.rate_limit_header = rate_limit_header
        self.low_water_mark = (
            low_water_mark if low_water_mark is not None else settings.RATE_LIMIT_LOW_WATER_MARK
        )
        self.cooldown_seconds = (
            cooldown_seconds if cooldown_seconds is not None else settings.RATE_LIMIT_COOLDOWN_SECONDS
        )
        self.min_interval_seconds = (
            min_interval_seconds
            if min_interval_seconds is not None
            else settings.MIN_REQUEST_INTERVAL_SECONDS
        )
        self.throttle_backoff_seconds = (
            throttle_backoff_seconds
            if throttle_backoff_seconds is not None
            else settings.THROTTLE_BACKOFF_SECONDS
        )
        self.max_pages = max_pages if max_pages is not None else settings.MAX_PAGES
        self.remaining: Optional[int] = None

        self._client = httpx.Client(
            base_url=base_url,
            headers=headers or {},
            timeout=timeout if timeout is not None else settings.HTTP_TIMEOUT,
            **kwargs,
        )

    def close(self) -> None:
        """Close the underlying client."""
        self._client.close()

    def __enter__(self) -> "RateLimitedClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _read_remaining(self, response: httpx.Response) -> Optional[int]:
        value = response.headers.get(self.rate_limit_header)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    def _is_throttled(self, response: httpx.Response) -> bool:
        """
        429 is always throttling. 403 is throttling only when the tracker says
        so; otherwise it is a permission error and must not be retried.
        """
        if response.status_code not in THROTTLE_STATUS_CODES:
            return False
        if response.status_code == 429:
            return True
        if "Retry-After" in response.headers:
            return True
        if self._read_remaining(response) == 0:
            return True
        return "rate limit" in response.text.lower()

    def _pace(self, response: httpx.Response) -> None:
        self.remaining = self._read_remaining(response)
        delay = self.min_interval_seconds
        if self.remaining is not None and self.remaining <= self.low_water_mark:
            logger.info(
                f"{self.service_name} rate limit low ({self.remaining} remaining), "
                f"cooling down for {self.cooldown_seconds}s"
            )
            delay = max(delay, self.cooldown_seconds)
        if delay > 0:
            time.sleep(delay)

    def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        start_time = time.time()
        tracker_api_requests_total.labels(service=self.service_name).inc()
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.TimeoutException:
            tracker_api_errors_total.labels(service=self.service_name).inc()
            raise HTTPRequestError(f"Timeout during {method} {url} on {self.service_name}")
        except httpx.HTTPError as e:
            tracker_api_errors_total.labels(service=self.service_name).inc()
            raise HTTPRequestError(f"Connection error during {method} {url} on {self.service_name}: {e}")
        tracker_api_duration_seconds.labels(service=self.service_name).observe(time.time() - start_time)
        self._pace(response)
        return response

    def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Make a paced request, backing off once if the tracker throttles it."""
        response = self._send(method, url, **kwargs)

        if self._is_throttled(response):
            tracker_throttle_backoffs_total.labels(service=self.service_name).inc()
            logger.warning(
                f"{self.service_name} throttled {method} {url} (HTTP {response.status_code}), "
                f"backing off for {self.throttle_backoff_seconds}s"
            )
            time.sleep(self.throttle_backoff_seconds)
            response = self._send(method, url, **kwargs)
            if self._is_throttled(response):
                tracker_api_errors_total.labels(service=self.service_name).inc()
                raise ThrottledError(
                    f"{self.service_name} still throttling {method} {url} after backoff",
                    status_code=response.status_code,
                )

        if response.is_error:
            tracker_api_errors_total.labels(service=self.service_name).inc()
            raise HTTPRequestError(
                f"HTTP {response.status_code} during {method} {url} on {self.service_name}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return response

    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.request("GET", url, params=params).json()

    def post_json(self, url: str, data: Dict[str, Any]) -> Any:
        return self.request("POST", url, json=data).json()

    def paginate(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        per_page: int = 100,
    ) -> List[Dict[str, Any]]:
        """
        GET every page of a list endpoint.

        Follows the ``Link: rel="next"`` header, falling back to GitLab's
        ``X-Next-Page`` header. Raises PaginationLimitError when pages
        remain after ``max_pages`` pages.
        """
        all_items: List[Dict[str, Any]] = []
        request_params: Optional[Dict[str, Any]] = {**(params or {}), "per_page": per_page}
        next_url: Optional[str] = url
        pages = 0
        exhausted = False

        while next_url and pages < self.max_pages:
            response = self.request("GET", next_url, params=request_params)
            pages += 1

            items = response.json()
            if not items:
                exhausted = True
                break
            all_items.extend(items)

            link_next = response.links.get("next", {}).get("url")
            next_page = response.headers.get("X-Next-Page")
            if link_next:
                next_url = link_next
                request_params = None
            elif next_page:
                request_params = {**(params or {}), "per_page": per_page, "page": next_page}
            else:
                next_url = None

        if next_url and not exhausted and pages >= self.max_pages:
            tracker_api_errors_total.labels(service=self.service_name).inc()
            raise PaginationLimitError(
                f"{self.service_name} GET {url} has more than {self.max_pages} pages; raise MAX_PAGES"
            )

        return all_items
