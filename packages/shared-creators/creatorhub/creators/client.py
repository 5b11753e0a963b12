"""Shop API client, request pacing and the daily quota budget.

The shop API is reached through an already-authenticated request executor;
token refresh is handled elsewhere. Every external call made by a run goes
through a ``Pacer`` (fixed minimum delay between calls) and a ``QuotaBudget``
(hard daily request limit shared by all runs in the process).
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from datetime import UTC, date, datetime
from typing import Any, Protocol

import httpx

from creatorhub.creators.config import EnrichmentSettings
from creatorhub.creators.exceptions import (
    AuthenticationError,
    ExternalApiError,
    QuotaExceededError,
    RateLimitedError,
    TransientExternalError,
)
from creatorhub.creators.masking import normalize_handle
from creatorhub.creators.models import MarketplaceProfile

logger = logging.getLogger(__name__)

ORDER_SEARCH_PATH = "/order/202309/orders/search"
MARKETPLACE_SEARCH_PATH = "/affiliate_seller/202406/marketplace_creators/search"

# Marketplace search only accepts page sizes of 12 or 20
MARKETPLACE_PAGE_SIZE = 12

# HTTP timeouts (in seconds)
API_CONNECT_TIMEOUT = 10.0


class RequestExecutor(Protocol):
    """Authenticated shop API request executor."""

    def request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]: ...


class ShopApiClient:
    """httpx-based executor for the shop open API.

    Maps transport and API failures onto the creator sync error taxonomy:

    - network errors, HTTP 5xx and 429: ``TransientExternalError``
      (``RateLimitedError`` for 429)
    - HTTP 401/403 or a missing access token: ``AuthenticationError``
    - envelope codes listed in ``settings.quota_exceeded_codes``:
      ``QuotaExceededError``
    - any other non-zero envelope code or 4xx: ``ExternalApiError``

    Example:
        >>> with ShopApiClient(EnrichmentSettings.from_env()) as api:
        ...     data = api.request("POST", ORDER_SEARCH_PATH, {}, {"page_size": 100})
    """

    def __init__(self, settings: EnrichmentSettings):
        """Initialize the client.

        Args:
            settings: Settings carrying base URL, access token and timeout.
        """
        self.settings = settings
        self._client: httpx.Client | None = None

    def __enter__(self) -> ShopApiClient:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    @property
    def is_authenticated(self) -> bool:
        return self._client is not None

    def authenticate(self) -> httpx.Client:
        """Create the HTTP client, or return the one already open.

        Raises:
            AuthenticationError: If no access token is configured.
        """
        if self._client is not None:
            return self._client

        token = self.settings.access_token
        if not token:
            raise AuthenticationError("Shop API access token is not configured")

        self._client = httpx.Client(
            base_url=self.settings.api_base_url,
            headers={
                "x-tts-access-token": token,
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(self.settings.timeout, connect=API_CONNECT_TIMEOUT),
        )
        logger.info("Connected to shop API")
        return self._client

    def request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send one request and return the envelope's ``data`` object.

        Raises:
            TransientExternalError: On network errors, 5xx and 429.
            AuthenticationError: On 401/403.
            QuotaExceededError: On a configured quota envelope code.
            ExternalApiError: On any other API error.
        """
        client = self._client or self.authenticate()

        query = dict(params or {})
        if self.settings.shop_cipher:
            query.setdefault("shop_cipher", self.settings.shop_cipher)

        try:
            response = client.request(method, path, json=body, params=query)
        except httpx.TransportError as e:
            raise TransientExternalError(f"{method} {path} failed: {e}") from e

        self._raise_for_status(response, method, path)

        try:
            payload = response.json()
        except ValueError as e:
            raise ExternalApiError(f"{method} {path} returned invalid JSON") from e

        return self._unwrap(payload, method, path)

    def _raise_for_status(self, response: httpx.Response, method: str, path: str) -> None:
        status = response.status_code
        if status == 429:
            raise RateLimitedError(f"{method} {path} rate limited", code=status)
        if status >= 500:
            raise TransientExternalError(f"{method} {path} server error {status}", code=status)
        if status in (401, 403):
            raise AuthenticationError(f"{method} {path} unauthorized ({status})")
        if status >= 400:
            raise ExternalApiError(f"{method} {path} failed with {status}", code=status)

    def _unwrap(self, payload: Any, method: str, path: str) -> dict[str, Any]:
        if not isinstance(payload, dict):
            raise ExternalApiError(f"{method} {path} returned unexpected payload")

        code = payload.get("code", 0)
        if code in self.settings.quota_exceeded_codes:
            raise QuotaExceededError(f"Daily API quota exceeded (code {code})")
        if code == 429:
            raise RateLimitedError(f"{method} {path} rate limited", code=code)
        if code:
            message = payload.get("message") or "unknown error"
            raise ExternalApiError(f"{method} {path} error {code}: {message}", code=code)

        data = payload.get("data")
        return data if isinstance(data, dict) else {}

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            try:
                self._client.close()
            except Exception as e:  # pragma: no cover
                logger.warning(f"Error closing shop API client: {e}")
        self._client = None


class Pacer:
    """Fixed minimum delay between successive calls within one run.

    No delay is applied before the first call.
    """

    def __init__(
        self,
        delay_seconds: float,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.delay_seconds = delay_seconds
        self._sleep = sleep
        self._calls = 0

    @property
    def calls(self) -> int:
        return self._calls

    def wait(self) -> None:
        """Block until the next call may be made, then count it."""
        if self._calls > 0 and self.delay_seconds > 0:
            self._sleep(self.delay_seconds)
        self._calls += 1

    def reset(self) -> None:
        self._calls = 0


class QuotaBudget:
    """Daily external request budget, reset at UTC midnight.

    Thread-safe so concurrently running run types share one budget.
    """

    def __init__(
        self,
        daily_limit: int,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        self.daily_limit = daily_limit
        self._clock = clock
        self._day: date | None = None
        self._used = 0
        self._lock = threading.Lock()

    def _roll(self) -> None:
        today = self._clock().date()
        if today != self._day:
            self._day = today
            self._used = 0

    @property
    def used(self) -> int:
        with self._lock:
            self._roll()
            return self._used

    def remaining(self) -> int:
        """Requests still available today."""
        with self._lock:
            self._roll()
            return max(self.daily_limit - self._used, 0)

    def consume(self, amount: int = 1) -> None:
        """Reserve requests from today's budget.

        Raises:
            QuotaExceededError: If the budget is exhausted.
        """
        with self._lock:
            self._roll()
            if self._used + amount > self.daily_limit:
                raise QuotaExceededError(
                    f"Daily request quota of {self.daily_limit} exhausted"
                )
            self._used += amount


def find_exact_match(
    candidates: list[dict[str, Any]], handle: str
) -> dict[str, Any] | None:
    """Return the candidate whose username equals ``handle``.

    Comparison ignores case, surrounding whitespace and a leading ``@``.
    """
    wanted = normalize_handle(handle)
    if not wanted:
        return None
    for candidate in candidates:
        if normalize_handle(candidate.get("username")) == wanted:
            return candidate
    return None


class MarketplaceClient:
    """Marketplace creator search with pacing and quota accounting.

    Example:
        >>> client = MarketplaceClient(api, Pacer(0.3), QuotaBudget(10_000))
        >>> profile = client.lookup("janedoe")
    """

    def __init__(
        self,
        executor: RequestExecutor,
        pacer: Pacer,
        quota: QuotaBudget,
    ):
        self.executor = executor
        self.pacer = pacer
        self.quota = quota

    def search(self, handle: str) -> list[dict[str, Any]]:
        """Search the marketplace by handle and return raw candidates.

        Raises:
            QuotaExceededError: If today's budget is used up.
            TransientExternalError: On transport, 5xx or 429 failures.
        """
        self.quota.consume()
        self.pacer.wait()
        data = self.executor.request(
            "POST",
            MARKETPLACE_SEARCH_PATH,
            body={"keyword": handle},
            params={"page_size": MARKETPLACE_PAGE_SIZE},
        )
        creators = data.get("creators") or []
        return [c for c in creators if isinstance(c, dict)]

    def lookup(self, handle: str) -> MarketplaceProfile | None:
        """Return the exact-handle marketplace profile, or None if not found."""
        candidate = find_exact_match(self.search(handle), handle)
        if candidate is None:
            logger.debug(f"No marketplace match for @{handle}")
            return None
        return MarketplaceProfile.from_candidate(candidate)
