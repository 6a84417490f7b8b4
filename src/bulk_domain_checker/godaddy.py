"""
GoDaddy domain availability API client.

The registrar API answers with structured JSON, so nothing here needs the
WHOIS classifier. Calls go out one at a time through an ApiThrottle, which
spaces them and backs off after a 429. A failed call is not retried here;
the status is reported back to the caller as a RegistrarAPIError.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import AsyncIterator

import httpx

logger = logging.getLogger(__name__)

GODADDY_API_URL = "https://api.godaddy.com/v1"

# Request timeout in seconds
DEFAULT_TIMEOUT = 10.0

# GoDaddy reports prices in micro-units of the currency
PRICE_MICROS = 1_000_000

# Stable, user-facing messages per HTTP status
STATUS_ERRORS = {
    400: ("credentials", "Invalid GoDaddy API credentials (are you using OTE keys against production?)"),
    401: ("unauthorized", "GoDaddy API key or secret is invalid. Check your configuration."),
    403: ("unauthorized", "GoDaddy API key or secret is invalid. Check your configuration."),
    422: ("invalid_domain", "Invalid domain format"),
    429: ("rate_limit", "Request limit exceeded. Wait a moment before retrying."),
}


class RegistrarAPIError(Exception):
    """A registrar API call failed."""

    def __init__(self, message: str, status_code: int | None = None, error_type: str = "http_error") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_type = error_type


@dataclass(frozen=True)
class RegistrarAvailability:
    """Availability answer from the registrar API."""

    domain: str
    available: bool
    price: float | None = None
    currency: str | None = None
    period: int | None = None
    definitive: bool = True


class ApiThrottle:
    """
    Serializes and spaces calls to the registrar API.

    Usage:
        async with throttle.turn():
            response = await client.get(...)
    """

    def __init__(self, min_interval: float = 0.1, max_backoff: float = 32.0) -> None:
        self.min_interval = min_interval
        self.max_backoff = max_backoff
        self._lock = asyncio.Lock()
        self._next_allowed = 0.0
        self._strikes = 0

    @property
    def strikes(self) -> int:
        """Consecutive 429 answers since the last success."""
        return self._strikes

    @asynccontextmanager
    async def turn(self) -> AsyncIterator[None]:
        async with self._lock:
            wait = self._next_allowed - time.monotonic()
            if wait > 0:
                await asyncio.sleep(wait)
            try:
                yield
            finally:
                self._next_allowed = max(self._next_allowed, time.monotonic() + self.min_interval)

    def penalize(self, retry_after: float | None = None) -> None:
        """Hold back the next call after a 429 (2^n seconds when the server gives no hint)."""
        self._strikes += 1
        if retry_after is None:
            retry_after = min(2.0 ** self._strikes, self.max_backoff)
        self._next_allowed = time.monotonic() + retry_after

    def reset(self) -> None:
        self._strikes = 0


def retry_after_seconds(value: str | None) -> float | None:
    """Seconds to wait according to a Retry-After header (delta-seconds or HTTP date)."""
    if not value or not value.strip():
        return None
    value = value.strip()

    if value.replace(".", "", 1).isdigit():
        return float(value)

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or data.get("code") or "")
    return ""


def _parse_availability(domain: str, data: dict) -> RegistrarAvailability:
    if not isinstance(data, dict) or "available" not in data:
        raise RegistrarAPIError("Unexpected response from GoDaddy API", error_type="bad_response")

    price = data.get("price")
    return RegistrarAvailability(
        domain=data.get("domain") or domain,
        available=bool(data["available"]),
        price=price / PRICE_MICROS if isinstance(price, (int, float)) else None,
        currency=data.get("currency") or "USD",
        period=data.get("period") or 1,
        definitive=bool(data.get("definitive", True)),
    )


class GoDaddyClient:
    """
    Async GoDaddy API client.

    Usage:
        async with GoDaddyClient(key, secret) as client:
            answer = await client.check_availability("example.com")
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str = GODADDY_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        min_delay: float = 0.1,
        check_type: str = "FAST",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._api_secret = api_secret
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._check_type = check_type
        self._transport = transport
        self._http: httpx.AsyncClient | None = None
        self._throttle = ApiThrottle(min_interval=min_delay)

    @property
    def throttle(self) -> ApiThrottle:
        return self._throttle

    async def __aenter__(self) -> "GoDaddyClient":
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers={
                "Authorization": f"sso-key {self._api_key}:{self._api_secret}",
                "Accept": "application/json",
            },
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def _get_availability(self, domain: str) -> httpx.Response:
        assert self._http is not None
        async with self._throttle.turn():
            try:
                response = await self._http.get(
                    "/domains/available",
                    params={"domain": domain, "checkType": self._check_type, "forTransfer": "false"},
                )
            except httpx.TimeoutException:
                raise RegistrarAPIError(
                    f"GoDaddy API timed out after {self._timeout:g}s", error_type="timeout"
                ) from None
            except httpx.HTTPError as e:
                raise RegistrarAPIError(f"GoDaddy API connection error: {e}", error_type="network") from e

            if response.status_code == 429:
                self._throttle.penalize(retry_after_seconds(response.headers.get("Retry-After")))
            else:
                self._throttle.reset()
            return response

    async def check_availability(self, domain: str) -> RegistrarAvailability:
        """
        Ask the registrar whether a domain can be registered.

        Raises:
            RegistrarAPIError: on any non-200 answer, timeout or network failure
        """
        if self._http is None:
            raise RuntimeError("GoDaddyClient must be opened with 'async with' before use.")

        response = await self._get_availability(domain)

        if response.status_code == 200:
            try:
                data = response.json()
            except ValueError:
                raise RegistrarAPIError("Invalid JSON from GoDaddy API", error_type="bad_response") from None
            return _parse_availability(domain, data)

        detail = _error_detail(response)
        logger.warning("GoDaddy API error for %s: status %s %s", domain, response.status_code, detail)
        error_type, message = STATUS_ERRORS.get(
            response.status_code,
            ("http_error", f"GoDaddy API status {response.status_code}: {detail or 'Unknown error'}"),
        )
        raise RegistrarAPIError(message, status_code=response.status_code, error_type=error_type)
