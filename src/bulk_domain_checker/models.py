"""
Result types shared by the resolvers, the MCP server and the CLI.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum


class DomainStatus(Enum):
    """Status categories for a resolved domain."""

    AVAILABLE = "available"  # no registration found - can register
    REGISTERED = "registered"  # already taken
    ERROR = "error"  # timeout, rate limit, bad credentials - RETRY LATER


class Provider(Enum):
    """Where a result came from."""

    WHOIS = "whois"  # free-text registry protocol, classified
    GODADDY = "godaddy"  # structured registrar API


def utc_now() -> str:
    """Current time as an ISO-8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ResolutionResult:
    """Outcome of resolving one domain.

    ``available`` is tri-state: True (available), False (registered) or
    None (the lookup failed and ``error`` says why).
    """

    domain: str
    available: bool | None
    status: DomainStatus
    provider: Provider
    response_time_ms: int = 0
    from_cache: bool = False
    checked_at: str = ""
    error: str | None = None
    error_type: str | None = None
    price: float | None = None
    currency: str | None = None
    period: int | None = None

    def __post_init__(self) -> None:
        expected = {
            DomainStatus.AVAILABLE: True,
            DomainStatus.REGISTERED: False,
            DomainStatus.ERROR: None,
        }[self.status]
        if self.available is not expected:
            raise ValueError(
                f"available={self.available!r} is inconsistent with status {self.status.value}"
            )
        if (self.error is not None) != (self.status is DomainStatus.ERROR):
            raise ValueError("error must be set exactly when status is error")
        if not self.checked_at:
            object.__setattr__(self, "checked_at", utc_now())

    @classmethod
    def verdict(
        cls,
        domain: str,
        available: bool,
        provider: Provider,
        response_time_ms: int = 0,
        **extra,
    ) -> "ResolutionResult":
        """Build a successful result from an available/registered verdict."""
        return cls(
            domain=domain,
            available=available,
            status=DomainStatus.AVAILABLE if available else DomainStatus.REGISTERED,
            provider=provider,
            response_time_ms=response_time_ms,
            **extra,
        )

    @classmethod
    def failure(
        cls,
        domain: str,
        error: str,
        provider: Provider,
        response_time_ms: int = 0,
        error_type: str | None = None,
    ) -> "ResolutionResult":
        """Build an error result. Error results are never cached."""
        return cls(
            domain=domain,
            available=None,
            status=DomainStatus.ERROR,
            provider=provider,
            response_time_ms=response_time_ms,
            error=error or "Unknown error",
            error_type=error_type,
        )

    @property
    def is_error(self) -> bool:
        return self.status is DomainStatus.ERROR

    def cached_copy(self) -> "ResolutionResult":
        """The same result, flagged as served from the cache."""
        return replace(self, from_cache=True)

    def to_dict(self) -> dict:
        """JSON-ready representation (camelCase keys, optional fields omitted)."""
        data = {
            "domain": self.domain,
            "available": self.available,
            "status": self.status.value,
            "provider": self.provider.value,
            "responseTimeMs": self.response_time_ms,
            "fromCache": self.from_cache,
            "checkedAt": self.checked_at,
        }
        if self.error is not None:
            data["error"] = self.error
        if self.error_type is not None:
            data["errorType"] = self.error_type
        if self.price is not None:
            data["price"] = self.price
        if self.currency is not None:
            data["currency"] = self.currency
        if self.period is not None:
            data["period"] = self.period
        return data


@dataclass(frozen=True)
class BatchProgress:
    """Reported to the batch caller after each domain completes."""

    current: int
    total: int
    domain: str
    result: ResolutionResult

    @property
    def percentage(self) -> float:
        if not self.total:
            return 100.0
        return round(self.current / self.total * 100, 2)


@dataclass(frozen=True)
class BatchSummary:
    """Counts over a finished batch."""

    total: int = 0
    available: int = 0
    registered: int = 0
    errors: int = 0

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "available": self.available,
            "registered": self.registered,
            "errors": self.errors,
        }
