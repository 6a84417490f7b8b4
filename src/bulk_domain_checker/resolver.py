"""
Domain resolution: cache -> scheduled lookup -> classification -> cache.

Two resolvers share the same contract so callers do not care which one they
hold:

- WhoisResolver sends every lookup through the process-wide SerialScheduler
  and classifies the free-text answer.
- RegistrarResolver asks the GoDaddy API, whose answer is already structured
  and whose pacing is done by its own client.

resolve_domain() never raises: failures come back as error results, which
are not cached so a retry can go straight to the network.
"""

import asyncio
import inspect
import logging
import time
from abc import ABC, abstractmethod
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Iterable

from .cache import ResultCache, sweep_periodically
from .classifier import Classification, Verdict, classify_failure, classify_response, is_not_found_error, is_transient_error
from .config import GoDaddyCredentials, Settings
from .domains import InvalidDomainError, get_tld, normalize_domain
from .godaddy import GoDaddyClient, RegistrarAPIError
from .models import BatchProgress, BatchSummary, DomainStatus, Provider, ResolutionResult
from .scheduler import SchedulerCleared, SerialScheduler
from .whois_client import WhoisClient, WhoisLookupError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[BatchProgress], Awaitable[None] | None]

METHODS = ("auto", "whois", "godaddy")


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class DomainResolver(ABC):
    """Cache handling and batching shared by every provider."""

    provider: Provider

    def __init__(self, cache: ResultCache) -> None:
        self._cache = cache

    @property
    def cache(self) -> ResultCache:
        return self._cache

    @abstractmethod
    async def _resolve_uncached(self, domain: str, started: float) -> ResolutionResult:
        """Look up a normalized domain that is not in the cache."""

    async def resolve_domain(self, domain: str) -> ResolutionResult:
        """
        Resolve one domain.

        Returns:
            A ResolutionResult; lookup failures are reported in it
            (status=error) rather than raised.
        """
        started = time.monotonic()

        try:
            normalized = normalize_domain(domain)
        except InvalidDomainError as e:
            shown = domain.strip().lower() if isinstance(domain, str) else repr(domain)
            return ResolutionResult.failure(
                shown, str(e), self.provider, _elapsed_ms(started), error_type="invalid_domain"
            )

        cached = self._cache.get(normalized)
        if cached is not None:
            logger.debug("Cache hit for %s", normalized)
            return cached.cached_copy()

        try:
            result = await self._resolve_uncached(normalized, started)
        except SchedulerCleared as e:
            return ResolutionResult.failure(
                normalized, str(e), self.provider, _elapsed_ms(started), error_type="cancelled"
            )
        except Exception as e:
            logger.warning("Lookup for %s failed: %s", normalized, e)
            return ResolutionResult.failure(
                normalized,
                str(e) or type(e).__name__,
                self.provider,
                _elapsed_ms(started),
                error_type="lookup_failed",
            )

        if not result.is_error:
            self._cache.set(normalized, result)
        return result

    async def resolve_batch(
        self,
        domains: Iterable[str],
        on_progress: ProgressCallback | None = None,
    ) -> list[ResolutionResult]:
        """
        Resolve domains one after another, in input order.

        Args:
            domains: Domains to resolve
            on_progress: Called (or awaited) after each domain with a BatchProgress

        Returns:
            One result per input domain, in the same order
        """
        domains = list(domains)
        total = len(domains)
        results = []

        for index, domain in enumerate(domains, start=1):
            result = await self.resolve_domain(domain)
            results.append(result)

            if on_progress is not None:
                progress = BatchProgress(current=index, total=total, domain=domain, result=result)
                try:
                    outcome = on_progress(progress)
                    if inspect.isawaitable(outcome):
                        await outcome
                except Exception as e:
                    logger.warning("Progress callback failed: %s", e)

        return results


class WhoisResolver(DomainResolver):
    """Resolves domains over WHOIS, one query at a time."""

    provider = Provider.WHOIS

    def __init__(
        self,
        cache: ResultCache,
        scheduler: SerialScheduler,
        client: WhoisClient,
        settings: Settings | None = None,
    ) -> None:
        super().__init__(cache)
        self._scheduler = scheduler
        self._client = client
        self._settings = settings or Settings()

    async def _lookup(self, domain: str, tld: str) -> Classification:
        timeout = self._settings.timeout_for(tld)
        follow = self._settings.whois_follow
        attempts = self._settings.max_retries + 1
        attempt = 0

        while True:
            attempt += 1
            try:
                # Each attempt is its own scheduled task, so retries stay serialized
                raw = await self._scheduler.submit(
                    lambda: self._client.lookup(domain, timeout=timeout, follow=follow)
                )
            except WhoisLookupError as e:
                message = str(e)
                retryable = is_transient_error(message) and not is_not_found_error(message)
                if retryable and attempt < attempts:
                    logger.warning(
                        "WHOIS lookup for %s failed (attempt %d/%d): %s",
                        domain, attempt, attempts, message,
                    )
                    continue
                return classify_failure(message, tld=tld, slow_tlds=self._settings.slow_tlds)

            return classify_response(raw)

    async def _resolve_uncached(self, domain: str, started: float) -> ResolutionResult:
        tld = get_tld(domain)
        classification = await self._lookup(domain, tld)
        elapsed = _elapsed_ms(started)

        if classification.verdict is Verdict.ERROR:
            if classification.error_type == "manual_verification":
                logger.warning("WHOIS unavailable for %s: .%s needs manual verification", domain, tld)
            return ResolutionResult.failure(
                domain,
                classification.message or "WHOIS lookup failed",
                self.provider,
                elapsed,
                error_type=classification.error_type,
            )

        logger.info(
            "%s is %s (%s, %s confidence)",
            domain, classification.verdict.value.upper(), classification.rule, classification.confidence,
        )
        return ResolutionResult.verdict(domain, classification.available, self.provider, elapsed)


class RegistrarResolver(DomainResolver):
    """Resolves domains through the GoDaddy availability API."""

    provider = Provider.GODADDY

    def __init__(self, cache: ResultCache, client: GoDaddyClient) -> None:
        super().__init__(cache)
        self._client = client

    async def _resolve_uncached(self, domain: str, started: float) -> ResolutionResult:
        try:
            answer = await self._client.check_availability(domain)
        except RegistrarAPIError as e:
            # Not retried; the status goes back to the caller
            return ResolutionResult.failure(
                domain, str(e), self.provider, _elapsed_ms(started), error_type=e.error_type
            )

        elapsed = _elapsed_ms(started)
        logger.info(
            "GoDaddy: %s is %s (%dms)", domain, "AVAILABLE" if answer.available else "REGISTERED", elapsed
        )
        if not answer.definitive:
            logger.warning("GoDaddy answer for %s is not definitive (FAST check); verify before buying", domain)
        return ResolutionResult.verdict(
            domain,
            answer.available,
            self.provider,
            elapsed,
            price=answer.price,
            currency=answer.currency,
            period=answer.period,
        )


def summarize(results: Iterable[ResolutionResult]) -> BatchSummary:
    """Count available / registered / error results."""
    counts = {status: 0 for status in DomainStatus}
    total = 0
    for result in results:
        counts[result.status] += 1
        total += 1
    return BatchSummary(
        total=total,
        available=counts[DomainStatus.AVAILABLE],
        registered=counts[DomainStatus.REGISTERED],
        errors=counts[DomainStatus.ERROR],
    )


def select_provider(method: str, settings: Settings, has_credentials: bool) -> Provider:
    """
    Decide which provider serves a request.

    "auto" prefers GoDaddy when credentials are configured and the settings
    ask for it, otherwise WHOIS.

    Raises:
        ValueError: unknown method, or "godaddy" without credentials
    """
    method = (method or "auto").lower()
    if method not in METHODS:
        raise ValueError(f"Invalid method '{method}'. Use 'whois', 'godaddy', or 'auto'")

    if method == "whois":
        return Provider.WHOIS
    if method == "godaddy":
        if not has_credentials:
            raise ValueError("GoDaddy API credentials not configured")
        return Provider.GODADDY

    if has_credentials and settings.domain_provider == "godaddy":
        return Provider.GODADDY
    return Provider.WHOIS


@dataclass
class ResolverSet:
    """The process-wide cache, scheduler and resolvers built by an entry point."""

    settings: Settings
    cache: ResultCache
    scheduler: SerialScheduler
    whois: WhoisResolver
    godaddy: RegistrarResolver | None = None

    def resolver_for(self, method: str = "auto") -> DomainResolver:
        provider = select_provider(method, self.settings, has_credentials=self.godaddy is not None)
        if provider is Provider.GODADDY and self.godaddy is not None:
            return self.godaddy
        return self.whois


@asynccontextmanager
async def open_resolvers(
    settings: Settings,
    credentials: GoDaddyCredentials | None = None,
    whois_client: WhoisClient | None = None,
    godaddy_client: GoDaddyClient | None = None,
) -> AsyncIterator[ResolverSet]:
    """
    Build the shared cache and scheduler and the resolvers around them.

    Starts the scheduler worker and the hourly cache sweep; both are stopped
    on exit.
    """
    cache = ResultCache(ttl=settings.cache_ttl)

    async with AsyncExitStack() as stack:
        scheduler = await stack.enter_async_context(SerialScheduler(delay=settings.rate_limit_delay))

        if godaddy_client is None and credentials is not None:
            godaddy_client = GoDaddyClient(
                credentials.key,
                credentials.secret,
                base_url=settings.godaddy_base_url,
                timeout=settings.godaddy_timeout,
            )
        if godaddy_client is not None:
            await stack.enter_async_context(godaddy_client)

        sweeper = asyncio.create_task(
            sweep_periodically(cache, settings.cache_sweep_interval), name="cache-sweep"
        )

        async def _stop_sweeper() -> None:
            sweeper.cancel()
            try:
                await sweeper
            except asyncio.CancelledError:
                pass

        stack.push_async_callback(_stop_sweeper)

        yield ResolverSet(
            settings=settings,
            cache=cache,
            scheduler=scheduler,
            whois=WhoisResolver(cache, scheduler, whois_client or WhoisClient(), settings),
            godaddy=RegistrarResolver(cache, godaddy_client) if godaddy_client is not None else None,
        )
