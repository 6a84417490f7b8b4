"""
Tests for the resolution service.

The WHOIS and GoDaddy transports are replaced by the fakes in conftest.py;
the scheduler is real, with no delay.

Usage:
    pytest tests/test_resolver.py
"""

import asyncio
import logging

import pytest

from bulk_domain_checker.cache import ResultCache
from bulk_domain_checker.config import Settings
from bulk_domain_checker.godaddy import RegistrarAPIError, RegistrarAvailability
from bulk_domain_checker.models import DomainStatus, Provider, ResolutionResult
from bulk_domain_checker.resolver import (
    RegistrarResolver,
    WhoisResolver,
    open_resolvers,
    select_provider,
    summarize,
)
from bulk_domain_checker.scheduler import SerialScheduler
from bulk_domain_checker.whois_client import WhoisLookupError

from conftest import AVAILABLE_TEXT, REGISTERED_TEXT, FakeRegistrarClient, FakeWhoisClient


def fast_settings(**overrides):
    overrides.setdefault("rate_limit_delay", 0)
    return Settings(**overrides)


class TestWhoisResolver:
    """Tests for WhoisResolver.resolve_domain()."""

    @pytest.mark.anyio
    async def test_registered_domain(self):
        client = FakeWhoisClient({"example.com": REGISTERED_TEXT})
        async with SerialScheduler(delay=0) as scheduler:
            resolver = WhoisResolver(ResultCache(), scheduler, client, fast_settings())
            result = await resolver.resolve_domain("example.com")

        assert result.status is DomainStatus.REGISTERED
        assert result.available is False
        assert result.provider is Provider.WHOIS
        assert result.from_cache is False
        assert result.error is None

    @pytest.mark.anyio
    async def test_available_domain(self):
        client = FakeWhoisClient({"xyztestunique12345.com": AVAILABLE_TEXT})
        async with SerialScheduler(delay=0) as scheduler:
            resolver = WhoisResolver(ResultCache(), scheduler, client, fast_settings())
            result = await resolver.resolve_domain("xyztestunique12345.com")

        assert result.status is DomainStatus.AVAILABLE
        assert result.available is True

    @pytest.mark.anyio
    async def test_not_found_error_means_available(self):
        client = FakeWhoisClient({"free.com": WhoisLookupError('No match for "FREE.COM".')})
        async with SerialScheduler(delay=0) as scheduler:
            resolver = WhoisResolver(ResultCache(), scheduler, client, fast_settings())
            result = await resolver.resolve_domain("free.com")

        assert result.status is DomainStatus.AVAILABLE
        # Not-found answers are definitive, never retried
        assert len(client.calls) == 1

    @pytest.mark.anyio
    async def test_input_is_normalized(self):
        client = FakeWhoisClient({"example.com": REGISTERED_TEXT})
        async with SerialScheduler(delay=0) as scheduler:
            resolver = WhoisResolver(ResultCache(), scheduler, client, fast_settings())
            result = await resolver.resolve_domain("  https://www.Example.COM/path  ")

        assert result.domain == "example.com"
        assert client.calls[0][0] == "example.com"

    @pytest.mark.anyio
    async def test_second_call_is_served_from_cache(self):
        client = FakeWhoisClient({"example.com": REGISTERED_TEXT})
        async with SerialScheduler(delay=0) as scheduler:
            resolver = WhoisResolver(ResultCache(), scheduler, client, fast_settings())
            first = await resolver.resolve_domain("example.com")
            second = await resolver.resolve_domain("EXAMPLE.com")

        assert len(client.calls) == 1
        assert second.from_cache is True
        assert first.from_cache is False
        assert second.status is first.status
        assert second.checked_at == first.checked_at

    @pytest.mark.anyio
    async def test_expired_entry_is_looked_up_again(self, clock):
        client = FakeWhoisClient({"example.com": REGISTERED_TEXT})
        cache = ResultCache(ttl=60, clock=clock)
        async with SerialScheduler(delay=0) as scheduler:
            resolver = WhoisResolver(cache, scheduler, client, fast_settings())
            await resolver.resolve_domain("example.com")
            clock.advance(61)
            result = await resolver.resolve_domain("example.com")

        assert len(client.calls) == 2
        assert result.from_cache is False

    @pytest.mark.anyio
    async def test_invalid_domain_is_not_queried(self):
        client = FakeWhoisClient()
        async with SerialScheduler(delay=0) as scheduler:
            resolver = WhoisResolver(ResultCache(), scheduler, client, fast_settings())
            result = await resolver.resolve_domain("not a domain!")

        assert result.status is DomainStatus.ERROR
        assert result.available is None
        assert result.error_type == "invalid_domain"
        assert client.calls == []

    @pytest.mark.anyio
    async def test_timeout_on_slow_tld_needs_manual_verification(self):
        client = FakeWhoisClient({"myapp.app": WhoisLookupError("ETIMEDOUT")})
        settings = fast_settings(max_retries=2, slow_tld_timeout=15.0, whois_timeout=10.0)
        async with SerialScheduler(delay=0) as scheduler:
            resolver = WhoisResolver(ResultCache(), scheduler, client, settings)
            result = await resolver.resolve_domain("myapp.app")

        assert result.status is DomainStatus.ERROR
        assert result.available is None
        assert result.error_type == "manual_verification"
        assert "manual verification" in result.error
        # One initial attempt plus two retries, each with the slow-TLD timeout
        assert [timeout for _, timeout, _ in client.calls] == [15.0, 15.0, 15.0]

    @pytest.mark.anyio
    async def test_transient_failure_recovers_on_retry(self):
        client = FakeWhoisClient({
            "example.com": [WhoisLookupError("Connection reset by peer"), REGISTERED_TEXT],
        })
        async with SerialScheduler(delay=0) as scheduler:
            resolver = WhoisResolver(ResultCache(), scheduler, client, fast_settings(max_retries=2))
            result = await resolver.resolve_domain("example.com")

        assert result.status is DomainStatus.REGISTERED
        assert len(client.calls) == 2

    @pytest.mark.anyio
    async def test_errors_are_not_cached(self):
        client = FakeWhoisClient({
            "example.com": [WhoisLookupError("timed out"), REGISTERED_TEXT],
        })
        cache = ResultCache()
        async with SerialScheduler(delay=0) as scheduler:
            resolver = WhoisResolver(cache, scheduler, client, fast_settings(max_retries=0))
            first = await resolver.resolve_domain("example.com")
            assert first.status is DomainStatus.ERROR
            assert first.error_type == "timeout"
            assert not cache.has("example.com")

            second = await resolver.resolve_domain("example.com")

        assert second.status is DomainStatus.REGISTERED
        assert second.from_cache is False
        assert len(client.calls) == 2

    @pytest.mark.anyio
    async def test_cleared_lookup_is_reported_as_cancelled(self):
        gate = asyncio.Event()

        class GatedClient(FakeWhoisClient):
            async def lookup(self, domain, timeout=10.0, follow=3):
                await gate.wait()
                return await super().lookup(domain, timeout=timeout, follow=follow)

        client = GatedClient(default=REGISTERED_TEXT)
        async with SerialScheduler(delay=0) as scheduler:
            resolver = WhoisResolver(ResultCache(), scheduler, client, fast_settings())
            first = asyncio.create_task(resolver.resolve_domain("first.com"))
            second = asyncio.create_task(resolver.resolve_domain("second.com"))
            await asyncio.sleep(0.01)

            assert scheduler.clear() == 1
            gate.set()

            assert (await first).status is DomainStatus.REGISTERED
            result = await second

        assert result.status is DomainStatus.ERROR
        assert result.error_type == "cancelled"
        assert not resolver.cache.has("second.com")

    @pytest.mark.anyio
    async def test_unexpected_exception_becomes_error_result(self):
        client = FakeWhoisClient({"example.com": KeyError("boom")})
        async with SerialScheduler(delay=0) as scheduler:
            resolver = WhoisResolver(ResultCache(), scheduler, client, fast_settings())
            result = await resolver.resolve_domain("example.com")

        assert result.status is DomainStatus.ERROR
        assert result.error_type == "lookup_failed"


class TestResolveBatch:
    """Tests for resolve_batch()."""

    @pytest.mark.anyio
    async def test_failure_is_isolated_to_its_domain(self):
        domains = ["one.com", "two.com", "three.com", "four.com", "five.com"]
        client = FakeWhoisClient(
            {"three.com": WhoisLookupError("Unexpected registry answer")},
            default=REGISTERED_TEXT,
        )
        async with SerialScheduler(delay=0) as scheduler:
            resolver = WhoisResolver(ResultCache(), scheduler, client, fast_settings())
            results = await resolver.resolve_batch(domains)

        assert [r.domain for r in results] == domains
        assert [r.status for r in results] == [
            DomainStatus.REGISTERED,
            DomainStatus.REGISTERED,
            DomainStatus.ERROR,
            DomainStatus.REGISTERED,
            DomainStatus.REGISTERED,
        ]
        assert results[2].error == "Unexpected registry answer"
        assert [domain for domain, _, _ in client.calls] == domains

    @pytest.mark.anyio
    async def test_progress_callback(self):
        seen = []
        client = FakeWhoisClient(default=REGISTERED_TEXT)
        async with SerialScheduler(delay=0) as scheduler:
            resolver = WhoisResolver(ResultCache(), scheduler, client, fast_settings())
            await resolver.resolve_batch(["a.com", "b.com"], on_progress=seen.append)

        assert [(p.current, p.total, p.domain) for p in seen] == [(1, 2, "a.com"), (2, 2, "b.com")]
        assert seen[0].percentage == 50.0
        assert seen[1].percentage == 100.0
        assert seen[1].result.domain == "b.com"

    @pytest.mark.anyio
    async def test_async_progress_callback(self):
        seen = []

        async def on_progress(progress):
            seen.append(progress.current)

        client = FakeWhoisClient(default=REGISTERED_TEXT)
        async with SerialScheduler(delay=0) as scheduler:
            resolver = WhoisResolver(ResultCache(), scheduler, client, fast_settings())
            await resolver.resolve_batch(["a.com", "b.com", "c.com"], on_progress=on_progress)

        assert seen == [1, 2, 3]

    @pytest.mark.anyio
    async def test_failing_progress_callback_does_not_stop_batch(self):
        def on_progress(progress):
            raise RuntimeError("display went away")

        client = FakeWhoisClient(default=REGISTERED_TEXT)
        async with SerialScheduler(delay=0) as scheduler:
            resolver = WhoisResolver(ResultCache(), scheduler, client, fast_settings())
            results = await resolver.resolve_batch(["a.com", "b.com"], on_progress=on_progress)

        assert len(results) == 2

    @pytest.mark.anyio
    async def test_empty_batch(self):
        seen = []
        client = FakeWhoisClient()
        async with SerialScheduler(delay=0) as scheduler:
            resolver = WhoisResolver(ResultCache(), scheduler, client, fast_settings())
            results = await resolver.resolve_batch([], on_progress=seen.append)

        assert results == []
        assert seen == []
        assert client.calls == []


class TestRegistrarResolver:
    """Tests for RegistrarResolver."""

    @pytest.mark.anyio
    async def test_available_with_price(self):
        client = FakeRegistrarClient()
        resolver = RegistrarResolver(ResultCache(), client)

        result = await resolver.resolve_domain("example.com")

        assert result.status is DomainStatus.AVAILABLE
        assert result.provider is Provider.GODADDY
        assert result.price == 11.99
        assert result.currency == "USD"
        assert result.period == 1

    @pytest.mark.anyio
    async def test_registered(self):
        client = FakeRegistrarClient({
            "google.com": RegistrarAvailability(domain="google.com", available=False),
        })
        resolver = RegistrarResolver(ResultCache(), client)

        result = await resolver.resolve_domain("google.com")

        assert result.status is DomainStatus.REGISTERED
        assert result.price is None

    @pytest.mark.anyio
    async def test_non_definitive_answer_is_logged(self, caplog):
        client = FakeRegistrarClient({
            "maybe.com": RegistrarAvailability(domain="maybe.com", available=True, definitive=False),
        })
        resolver = RegistrarResolver(ResultCache(), client)

        with caplog.at_level(logging.WARNING, logger="bulk_domain_checker.resolver"):
            result = await resolver.resolve_domain("maybe.com")

        assert result.status is DomainStatus.AVAILABLE
        assert "maybe.com is not definitive" in caplog.text

    @pytest.mark.anyio
    async def test_definitive_answer_is_quiet(self, caplog):
        resolver = RegistrarResolver(ResultCache(), FakeRegistrarClient())

        with caplog.at_level(logging.WARNING, logger="bulk_domain_checker.resolver"):
            await resolver.resolve_domain("example.com")

        assert "not definitive" not in caplog.text

    @pytest.mark.anyio
    async def test_unauthorized_is_not_retried(self):
        error = RegistrarAPIError(
            "GoDaddy API key or secret is invalid. Check your configuration.",
            status_code=401,
            error_type="unauthorized",
        )
        client = FakeRegistrarClient({"example.com": error})
        resolver = RegistrarResolver(ResultCache(), client)

        result = await resolver.resolve_domain("example.com")

        assert result.status is DomainStatus.ERROR
        assert result.error_type == "unauthorized"
        assert "invalid" in result.error
        assert client.calls == ["example.com"]

    @pytest.mark.anyio
    async def test_cache_hit_skips_api(self):
        client = FakeRegistrarClient()
        resolver = RegistrarResolver(ResultCache(), client)

        await resolver.resolve_domain("example.com")
        result = await resolver.resolve_domain("example.com")

        assert result.from_cache is True
        assert result.price == 11.99
        assert client.calls == ["example.com"]


class TestSelectProvider:
    """Tests for select_provider()."""

    def test_explicit_whois(self):
        assert select_provider("whois", Settings(), has_credentials=True) is Provider.WHOIS

    def test_explicit_godaddy(self):
        assert select_provider("GoDaddy", Settings(), has_credentials=True) is Provider.GODADDY

    def test_godaddy_without_credentials(self):
        with pytest.raises(ValueError, match="credentials"):
            select_provider("godaddy", Settings(), has_credentials=False)

    def test_auto(self):
        assert select_provider("auto", Settings(), has_credentials=True) is Provider.GODADDY
        assert select_provider("auto", Settings(), has_credentials=False) is Provider.WHOIS
        assert select_provider(None, Settings(), has_credentials=False) is Provider.WHOIS

    def test_auto_respects_configured_provider(self):
        settings = Settings(domain_provider="whois")
        assert select_provider("auto", settings, has_credentials=True) is Provider.WHOIS

    def test_unknown_method(self):
        with pytest.raises(ValueError, match="Invalid method"):
            select_provider("dns", Settings(), has_credentials=True)


class TestOpenResolvers:
    """Tests for open_resolvers() and ResolverSet."""

    @pytest.mark.anyio
    async def test_whois_only(self):
        client = FakeWhoisClient(default=REGISTERED_TEXT)
        async with open_resolvers(fast_settings(), whois_client=client) as resolvers:
            assert resolvers.godaddy is None
            assert resolvers.scheduler.running
            assert resolvers.resolver_for("auto") is resolvers.whois

            result = await resolvers.resolver_for().resolve_domain("example.com")
            assert result.status is DomainStatus.REGISTERED

        assert not resolvers.scheduler.running

    @pytest.mark.anyio
    async def test_shared_cache_between_providers(self):
        async with open_resolvers(
            fast_settings(),
            whois_client=FakeWhoisClient(default=REGISTERED_TEXT),
            godaddy_client=FakeRegistrarClient(),
        ) as resolvers:
            assert resolvers.resolver_for("auto") is resolvers.godaddy
            assert resolvers.resolver_for("whois") is resolvers.whois

            await resolvers.godaddy.resolve_domain("example.com")
            result = await resolvers.whois.resolve_domain("example.com")

        # Keyed by domain only: the GoDaddy answer is reused
        assert result.from_cache is True
        assert result.provider is Provider.GODADDY


def test_summarize():
    results = [
        ResolutionResult.verdict("a.com", True, Provider.WHOIS),
        ResolutionResult.verdict("b.com", False, Provider.WHOIS),
        ResolutionResult.verdict("c.com", False, Provider.WHOIS),
        ResolutionResult.failure("d.com", "timed out", Provider.WHOIS),
    ]

    summary = summarize(results)

    assert summary.to_dict() == {"total": 4, "available": 1, "registered": 2, "errors": 1}
