"""
Bulk Domain Checker MCP Server

An MCP server for checking domain name availability:
- via the GoDaddy availability API (when credentials are configured)
- via WHOIS, one paced query at a time, with the response classified

The cache and the WHOIS scheduler are created once per server process by the
lifespan and shared by every tool call.
"""

import json
import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from mcp.server.fastmcp import Context, FastMCP

from . import __version__
from .config import Settings, get_godaddy_credentials
from .domains import InvalidDomainError, expand_names, normalize_domain
from .models import BatchProgress, DomainStatus, ResolutionResult
from .resolver import ResolverSet, open_resolvers, summarize

logger = logging.getLogger(__name__)

# Suppress httpx request logging by default (credentials travel in headers)
# Set DOMAIN_CHECKER_DEBUG=1 to enable verbose HTTP logging
if not os.environ.get("DOMAIN_CHECKER_DEBUG"):
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

VERSION = __version__

# Smallest per-request WHOIS delay a caller may set, in seconds
MIN_REQUEST_DELAY = 1.0


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[ResolverSet]:
    """Create the shared cache, scheduler and resolvers for this process."""
    settings = Settings.from_env()
    credentials = get_godaddy_credentials()

    async with open_resolvers(settings, credentials) as resolvers:
        if resolvers.godaddy is not None:
            logger.info("GoDaddy credentials found; 'auto' uses the %s provider", settings.domain_provider)
        else:
            logger.info("GoDaddy not configured; domain lookups use WHOIS")
        yield resolvers


# Initialize the MCP server
mcp = FastMCP("bulk-domain-checker", lifespan=lifespan)
mcp._mcp_server.version = VERSION


# =============================================================================
# Report building
# =============================================================================

def build_report(
    results: list[ResolutionResult],
    invalid: list[dict] | None = None,
    only_available: bool = False,
) -> dict:
    """Group results into available / unavailable / errors plus a summary."""
    available_list = []
    unavailable_list = []
    errors_list = []

    for r in results:
        if r.status is DomainStatus.AVAILABLE:
            entry = {"domain": r.domain}
            if r.price is not None:
                entry["price"] = r.price
                entry["currency"] = r.currency
            if r.from_cache:
                entry["fromCache"] = True
            available_list.append(entry)
        elif r.status is DomainStatus.REGISTERED:
            unavailable_list.append(r.domain)
        else:
            errors_list.append({
                "domain": r.domain,
                "error": r.error,
                "errorType": r.error_type,
            })

    response = {
        "available": available_list,
    }

    if not only_available:
        response["unavailable"] = unavailable_list
        if errors_list:
            response["errors"] = errors_list
        if invalid:
            response["invalid"] = invalid

    summary = summarize(results).to_dict()
    if invalid:
        summary["invalid"] = len(invalid)

    if available_list:
        with_price = [d for d in available_list if "price" in d]
        if with_price:
            summary["cheapestAvailable"] = min(with_price, key=lambda x: x["price"])
        summary["shortestAvailable"] = min(available_list, key=lambda x: len(x["domain"]))

    response["summary"] = summary
    return response


async def run_domain_check(
    resolvers: ResolverSet,
    names: list[str],
    tlds: list[str] | None = None,
    method: str = "auto",
    only_available: bool = False,
    on_progress: Callable[[BatchProgress], Awaitable[None] | None] | None = None,
    delay: float | None = None,
) -> dict:
    """
    Expand, validate and resolve names; return the JSON-ready report.

    Invalid names are reported without touching the network.
    """
    if not names:
        return {"error": "No domain names provided"}

    try:
        resolver = resolvers.resolver_for(method)
    except ValueError as e:
        return {"error": str(e)}

    expanded = expand_names(names, tlds or resolvers.settings.default_tlds)
    if not expanded:
        return {"error": "No valid domain names after expansion"}

    domains = []
    invalid = []
    for name in expanded:
        try:
            domains.append(normalize_domain(name))
        except InvalidDomainError as e:
            invalid.append({"domain": name, "error": str(e)})
    domains = list(dict.fromkeys(domains))

    if delay is not None:
        if delay >= MIN_REQUEST_DELAY:
            resolvers.scheduler.set_delay(delay)
        else:
            logger.info("Ignoring WHOIS delay of %gs (minimum %gs)", delay, MIN_REQUEST_DELAY)

    results = await resolver.resolve_batch(domains, on_progress=on_progress)
    return build_report(results, invalid=invalid, only_available=only_available)


# =============================================================================
# Tools
# =============================================================================

@mcp.tool()
def version() -> str:
    """
    Get the version of the Bulk Domain Checker MCP server.

    Returns:
        Version string including server name and version number.
    """
    return f"Bulk Domain Checker MCP Server version {VERSION}"


@mcp.tool()
async def check_domains(
    ctx: Context,
    names: list[str],
    tlds: list[str] | None = None,
    method: str = "auto",
    onlyReportAvailable: bool = False,
    delay: float | None = None,
) -> str:
    """
    Check domain name availability.

    Domains are checked one after another; WHOIS lookups are spaced out to
    avoid being blocked, so large batches take a while. Progress is reported
    after each domain.

    Args:
        names: List of domain names or base names to check.
               If a name contains a dot, it's treated as a full domain.
               Otherwise, it's combined with each TLD.
        tlds: List of TLDs to check (default: com, net, org, io, co, app, dev, ai)
        method: Lookup method - "auto" (default, uses GoDaddy if credentials are
                configured, otherwise WHOIS), "whois", or "godaddy" (includes pricing)
        onlyReportAvailable: If true, only return available domains in response
        delay: Seconds between WHOIS queries from now on (at least 1.0; smaller
               values are ignored). Applies to every later check on this server.

    Returns:
        JSON with available domains, unavailable domains (unless onlyReportAvailable),
        errors (timeouts, TLDs needing manual verification, API errors),
        invalid names, and a summary with available/registered/error counts.
    """
    resolvers: ResolverSet = ctx.request_context.lifespan_context

    async def report(progress: BatchProgress) -> None:
        await ctx.report_progress(progress.current, progress.total)

    response = await run_domain_check(
        resolvers,
        names,
        tlds=tlds,
        method=method,
        only_available=onlyReportAvailable,
        on_progress=report,
        delay=delay,
    )
    return json.dumps(response)


@mcp.tool()
def cache_stats(ctx: Context) -> str:
    """
    Get statistics about the domain result cache.

    Returns:
        JSON with the number of cached domains, the TTL in seconds, the cached
        domain names, and the number of WHOIS lookups waiting in the queue.
    """
    resolvers: ResolverSet = ctx.request_context.lifespan_context
    stats = resolvers.cache.stats()
    stats["queued"] = resolvers.scheduler.size()
    return json.dumps(stats)


@mcp.tool()
def clear_cache(ctx: Context) -> str:
    """
    Forget every cached result so the next check goes to the network.

    Returns:
        JSON with the number of entries removed.
    """
    resolvers: ResolverSet = ctx.request_context.lifespan_context
    removed = len(resolvers.cache)
    resolvers.cache.clear()
    return json.dumps({"cleared": removed})
