"""
CLI tool to check domain name availability in bulk.

Usage:
    bulk-domain-check example.com example.net
    bulk-domain-check coolstartup --tlds com,io,ai,co,app
    bulk-domain-check domains.txt --method whois --json

Environment:
    GODADDY_API_KEY / GODADDY_API_SECRET - GoDaddy API credentials (optional)
    RATE_LIMIT_DELAY - milliseconds between WHOIS queries (default 2000)
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from .config import Settings, get_godaddy_credentials
from .domains import expand_names, parse_domain_list
from .models import BatchProgress, DomainStatus, ResolutionResult
from .resolver import METHODS, open_resolvers, summarize


def collect_names(items: list[str]) -> list[str]:
    """Treat each item as a file of domains if it exists, else as a name."""
    names = []
    for item in items:
        path = Path(item)
        if path.is_file():
            names.extend(parse_domain_list(path.read_text(encoding="utf-8", errors="replace")))
        else:
            names.append(item)
    return names


def print_progress(progress: BatchProgress) -> None:
    result = progress.result
    tag = "cached" if result.from_cache else f"{result.response_time_ms}ms"
    print(
        f"Checked {progress.current}/{progress.total}: {progress.domain} "
        f"-> {result.status.value} ({tag})",
        file=sys.stderr,
    )


def print_results(results: list[ResolutionResult]) -> None:
    available = [r for r in results if r.status is DomainStatus.AVAILABLE]
    registered = [r for r in results if r.status is DomainStatus.REGISTERED]
    errors = [r for r in results if r.status is DomainStatus.ERROR]

    print("\n" + "=" * 60)
    print("RESULTS")
    print("=" * 60)

    if available:
        print(f"\n✓ AVAILABLE ({len(available)}):")
        for r in available:
            price = f" ({r.price:.2f} {r.currency})" if r.price is not None else ""
            print(f"  {r.domain}{price}")

    if registered:
        print(f"\n✗ REGISTERED ({len(registered)}):")
        for r in registered:
            print(f"  {r.domain}")

    if errors:
        print(f"\n? ERRORS ({len(errors)}):")
        for r in errors:
            print(f"  {r.domain}: {r.error}")

    summary = summarize(results)
    print(
        f"\n{summary.total} checked: {summary.available} available, "
        f"{summary.registered} registered, {summary.errors} errors\n"
    )


async def run(args: argparse.Namespace, domains: list[str]) -> list[ResolutionResult]:
    settings = Settings.from_env()
    if args.delay is not None:
        settings.rate_limit_delay = args.delay

    async with open_resolvers(settings, get_godaddy_credentials()) as resolvers:
        resolver = resolvers.resolver_for(args.method)
        on_progress = None if args.quiet else print_progress
        return await resolver.resolve_batch(domains, on_progress=on_progress)


def main():
    parser = argparse.ArgumentParser(
        description="Check domain name availability via GoDaddy or WHOIS",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    %(prog)s example.com example.net
    %(prog)s coolstartup --tlds com,io,ai
    %(prog)s domains.txt --method whois --delay 3

Files contain one domain per line; lines starting with # are ignored.
        """
    )
    parser.add_argument(
        "names",
        nargs="+",
        help="Domain names, base names, or files with one domain per line"
    )
    parser.add_argument(
        "--tlds",
        type=str,
        default=None,
        help="Comma-separated list of TLDs for base names (default: DEFAULT_TLDS or com,net,org,io,co,app,dev,ai)"
    )
    parser.add_argument(
        "--method",
        choices=METHODS,
        default="auto",
        help="Lookup method (default: auto - GoDaddy if configured, else WHOIS)"
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=None,
        help="Seconds between WHOIS queries (default: RATE_LIMIT_DELAY or 2.0)"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output results as JSON"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress progress output"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )

    tlds = args.tlds.split(",") if args.tlds else Settings.from_env().default_tlds
    domains = expand_names(collect_names(args.names), tlds)

    if not domains:
        print("No domains to check", file=sys.stderr)
        sys.exit(1)

    try:
        results = asyncio.run(run(args, domains))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        output = {
            "results": [r.to_dict() for r in results],
            "summary": summarize(results).to_dict(),
        }
        print(json.dumps(output, indent=2))
    else:
        print_results(results)

    sys.exit(0 if all(not r.is_error for r in results) else 2)


if __name__ == "__main__":
    main()
