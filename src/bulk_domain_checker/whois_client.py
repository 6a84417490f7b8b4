"""
WHOIS query transport.

Wraps python-whois, which is blocking, so every lookup runs in a worker
thread. The socket timeout is handed to python-whois itself; the async side
only keeps a backstop deadline a little above it. Failures of any kind
surface as WhoisLookupError carrying a message; the classifier decides what
the message means (python-whois reports a missing record as an error whose
text is the registry's "No match for ..." answer).
"""

import asyncio
import functools
import logging
import math
from typing import Any

import whois

logger = logging.getLogger(__name__)

# Request timeout in seconds
DEFAULT_TIMEOUT = 10.0

# Referral hops to follow (registry -> registrar WHOIS)
DEFAULT_FOLLOW = 3

# Extra seconds the backstop allows on top of the socket timeouts
BACKSTOP_SLACK = 2.0

# python-whois text when it swallowed a socket error instead of raising
SOCKET_ERROR_PREFIX = "Socket not responding"


class WhoisLookupError(Exception):
    """A WHOIS query failed; str(exc) is the reason."""


class WhoisClient:
    """
    Async facade over python-whois.

    Usage:
        client = WhoisClient()
        raw = await client.lookup("example.com", timeout=10.0)
    """

    def __init__(self, executor=None) -> None:
        self._executor = executor

    @staticmethod
    def _query(domain: str, follow: int, timeout: float) -> Any:
        # python-whois only knows "follow referrals" or "don't"
        flags = 0 if follow > 0 else whois.NICClient.WHOIS_QUICK
        return whois.whois(
            domain,
            flags=flags,
            ignore_socket_errors=False,
            timeout=int(math.ceil(timeout)),
            quiet=True,
        )

    @staticmethod
    def _backstop(timeout: float, follow: int) -> float:
        # A referral means a second connection with its own socket timeout
        hops = 2 if follow > 0 else 1
        return math.ceil(timeout) * hops + BACKSTOP_SLACK

    async def lookup(
        self,
        domain: str,
        timeout: float = DEFAULT_TIMEOUT,
        follow: int = DEFAULT_FOLLOW,
    ) -> str | dict:
        """
        Query WHOIS for a domain.

        Returns:
            The raw response text when available, otherwise the parsed
            record as a dict.

        Raises:
            WhoisLookupError: on timeout, connection failure or a missing record
        """
        loop = asyncio.get_running_loop()
        call = functools.partial(self._query, domain, follow, timeout)
        future = loop.run_in_executor(self._executor, call)

        # asyncio.wait() never raises the task's own error, so a TimeoutError
        # from the socket is not confused with the backstop expiring
        done, _ = await asyncio.wait({future}, timeout=self._backstop(timeout, follow))
        if not done:
            logger.warning("WHOIS lookup for %s outlived its socket timeout of %gs", domain, timeout)
            raise WhoisLookupError(f"WHOIS lookup for {domain} timed out after {timeout:g}s")

        try:
            entry = future.result()
        except Exception as e:
            message = str(e).strip() or type(e).__name__
            logger.debug("WHOIS lookup for %s failed: %s", domain, message[:200])
            raise WhoisLookupError(message) from e

        if entry is None:
            return ""

        text = getattr(entry, "text", None)
        if isinstance(text, str) and text.strip():
            if text.startswith(SOCKET_ERROR_PREFIX):
                raise WhoisLookupError(text.strip())
            return text
        return dict(entry)
