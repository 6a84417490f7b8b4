"""
Shared fixtures: in-memory stand-ins for the WHOIS and GoDaddy clients.

No test touches the network.
"""

import pytest

from bulk_domain_checker.godaddy import RegistrarAvailability


class FakeWhoisClient:
    """
    Scripted WHOIS client.

    responses maps a domain to what lookup() should produce: a string or dict
    is returned, an exception is raised, a list is consumed one item per call.
    """

    def __init__(self, responses=None, default=""):
        self.responses = dict(responses or {})
        self.default = default
        self.calls = []

    async def lookup(self, domain, timeout=10.0, follow=3):
        self.calls.append((domain, timeout, follow))
        outcome = self.responses.get(domain, self.default)
        if isinstance(outcome, list):
            outcome = outcome.pop(0) if len(outcome) > 1 else outcome[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeRegistrarClient:
    """Scripted GoDaddy client; unknown domains are reported available."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    async def check_availability(self, domain):
        self.calls.append(domain)
        outcome = self.responses.get(domain)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is None:
            return RegistrarAvailability(domain=domain, available=True, price=11.99, currency="USD", period=1)
        return outcome

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        pass


class FakeClock:
    """Manually advanced time source for cache expiry tests."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


REGISTERED_TEXT = (
    "Domain Name: EXAMPLE.COM\n"
    "Registry Domain ID: 2336799_DOMAIN_COM-VRSN\n"
    "Registrar WHOIS Server: whois.iana.org\n"
    "Registrar: RESERVED-Internet Assigned Numbers Authority\n"
    "Creation Date: 1995-08-14T04:00:00Z\n"
    "Registry Expiry Date: 2026-08-13T04:00:00Z\n"
    "Name Server: A.IANA-SERVERS.NET\n"
)

AVAILABLE_TEXT = (
    'No match for "XYZTESTUNIQUE12345.COM".\n'
    ">>> Last update of whois database: 2025-01-01T00:00:00Z <<<\n"
    "NOTICE: The expiration date displayed in this record is the date the "
    "registrar's sponsorship of the domain name registration in the registry is "
    "currently set to expire."
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def whois_client():
    return FakeWhoisClient()


@pytest.fixture
def registrar_client():
    return FakeRegistrarClient()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registered_text():
    return REGISTERED_TEXT


@pytest.fixture
def available_text():
    return AVAILABLE_TEXT
