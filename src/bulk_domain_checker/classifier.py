"""
WHOIS response classifier.

WHOIS has no schema: every registry formats its answer differently, and a
"not found" error frequently *means* the domain is available. This module
turns a raw response (or the message of a failed lookup) into a verdict using
ordered phrase rules:

    1. empty-response          tiny payload               -> available
    2. registration-evidence   registrar/date/NS labels   -> registered
    3. availability-evidence   "no match", "not found"... -> available
    4. short-response          still a small payload      -> available
    -  uncertain (default)                                -> registered

Registry footers often contain phrases like "not found", so registration
evidence is checked first. When no rule fires the verdict is "registered".
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

logger = logging.getLogger(__name__)


class Verdict(Enum):
    AVAILABLE = "available"
    REGISTERED = "registered"
    ERROR = "error"


# =============================================================================
# Vocabularies
# =============================================================================

# Labels that only show up in a record for a registered domain. Order matters:
# the scan stops as soon as STRONG_EVIDENCE_MATCHES distinct phrases are found.
REGISTERED_PATTERNS = (
    "registrar:",
    "registrar url:",
    "registrar iana id:",
    "creation date:",
    "created on:",
    "created:",
    "registered on:",
    "registered:",
    "registration date:",
    "domain status: clienttransferprohibited",
    "domain status: active",
    "status: active",
    "status: registered",
    "nameserver:",
    "name server:",
    "nserver:",
    "dns:",
    "registrant organization:",
    "registrant name:",
    "registrant:",
    "admin contact:",
    "admin email:",
    "technical contact:",
    "tech email:",
    "expiration date:",
    "expiry date:",
    "expires on:",
    "expires:",
    "updated date:",
    "last updated:",
    "registry expiry date:",
    "dnssec:",
    "whois server:",
)

# Phrases registries use for an unregistered name (English and Spanish)
AVAILABLE_PATTERNS = (
    "no match for",
    "no match",
    "not found",
    "no entries found",
    "no data found",
    "status: available",
    "status: free",
    "available for registration",
    "is available",
    "no se encontró",
    "not registered",
    "no existe",
    "disponible para",
    "domain not found",
    "no object found",
    "no matching record",
    "no information available",
    "domain name not known",
)

# A failed lookup whose message says the record does not exist
NOT_FOUND_ERROR_PATTERNS = (
    "no match",
    "not found",
    "no entries found",
    "no data found",
    "no se encontró",
    "domain not found",
)

TIMEOUT_ERROR_PATTERNS = (
    "timeout",
    "timed out",
    "etimedout",
)

CONNECTION_ERROR_PATTERNS = (
    "econnrefused",
    "enotfound",
    "connection",
    "socket hang up",
    "network",
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
)

# TLDs whose WHOIS service is slow or unreliable (Google Registry)
SLOW_TLDS = frozenset({"app", "dev", "page", "new"})

# Payload sizes (characters of normalized text)
MIN_CONTENT_LENGTH = 50
SHORT_RESPONSE_LENGTH = 200

# Registration phrases needed before the scan short-circuits
STRONG_EVIDENCE_MATCHES = 2


# =============================================================================
# Rules
# =============================================================================

@dataclass(frozen=True)
class Rule:
    """
    One step of the classifier.

    A rule fires when the text is shorter than `max_length` (if set) and
    contains at least one of `patterns` (if set).
    """

    name: str
    verdict: Verdict
    patterns: tuple[str, ...] = ()
    max_length: int | None = None
    stop_after: int = 1

    def match(self, text: str) -> tuple[str, ...] | None:
        """Return the evidence if the rule fires, else None."""
        if self.max_length is not None and len(text) >= self.max_length:
            return None
        if not self.patterns:
            return ()

        found = []
        for pattern in self.patterns:
            if pattern in text:
                found.append(pattern)
                if len(found) >= self.stop_after:
                    break
        return tuple(found) or None


RESPONSE_RULES = (
    Rule("empty-response", Verdict.AVAILABLE, max_length=MIN_CONTENT_LENGTH),
    Rule(
        "registration-evidence",
        Verdict.REGISTERED,
        patterns=REGISTERED_PATTERNS,
        stop_after=STRONG_EVIDENCE_MATCHES,
    ),
    Rule("availability-evidence", Verdict.AVAILABLE, patterns=AVAILABLE_PATTERNS),
    Rule("short-response", Verdict.AVAILABLE, max_length=SHORT_RESPONSE_LENGTH),
)

DEFAULT_RULE = Rule("uncertain", Verdict.REGISTERED)


@dataclass(frozen=True)
class Classification:
    """The verdict for one response, with the rule and evidence behind it."""

    verdict: Verdict
    rule: str
    evidence: tuple[str, ...] = ()
    error_type: str | None = None
    message: str | None = None

    @property
    def available(self) -> bool | None:
        if self.verdict is Verdict.ERROR:
            return None
        return self.verdict is Verdict.AVAILABLE

    @property
    def confidence(self) -> str:
        """'strong' when enough independent evidence was seen, else 'weak'."""
        if self.rule == "registration-evidence" and len(self.evidence) < STRONG_EVIDENCE_MATCHES:
            return "weak"
        if self.rule in ("short-response", "uncertain"):
            return "weak"
        return "strong"


# =============================================================================
# Classification
# =============================================================================

def normalize_response(raw: Any) -> str:
    """
    Render a WHOIS response as lower-case text.

    Raw text is used as-is. Parsed records (mappings) become "key: value"
    lines with underscores in keys turned into spaces, so "creation_date"
    matches the "creation date:" label.
    """
    if raw is None:
        return ""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        return raw.strip().lower()
    if isinstance(raw, Mapping):
        lines = []
        for key, value in raw.items():
            if value is None or value == [] or value == "":
                continue
            if isinstance(value, (list, tuple, set)):
                value = ", ".join(str(v) for v in value)
            lines.append(f"{str(key).replace('_', ' ')}: {value}")
        return "\n".join(lines).lower()
    return str(raw).strip().lower()


def classify_response(raw: Any) -> Classification:
    """Classify a successful WHOIS response."""
    text = normalize_response(raw)

    for rule in RESPONSE_RULES:
        evidence = rule.match(text)
        if evidence is not None:
            logger.debug("Rule %s fired (%d chars, evidence=%s)", rule.name, len(text), evidence)
            return Classification(verdict=rule.verdict, rule=rule.name, evidence=evidence)

    logger.debug("No rule fired for %d chars of WHOIS text, assuming registered", len(text))
    return Classification(verdict=DEFAULT_RULE.verdict, rule=DEFAULT_RULE.name)


def _first_match(text: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in text:
            return pattern
    return None


def is_not_found_error(message: str) -> bool:
    return _first_match(message.lower(), NOT_FOUND_ERROR_PATTERNS) is not None


def is_transient_error(message: str) -> bool:
    """True for timeouts and connectivity failures (worth a retry)."""
    lower = message.lower()
    return (
        _first_match(lower, TIMEOUT_ERROR_PATTERNS) is not None
        or _first_match(lower, CONNECTION_ERROR_PATTERNS) is not None
    )


def manual_verification_message(tld: str) -> str:
    return (
        f"The .{tld} TLD requires manual verification; "
        "WHOIS is unavailable for this extension."
    )


def classify_failure(
    message: str,
    tld: str = "",
    slow_tlds: frozenset[str] | set[str] = SLOW_TLDS,
) -> Classification:
    """
    Classify a failed WHOIS lookup from its error message.

    A missing record means the domain is available. A timeout or connection
    failure on a slow TLD is reported as needing manual verification rather
    than guessed at; anything else is an error with the message preserved.
    """
    message = message or ""
    lower = message.lower()
    tld = tld.lower().lstrip(".")

    evidence = _first_match(lower, NOT_FOUND_ERROR_PATTERNS)
    if evidence:
        return Classification(verdict=Verdict.AVAILABLE, rule="not-found-error", evidence=(evidence,))

    timeout = _first_match(lower, TIMEOUT_ERROR_PATTERNS)
    connection = _first_match(lower, CONNECTION_ERROR_PATTERNS)
    evidence = timeout or connection
    if evidence and tld in slow_tlds:
        return Classification(
            verdict=Verdict.ERROR,
            rule="slow-tld-failure",
            evidence=(evidence,),
            error_type="manual_verification",
            message=manual_verification_message(tld),
        )
    if evidence:
        return Classification(
            verdict=Verdict.ERROR,
            rule="transient-failure",
            evidence=(evidence,),
            error_type="timeout" if timeout else "network",
            message=message,
        )

    return Classification(
        verdict=Verdict.ERROR,
        rule="lookup-failure",
        error_type="lookup_failed",
        message=message or "WHOIS lookup failed",
    )


def classify(
    raw_response: Any = None,
    error_message: str | None = None,
    tld: str = "",
    slow_tlds: frozenset[str] | set[str] = SLOW_TLDS,
) -> Classification:
    """Classify a lookup outcome: a failure message if given, else the response."""
    if error_message is not None:
        return classify_failure(error_message, tld=tld, slow_tlds=slow_tlds)
    return classify_response(raw_response)
