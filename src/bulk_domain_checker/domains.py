"""
Domain name normalization and list handling.

Everything that reaches a resolver has been through normalize_domain(), so
the rest of the pipeline can assume a lower-case, syntactically valid name.
"""

import re

MAX_DOMAIN_LENGTH = 253

_LABEL = r"[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?"
DOMAIN_PATTERN = re.compile(rf"^{_LABEL}(?:\.{_LABEL})*$")


class InvalidDomainError(ValueError):
    """Raised when a string cannot be turned into a valid domain name."""


def _strip_decorations(raw: str) -> str:
    domain = raw.strip().lower()
    domain = re.sub(r"^[a-z][a-z0-9+.-]*://", "", domain)  # protocol
    domain = re.split(r"[/?#]", domain, maxsplit=1)[0]  # path, query, fragment
    if domain.startswith("www."):
        domain = domain[4:]
    return domain.rstrip(".")


def is_valid_domain(domain: str) -> bool:
    """Check a (lower-case) name against the domain grammar."""
    if not domain or len(domain) > MAX_DOMAIN_LENGTH:
        return False
    return DOMAIN_PATTERN.match(domain) is not None


def normalize_domain(raw: str) -> str:
    """
    Normalize user input into a bare domain name.

    "https://www.Example.com/path?q=1" -> "example.com"

    Raises:
        InvalidDomainError: if the result is not a valid domain name
    """
    if not isinstance(raw, str):
        raise InvalidDomainError(f"Domain must be a string, got {type(raw).__name__}")

    domain = _strip_decorations(raw)
    if not is_valid_domain(domain):
        raise InvalidDomainError(f"Invalid domain name: {raw.strip()!r}")
    return domain


def get_tld(domain: str) -> str:
    """Return the TLD without the leading dot ("example.co.uk" -> "uk")."""
    return domain.rsplit(".", 1)[-1].lower() if "." in domain else ""


def expand_names(names: list[str], tlds: list[str]) -> list[str]:
    """
    Expand base names with TLDs.

    A name that already contains a dot is treated as a full domain; a bare
    name is combined with every TLD. Blank names are dropped and duplicates
    removed while preserving order.
    """
    domains = []
    for name in names:
        name = name.strip()
        if not name:
            continue
        if "." in name:
            domains.append(name)
        else:
            for tld in tlds:
                tld = tld.strip().lstrip(".")
                if tld:
                    domains.append(f"{name}.{tld}")

    return list(dict.fromkeys(domains))


def parse_domain_list(text: str) -> list[str]:
    """
    Parse a text list of domains (one per line).

    Blank lines and lines starting with '#' are ignored, entries are
    normalized, invalid ones dropped and duplicates removed.
    """
    if not text:
        return []

    domains = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            domains.append(normalize_domain(line))
        except InvalidDomainError:
            continue

    return list(dict.fromkeys(domains))
