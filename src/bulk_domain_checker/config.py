"""
Configuration for bulk-domain-checker.

Runtime settings (delays, timeouts, TTLs) come from environment variables with
sensible defaults. GoDaddy API credentials are looked up in order:

1. macOS Keychain (if on macOS)
2. Environment variables (GODADDY_API_KEY / GODADDY_API_SECRET)
3. Config file (fallback)
"""

import json
import logging
import os
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from .godaddy import GODADDY_API_URL

logger = logging.getLogger(__name__)

# Keychain service names
KEYCHAIN_SERVICE = "bulk-domain-checker.godaddy"
KEYCHAIN_KEY_ACCOUNT = "godaddy-key"
KEYCHAIN_SECRET_ACCOUNT = "godaddy-secret"

# Config file field names
CONFIG_KEY_FIELD = "godaddy_api_key"
CONFIG_SECRET_FIELD = "godaddy_api_secret"

DEFAULT_TLDS = ["com", "net", "org", "io", "co", "app", "dev", "ai"]


# =============================================================================
# Runtime settings
# =============================================================================

def _env_seconds(name: str, default: float) -> float:
    """Read a millisecond value from the environment, returned in seconds."""
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw) / 1000
    except ValueError:
        logger.warning("Ignoring %s=%r (expected milliseconds)", name, raw)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (expected an integer)", name, raw)
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.environ.get(name)
    if not raw:
        return list(default)
    return [item.strip().lstrip(".").lower() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    """Delays, timeouts and provider choice. All durations are in seconds."""

    cache_ttl: float = 86400.0
    cache_sweep_interval: float = 3600.0
    rate_limit_delay: float = 2.0
    whois_timeout: float = 10.0
    slow_tld_timeout: float = 15.0
    slow_tlds: frozenset[str] = frozenset({"app", "dev", "page", "new"})
    whois_follow: int = 3
    max_retries: int = 2
    domain_provider: str = "godaddy"
    godaddy_base_url: str = GODADDY_API_URL
    godaddy_timeout: float = 10.0
    default_tlds: list[str] = field(default_factory=lambda: list(DEFAULT_TLDS))

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the environment (millisecond values, as in .env files)."""
        defaults = cls()
        return cls(
            cache_ttl=_env_seconds("CACHE_TTL", defaults.cache_ttl),
            cache_sweep_interval=_env_seconds("CACHE_SWEEP_INTERVAL", defaults.cache_sweep_interval),
            rate_limit_delay=_env_seconds("RATE_LIMIT_DELAY", defaults.rate_limit_delay),
            whois_timeout=_env_seconds("WHOIS_TIMEOUT", defaults.whois_timeout),
            slow_tld_timeout=_env_seconds("SLOW_TLD_TIMEOUT", defaults.slow_tld_timeout),
            slow_tlds=frozenset(_env_list("SLOW_TLDS", sorted(defaults.slow_tlds))),
            whois_follow=_env_int("WHOIS_FOLLOW", defaults.whois_follow),
            max_retries=max(0, _env_int("MAX_RETRIES", defaults.max_retries)),
            domain_provider=os.environ.get("DOMAIN_PROVIDER", defaults.domain_provider).lower(),
            godaddy_base_url=os.environ.get("GODADDY_BASE_URL", defaults.godaddy_base_url),
            default_tlds=_env_list("DEFAULT_TLDS", defaults.default_tlds),
        )

    def timeout_for(self, tld: str) -> float:
        """WHOIS timeout for a TLD; slow registries get longer."""
        return self.slow_tld_timeout if tld.lower().lstrip(".") in self.slow_tlds else self.whois_timeout


# =============================================================================
# Credential storage
# =============================================================================

@dataclass(frozen=True)
class GoDaddyCredentials:
    key: str
    secret: str



def _is_macos() -> bool:
    return sys.platform == "darwin"


def _security(*args: str) -> subprocess.CompletedProcess | None:
    """Run the macOS `security` tool; None when it cannot be started."""
    try:
        return subprocess.run(["security", *args], capture_output=True, text=True)
    except (subprocess.SubprocessError, FileNotFoundError):
        return None


def _keychain_get(service: str, account: str) -> str | None:
    result = _security("find-generic-password", "-s", service, "-a", account, "-w")
    if result is None or result.returncode != 0:
        return None
    return result.stdout.strip() or None


def _keychain_set(service: str, account: str, password: str) -> bool:
    # -U updates an existing item in place
    result = _security("add-generic-password", "-s", service, "-a", account, "-w", password, "-U")
    return result is not None and result.returncode == 0


def _keychain_delete(service: str, account: str) -> bool:
    """Remove a Keychain item; a missing item counts as removed."""
    result = _security("delete-generic-password", "-s", service, "-a", account)
    if result is None:
        return False
    return result.returncode == 0 or "could not be found" in result.stderr.lower()


def get_config_dir() -> Path:
    """Per-user config directory (APPDATA on Windows, XDG_CONFIG_HOME elsewhere)."""
    if os.name == "nt":
        root = os.environ.get("APPDATA") or Path.home()
    else:
        root = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(root) / "bulk-domain-checker"


def get_config_file() -> Path:
    return get_config_dir() / "config.json"


def load_config() -> dict:
    """Read the config file, returning {} if it is missing or unreadable."""
    path = get_config_file()
    try:
        data = json.loads(path.read_text())
    except FileNotFoundError:
        return {}
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Ignoring unreadable config file %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def _save_config(config: dict) -> bool:
    try:
        get_config_dir().mkdir(parents=True, exist_ok=True)
        get_config_file().write_text(json.dumps(config, indent=2))
    except OSError as e:
        logger.error("Could not write config file: %s", e)
        return False
    return True


def _credentials_from_keychain() -> GoDaddyCredentials | None:
    key = _keychain_get(KEYCHAIN_SERVICE, KEYCHAIN_KEY_ACCOUNT)
    secret = _keychain_get(KEYCHAIN_SERVICE, KEYCHAIN_SECRET_ACCOUNT)
    return GoDaddyCredentials(key, secret) if key and secret else None


def _credentials_from_env() -> GoDaddyCredentials | None:
    key = os.environ.get("GODADDY_API_KEY")
    secret = os.environ.get("GODADDY_API_SECRET")
    return GoDaddyCredentials(key, secret) if key and secret else None


def _credentials_from_file() -> GoDaddyCredentials | None:
    config = load_config()
    key = config.get(CONFIG_KEY_FIELD)
    secret = config.get(CONFIG_SECRET_FIELD)
    return GoDaddyCredentials(key, secret) if key and secret else None


def _credential_sources() -> list[tuple[str, Callable[[], GoDaddyCredentials | None]]]:
    sources = []
    if _is_macos():
        sources.append(("macOS Keychain", _credentials_from_keychain))
    sources.append(("environment variable", _credentials_from_env))
    sources.append(("config file", _credentials_from_file))
    return sources


def get_godaddy_credentials() -> GoDaddyCredentials | None:
    """
    Get GoDaddy API credentials from the first source that has them.

    Key and secret must come from the same source; a key in the environment
    with its secret in the config file does not count.
    """
    for _, lookup in _credential_sources():
        credentials = lookup()
        if credentials is not None:
            return credentials
    return None


def get_credentials_source() -> str | None:
    """Name of the source get_godaddy_credentials() would use, for display."""
    for name, lookup in _credential_sources():
        if lookup() is not None:
            return name
    return None


def set_godaddy_credentials(key: str, secret: str) -> bool:
    """
    Store GoDaddy API credentials.

    On macOS: Uses Keychain.
    On other platforms: Uses config file.
    """
    if _is_macos():
        return (
            _keychain_set(KEYCHAIN_SERVICE, KEYCHAIN_KEY_ACCOUNT, key)
            and _keychain_set(KEYCHAIN_SERVICE, KEYCHAIN_SECRET_ACCOUNT, secret)
        )

    config = load_config()
    config[CONFIG_KEY_FIELD] = key
    config[CONFIG_SECRET_FIELD] = secret
    return _save_config(config)


def delete_godaddy_credentials() -> bool:
    """Remove stored GoDaddy API credentials (environment variables are left alone)."""
    if _is_macos():
        return (
            _keychain_delete(KEYCHAIN_SERVICE, KEYCHAIN_KEY_ACCOUNT)
            and _keychain_delete(KEYCHAIN_SERVICE, KEYCHAIN_SECRET_ACCOUNT)
        )

    config = load_config()
    if CONFIG_KEY_FIELD not in config and CONFIG_SECRET_FIELD not in config:
        return True
    config.pop(CONFIG_KEY_FIELD, None)
    config.pop(CONFIG_SECRET_FIELD, None)
    return _save_config(config)
