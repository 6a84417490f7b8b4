"""
Bulk Domain Checker

Checks whether domain names are available or registered, via the GoDaddy API
or paced WHOIS lookups, as an MCP server or a command-line batch tool.
"""

__version__ = "0.2.0"


def main():
    """Main entry point for the CLI."""
    import sys

    # Handle CLI arguments before importing heavy dependencies
    if "--help" in sys.argv or "-h" in sys.argv:
        print_help()
        sys.exit(0)

    if "--version" in sys.argv or "-V" in sys.argv:
        print(f"bulk-domain-checker {__version__}")
        sys.exit(0)

    if "--setup" in sys.argv:
        run_setup()
        sys.exit(0)

    if "--show-config" in sys.argv:
        show_config()
        sys.exit(0)

    # Default: run the MCP server. Logs go to stderr; stdout is the MCP transport.
    import logging
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    from .server import mcp
    mcp.run()


def print_help():
    """Print help message."""
    print(f"""bulk-domain-checker {__version__}

An MCP server for checking domain name availability (GoDaddy API or WHOIS).

Usage:
    bulk-domain-checker              Run the MCP server
    bulk-domain-checker --setup      Configure GoDaddy API credentials interactively
    bulk-domain-checker --show-config Show current configuration
    bulk-domain-checker --version    Show version
    bulk-domain-checker --help       Show this help

    bulk-domain-check NAMES...       Check domains from the command line

Configuration:
    The server works out of the box using WHOIS (no credentials required).
    WHOIS queries run one at a time, RATE_LIMIT_DELAY ms apart (default 2000).

    For GoDaddy lookups (includes pricing), set your API key and secret:
    1. Run: bulk-domain-checker --setup
    2. Or set environment variables: GODADDY_API_KEY and GODADDY_API_SECRET

    Use Production keys; OTE (test) keys are rejected by the production API.
    Get keys at: https://developer.godaddy.com/keys

Other environment variables:
    DOMAIN_PROVIDER     'godaddy' (default) or 'whois' for method=auto
    CACHE_TTL           Result cache lifetime in ms (default 86400000)
    WHOIS_TIMEOUT       WHOIS timeout in ms (default 10000)
    SLOW_TLD_TIMEOUT    Timeout in ms for SLOW_TLDS (default 15000)
    SLOW_TLDS           Comma-separated TLDs with slow WHOIS (default app,dev,page,new)
    MAX_RETRIES         Retries for WHOIS timeouts (default 2)
""")


def run_setup():
    """Interactive setup wizard."""
    import getpass
    from .config import get_config_file, get_godaddy_credentials, set_godaddy_credentials

    print("=" * 50)
    print("Bulk Domain Checker - Setup")
    print("=" * 50)
    print()

    current = get_godaddy_credentials()
    if current:
        print(f"Current GoDaddy API key: {mask_key(current.key)}")
        print()
        response = input("Update credentials? [y/N]: ").strip().lower()
        if response != "y":
            print("\nSetup complete. Your current configuration is preserved.")
            return

    print()
    print("GoDaddy API credentials (optional - enables pricing and faster lookups)")
    print("Get them at: https://developer.godaddy.com/keys (use Production keys)")
    print("Press Enter to skip (WHOIS will be used for domain lookups)")
    print()

    key = getpass.getpass("API Key: ").strip()
    if not key:
        print("\n✓ Skipped. WHOIS will be used for domain lookups (no pricing info).")
        return

    secret = getpass.getpass("API Secret: ").strip()
    if not secret:
        print("\n✗ An API secret is required with the key")
        return

    if set_godaddy_credentials(key, secret):
        print(f"\n✓ Credentials saved (config file: {get_config_file()})")
        test_credentials(key, secret)
    else:
        print("\n✗ Failed to save credentials")

    print()
    print("Setup complete!")


def show_config():
    """Show current configuration."""
    from .config import Settings, get_config_file, get_credentials_source, get_godaddy_credentials

    print("Configuration")
    print("=" * 50)
    print()

    config_file = get_config_file()
    print(f"Config file: {config_file}")
    print(f"  Exists: {config_file.exists()}")
    print()

    credentials = get_godaddy_credentials()
    if credentials:
        print(f"GoDaddy API key: {mask_key(credentials.key)}")
        print(f"  Source: {get_credentials_source()}")
    else:
        print("GoDaddy API key: Not configured")
        print("  Domain lookups will use WHOIS (no pricing)")
    print()

    settings = Settings.from_env()
    print(f"Provider for 'auto': {settings.domain_provider}")
    print(f"WHOIS delay: {settings.rate_limit_delay:g}s")
    print(f"WHOIS timeout: {settings.whois_timeout:g}s ({settings.slow_tld_timeout:g}s for .{', .'.join(sorted(settings.slow_tlds))})")
    print(f"WHOIS retries: {settings.max_retries}")
    print(f"Cache TTL: {settings.cache_ttl:g}s")


def mask_key(key: str) -> str:
    """Mask an API key for display."""
    if len(key) > 8:
        return key[:4] + "*" * (len(key) - 8) + key[-4:]
    elif len(key) > 4:
        return key[:2] + "*" * (len(key) - 2)
    else:
        return "*" * len(key)


def test_credentials(key: str, secret: str):
    """Test the GoDaddy credentials with one availability query."""
    try:
        import httpx
        from .config import Settings
        from .godaddy import STATUS_ERRORS

        print("\nTesting GoDaddy API...")

        response = httpx.get(
            f"{Settings.from_env().godaddy_base_url}/domains/available",
            params={"domain": "test-domain-check-12345.com"},
            headers={"Authorization": f"sso-key {key}:{secret}", "Accept": "application/json"},
            timeout=10
        )

        if response.status_code == 200:
            print("✓ Credentials are valid")
        else:
            _, message = STATUS_ERRORS.get(response.status_code, (None, f"HTTP {response.status_code}"))
            print(f"✗ API error: {message}")

    except Exception as e:
        print(f"✗ Test failed: {e}")
