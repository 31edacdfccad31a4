"""
CLI utility to manage the OAuth credentials used by the Blogger MCP server.

The server runs the browser consent flow on its own the first time a write
tool is called. This script does the same thing ahead of time (so the first
tool call doesn't block on a browser window), shows what is currently
configured, and revokes access when you're done.

It reads the same configuration as the server (environment variables and
.env), so run it from the directory the server runs in: tokens.json is
resolved relative to the current working directory.

Usage examples:

    # Authorize now: opens the browser, waits for the redirect, saves tokens.json
    uv run python -m scripts.auth login

    # Show which credentials are configured and whether the stored token is valid
    uv run python -m scripts.auth status

    # Revoke the token at Google and delete tokens.json
    uv run python -m scripts.auth logout
"""

import argparse
import asyncio
import datetime
import sys

from blogger_mcp.config import settings
from blogger_mcp.exceptions import BloggerMCPError
from blogger_mcp.logs import configure_logging
from blogger_mcp.resolver import CredentialResolver


async def login(resolver: CredentialResolver) -> int:
    tokens = await resolver.login()
    expires = datetime.datetime.fromtimestamp(
        tokens.expiry_date / 1000, tz=datetime.timezone.utc
    )
    print(f"Authorized. Tokens saved to {settings.token_file}")
    print(f"Access token expires: {expires.isoformat()}")
    print(f"Refresh token:        {'yes' if tokens.has_refresh_token else 'no'}")
    return 0


async def status(resolver: CredentialResolver) -> int:
    info = await resolver.status()
    print(f"API key configured:   {'yes' if info.api_key_configured else 'no'}")
    print(f"OAuth configured:     {'yes' if info.oauth_configured else 'no'}")
    print(f"Token file:           {settings.token_file}")
    print(f"Stored token:         {info.token_state}")
    print(f"Refresh token:        {'yes' if info.has_refresh_token else 'no'}")
    if not (info.api_key_configured or info.oauth_configured):
        print()
        print("No credentials configured: the server will refuse to start.")
        return 1
    return 0


async def logout(resolver: CredentialResolver) -> int:
    if await resolver.revoke():
        print(f"Logged out. {settings.token_file} removed.")
        return 0
    print(f"Could not remove {settings.token_file}", file=sys.stderr)
    return 1


COMMANDS = {"login": login, "status": status, "logout": logout}


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Manage Google OAuth credentials for the Blogger MCP server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Authorize write access (opens a browser):
    %(prog)s login

  Check configuration and token state:
    %(prog)s status

  Revoke access and delete the token file:
    %(prog)s logout
        """,
    )
    parser.add_argument("command", choices=sorted(COMMANDS), help="What to do")
    parser.add_argument(
        "--log-level",
        default="warning",
        help="Log level for the JSON logs written to stderr (default: warning)",
    )

    args = parser.parse_args()
    configure_logging(args.log_level)

    resolver = CredentialResolver.from_settings(settings)
    try:
        exit_code = asyncio.run(COMMANDS[args.command](resolver))
    except BloggerMCPError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
