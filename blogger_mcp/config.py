"""
Application configuration loaded from environment variables.

Uses pydantic-settings to define typed configuration that automatically reads
from environment variables (and a local .env file).

Credentials keep their conventional, unprefixed names:
- BLOGGER_API_KEY         static key, read-only access to public content
- GOOGLE_CLIENT_ID        OAuth client (enables write access and drafts)
- GOOGLE_CLIENT_SECRET

Everything else is prefixed with BLOGGER_ (e.g. BLOGGER_LOG_LEVEL,
BLOGGER_TRANSPORT, BLOGGER_TOKEN_FILE).

At least one credential kind must be configured; the server refuses to start
otherwise (see server.main).
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

BLOGGER_SCOPE = "https://www.googleapis.com/auth/blogger"


class Settings(BaseSettings):
    """
    Server configuration with environment variable bindings.

    Each non-credential field maps to an environment variable with the
    BLOGGER_ prefix. For example, `log_level` reads from BLOGGER_LOG_LEVEL.
    """

    # --- Credentials ---

    # Read-only static key. Never expires, only sees public content.
    blogger_api_key: str | None = Field(default=None, validation_alias="BLOGGER_API_KEY")

    # OAuth client registered in the Google Cloud console. Both must be set
    # for OAuth (and therefore any write tool) to be available.
    google_client_id: str | None = Field(default=None, validation_alias="GOOGLE_CLIENT_ID")
    google_client_secret: str | None = Field(
        default=None, validation_alias="GOOGLE_CLIENT_SECRET"
    )

    # --- Server settings ---

    # "stdio" for desktop MCP clients, "streamable-http" to serve over HTTP.
    transport: str = "stdio"
    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "info"

    # --- OAuth settings ---

    # Where the OAuth token set is persisted. Relative paths resolve against
    # the current working directory.
    token_file: Path = Path("tokens.json")

    # The callback listener must match the redirect URI registered for the
    # OAuth client: http://localhost:3000/oauth/callback by default.
    oauth_callback_host: str = "localhost"
    oauth_callback_port: int = 3000
    oauth_callback_path: str = "/oauth/callback"

    # How long to wait for the user to finish consent in the browser.
    oauth_timeout_seconds: float = 300.0

    # --- Remote API ---

    api_url: str = "https://www.googleapis.com/blogger/v3"
    http_timeout_seconds: float = 30.0

    model_config = {
        "env_prefix": "BLOGGER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        # Allow Settings(blogger_api_key=...) in addition to the env aliases.
        "populate_by_name": True,
    }

    @property
    def api_key_configured(self) -> bool:
        return bool(self.blogger_api_key)

    @property
    def oauth_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)

    @property
    def redirect_uri(self) -> str:
        return (
            f"http://{self.oauth_callback_host}:{self.oauth_callback_port}"
            f"{self.oauth_callback_path}"
        )


# Singleton instance: import this from other modules.
settings = Settings()
