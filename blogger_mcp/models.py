"""
Credential and tool data models.

Two kinds of credential can authorize a Blogger API call:

- ApiKeyCredential: the static key from BLOGGER_API_KEY. It never expires
  but only grants access to public content, so it is only good for reads.
- OAuthCredential: a Google OAuth2 token set obtained through the browser
  consent flow. Required for anything that writes, and for reading content
  that isn't public (drafts).

Both variants expose apply(), which attaches the credential to an outgoing
request's query params and headers. The Blogger client never needs to know
which kind it was given.

TokenSet is stored on disk in the same JSON shape Google's client libraries
use (expiry_date in epoch milliseconds), so an existing tokens.json keeps
working.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel


def _now_ms() -> int:
    return int(time.time() * 1000)


class TokenSet(BaseModel):
    """
    OAuth2 token set as returned by Google's token endpoint.

    Attributes:
        access_token: Short-lived bearer token sent with API calls
        refresh_token: Long-lived token used to mint new access tokens.
                       Google only returns it on the first consent (or when
                       prompt=consent is forced), so it must survive refreshes.
        scope: Space-separated scopes granted
        token_type: Authorization scheme, normally "Bearer"
        expiry_date: When the access token expires, epoch milliseconds
    """

    access_token: str
    refresh_token: str | None = None
    scope: str | None = None
    token_type: str = "Bearer"
    expiry_date: int

    @classmethod
    def from_token_response(
        cls, data: Mapping[str, Any], previous_refresh_token: str | None = None
    ) -> "TokenSet":
        """
        Build a TokenSet from a token endpoint JSON response.

        A refresh response usually omits refresh_token; in that case the
        previous one is carried over instead of being blanked.
        """
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or previous_refresh_token,
            scope=data.get("scope"),
            token_type=data.get("token_type", "Bearer"),
            expiry_date=_now_ms() + int(data.get("expires_in", 3600)) * 1000,
        )

    @property
    def has_refresh_token(self) -> bool:
        return bool(self.refresh_token)

    def is_expired(self, now_ms: int | None = None) -> bool:
        """True once the current time has reached expiry_date."""
        if now_ms is None:
            now_ms = _now_ms()
        return now_ms >= self.expiry_date


@dataclass(frozen=True)
class ApiKeyCredential:
    """Static, read-only API key."""

    key: str

    kind = "api_key"

    def apply(self, params: dict[str, Any], headers: dict[str, str]) -> None:
        params["key"] = self.key


@dataclass(frozen=True)
class OAuthCredential:
    """An OAuth2 access token for the authenticated user."""

    tokens: TokenSet

    kind = "oauth"

    def apply(self, params: dict[str, Any], headers: dict[str, str]) -> None:
        headers["Authorization"] = f"{self.tokens.token_type} {self.tokens.access_token}"


Credential = ApiKeyCredential | OAuthCredential


class AuthRequirement(str, Enum):
    """What a tool needs from the credential resolver."""

    # Static key or OAuth; the static key is preferred
    READ = "read"
    # OAuth only
    WRITE = "write"
    # A read that wants OAuth so non-public content (drafts) is visible.
    # Always declared together with a READ fallback.
    PRIVATE_READ = "private_read"

    @property
    def requires_oauth(self) -> bool:
        return self is not AuthRequirement.READ


class FlowState(str, Enum):
    """States of a single interactive consent flow."""

    IDLE = "idle"
    AWAITING_CALLBACK = "awaiting_callback"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ToolDefinition:
    """
    Static description of one MCP tool.

    Attributes:
        name: Tool name as exposed over MCP
        description: Human-readable description shown to the client
        input_schema: JSON Schema for the tool's arguments
        requirement: Credential the tool asks the resolver for
        fallback: Requirement to retry with, once, if the first resolution fails
    """

    name: str
    description: str
    input_schema: dict[str, Any]
    requirement: AuthRequirement
    fallback: AuthRequirement | None = None


@dataclass(frozen=True)
class ToolInvocation:
    """One incoming tools/call request."""

    name: str
    arguments: Mapping[str, Any] | None = field(default=None)
