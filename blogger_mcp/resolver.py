"""
Credential resolution: which credential does this operation get?

    requirement    static key configured    OAuth configured    result
    -----------    ---------------------    ----------------    ------------------------
    read           yes                      any                 static key (no network)
    read           no                       yes                 OAuth (see below)
    read           no                       no                  AuthUnavailable
    write          any                      no                  AuthUnavailable
    write          any                      yes                 OAuth (see below)
    private_read   same as write; declared with a read fallback

OAuth resolution:
    - in-memory token (or else the stored one) valid    -> use it
    - expired, refresh token present                    -> refresh, persist, use;
                                                           on failure, one consent flow
    - absent (or expired without a refresh token)       -> one consent flow

The resolver is the only owner of the live OAuth client state. Everything
else asks it for a credential and never touches tokens directly.

Concurrent consent: if an OAuth resolution arrives while a consent flow is
already waiting for the browser, it waits on that same flow rather than
starting a second listener on the same port.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

from blogger_mcp.config import Settings
from blogger_mcp.exceptions import AuthFlowFailed, AuthUnavailable, BloggerMCPError
from blogger_mcp.models import (
    ApiKeyCredential,
    AuthRequirement,
    Credential,
    OAuthCredential,
    TokenSet,
)
from blogger_mcp.oauth import ConsentFlow, GoogleOAuthClient
from blogger_mcp.store import CredentialStore

logger = logging.getLogger(__name__)

FlowFactory = Callable[[GoogleOAuthClient, CredentialStore], ConsentFlow]


@dataclass(frozen=True)
class AuthStatus:
    """Snapshot of what credentials are available, for status reporting."""

    api_key_configured: bool
    oauth_configured: bool
    token_state: str  # "absent", "valid" or "expired"
    has_refresh_token: bool


class CredentialResolver:
    def __init__(
        self,
        api_key: str | None,
        oauth_client: GoogleOAuthClient | None,
        store: CredentialStore,
        flow_factory: FlowFactory | None = None,
    ):
        self._api_key = ApiKeyCredential(api_key) if api_key else None
        self._oauth_client = oauth_client
        self._store = store
        self._flow_factory = flow_factory or ConsentFlow
        self._pending_flow: asyncio.Task[GoogleOAuthClient] | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "CredentialResolver":
        """Wire a resolver, OAuth client and consent flow from configuration."""
        store = CredentialStore(settings.token_file)
        oauth_client = None
        if settings.oauth_configured:
            oauth_client = GoogleOAuthClient(
                client_id=settings.google_client_id,
                client_secret=settings.google_client_secret,
                redirect_uri=settings.redirect_uri,
                timeout=settings.http_timeout_seconds,
            )

        def flow_factory(client: GoogleOAuthClient, store: CredentialStore) -> ConsentFlow:
            return ConsentFlow(
                client,
                store,
                host=settings.oauth_callback_host,
                port=settings.oauth_callback_port,
                path=settings.oauth_callback_path,
                timeout=settings.oauth_timeout_seconds,
            )

        return cls(
            api_key=settings.blogger_api_key,
            oauth_client=oauth_client,
            store=store,
            flow_factory=flow_factory,
        )

    @property
    def oauth_configured(self) -> bool:
        return self._oauth_client is not None

    @property
    def api_key_configured(self) -> bool:
        return self._api_key is not None

    async def resolve(self, requirement: AuthRequirement) -> Credential:
        """
        Return a credential satisfying `requirement`.

        Raises:
            AuthUnavailable: No credential kind applies
            AuthFlowFailed: OAuth was needed and the consent flow failed
        """
        if not requirement.requires_oauth and self._api_key is not None:
            self._log_resolved(requirement, self._api_key)
            return self._api_key

        if self._oauth_client is None:
            if requirement.requires_oauth:
                raise AuthUnavailable("OAuth required, not configured")
            raise AuthUnavailable(
                "No credentials configured: set BLOGGER_API_KEY or "
                "GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET"
            )

        credential = OAuthCredential(await self._resolve_oauth())
        self._log_resolved(requirement, credential)
        return credential

    async def resolve_with_fallback(
        self, primary: AuthRequirement, secondary: AuthRequirement
    ) -> Credential:
        """
        Try `primary`; if it can't be satisfied, try `secondary` exactly once.

        Used for reads that benefit from OAuth (drafts become visible) but
        still work for public content with the static key.
        """
        try:
            return await self.resolve(primary)
        except Exception as e:
            logger.info(
                "Primary credential unavailable, falling back",
                exc_info=not isinstance(e, BloggerMCPError),
                extra={
                    "log_data": {
                        "primary": primary.value,
                        "secondary": secondary.value,
                        "reason": str(e),
                    }
                },
            )
        return await self.resolve(secondary)

    async def status(self) -> AuthStatus:
        """Report configuration and stored token state without refreshing anything."""
        tokens = self._current_tokens() or await self._store.load()
        if tokens is None:
            token_state = "absent"
        elif tokens.is_expired():
            token_state = "expired"
        else:
            token_state = "valid"

        return AuthStatus(
            api_key_configured=self.api_key_configured,
            oauth_configured=self.oauth_configured,
            token_state=token_state,
            has_refresh_token=bool(tokens and tokens.has_refresh_token),
        )

    async def login(self) -> TokenSet:
        """Run the consent flow unconditionally and return the new token set."""
        if self._oauth_client is None:
            raise AuthUnavailable("OAuth required, not configured")
        client = await self._run_consent_flow()
        return client.credentials

    async def revoke(self) -> bool:
        """
        Revoke the current token at Google and forget it locally.

        Revocation at Google is best-effort; the local token file is removed
        regardless. Returns whether the local state was cleared.
        """
        tokens = self._current_tokens() or await self._store.load()
        if tokens is not None and self._oauth_client is not None:
            try:
                await self._oauth_client.revoke(tokens)
                logger.info("OAuth token revoked at Google")
            except AuthFlowFailed as e:
                logger.warning("Failed to revoke OAuth token: %s", e.message)

        if self._oauth_client is not None:
            self._oauth_client.credentials = None
        return await self._store.clear()

    # --- OAuth branch ---

    def _current_tokens(self) -> TokenSet | None:
        if self._oauth_client is None:
            return None
        return self._oauth_client.credentials

    async def _resolve_oauth(self) -> TokenSet:
        client = self._oauth_client

        tokens = client.credentials
        if tokens is None:
            tokens = await self._store.load()
            if tokens is not None:
                client.set_credentials(tokens)

        if tokens is None:
            logger.info("No stored OAuth tokens, starting consent flow")
            return (await self._run_consent_flow()).credentials

        if not tokens.is_expired():
            return tokens

        if tokens.has_refresh_token:
            try:
                refreshed = await client.refresh(tokens)
            except Exception as e:
                logger.warning(
                    "OAuth token refresh failed, starting consent flow",
                    exc_info=not isinstance(e, AuthFlowFailed),
                    extra={"log_data": {"reason": str(e)}},
                )
            else:
                await self._store.save(refreshed)
                client.set_credentials(refreshed)
                logger.info("OAuth access token refreshed")
                return refreshed
        else:
            logger.info("OAuth token expired with no refresh token, starting consent flow")

        return (await self._run_consent_flow()).credentials

    async def _run_consent_flow(self) -> GoogleOAuthClient:
        if self._pending_flow is None or self._pending_flow.done():
            flow = self._flow_factory(self._oauth_client, self._store)
            self._pending_flow = asyncio.ensure_future(flow.run())
        else:
            logger.info("Consent flow already in progress, waiting for it")

        # shield: one waiter being cancelled must not cancel the flow for the others
        return await asyncio.shield(self._pending_flow)

    def _log_resolved(self, requirement: AuthRequirement, credential: Credential) -> None:
        logger.info(
            "Credential resolved",
            extra={"log_data": {"requirement": requirement.value, "kind": credential.kind}},
        )
