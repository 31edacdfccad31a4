"""
Shared test fixtures for the Blogger MCP server test suite.

Pytest fixtures are reusable setup functions that tests can request by name.
They run before each test and provide the test with preconfigured objects.

Key fixtures:
- make_tokens: A factory function to build TokenSets (valid, expired, with or
  without a refresh token)
- store: A CredentialStore backed by a file in pytest's tmp_path
- google: A fake Google token endpoint (httpx.MockTransport) that records
  every request and replies with queued responses
- oauth_client: A GoogleOAuthClient wired to the fake Google endpoint
- stub_flow: A stand-in for the interactive consent flow, so resolver tests
  never open a browser or bind a port
- blogger_api / blogger: A fake Blogger REST API and a BloggerClient wired to it
- make_resolver / make_dispatcher: Factories for the real resolver and
  dispatcher assembled from the fakes above

Testing approach:
- Nothing here touches the network. Google and Blogger are replaced at the
  httpx transport layer, so the real request-building and error-handling
  code still runs.
- test_oauth.py is the exception that binds a socket: the consent flow's
  callback listener runs for real on 127.0.0.1 with an ephemeral port.
"""

import asyncio
import time
from typing import Any, Callable

import httpx
import pytest

from blogger_mcp.blogger import BloggerClient
from blogger_mcp.dispatch import ToolDispatcher
from blogger_mcp.models import TokenSet
from blogger_mcp.oauth import GoogleOAuthClient
from blogger_mcp.resolver import CredentialResolver
from blogger_mcp.store import CredentialStore

TEST_API_KEY = "test-api-key"
TEST_CLIENT_ID = "test-client-id"
TEST_CLIENT_SECRET = "test-client-secret"
TEST_REDIRECT_URI = "http://localhost:3000/oauth/callback"


# ---------------------------------------------------------------------------
# Token factory fixture
# ---------------------------------------------------------------------------
@pytest.fixture
def make_tokens():
    """
    Factory fixture to build OAuth token sets for testing.

    Usage in tests:
        def test_something(make_tokens):
            tokens = make_tokens(expired=True, refresh_token=None)
    """

    def _make_tokens(
        access_token: str = "access-1",
        refresh_token: str | None = "refresh-1",
        expired: bool = False,
        scope: str = "https://www.googleapis.com/auth/blogger",
    ) -> TokenSet:
        """
        Args:
            access_token: Bearer token value
            refresh_token: Refresh token (None means the set has none)
            expired: Whether expiry_date is an hour in the past instead of the future
            scope: Granted scopes
        """
        offset_ms = 3600 * 1000
        now_ms = int(time.time() * 1000)
        return TokenSet(
            access_token=access_token,
            refresh_token=refresh_token,
            scope=scope,
            expiry_date=now_ms - offset_ms if expired else now_ms + offset_ms,
        )

    return _make_tokens


@pytest.fixture
def store(tmp_path) -> CredentialStore:
    return CredentialStore(tmp_path / "tokens.json")


# ---------------------------------------------------------------------------
# Fake Google OAuth endpoints
# ---------------------------------------------------------------------------
class FakeGoogle:
    """
    Stands in for oauth2.googleapis.com.

    Token requests are answered from `token_responses` in order; once the
    queue is empty a fresh token set is returned. Revocation always succeeds
    unless `revoke_status` is changed.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.token_responses: list[httpx.Response] = []
        self.revoke_status = 200

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def token_requests(self) -> list[dict[str, str]]:
        """Form bodies of every request sent to the token endpoint."""
        return [
            dict(httpx.QueryParams(r.content.decode()))
            for r in self.requests
            if r.url.path == "/token"
        ]

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/revoke":
            return httpx.Response(self.revoke_status)
        if self.token_responses:
            return self.token_responses.pop(0)
        return httpx.Response(
            200,
            json={
                "access_token": "fresh-access",
                "expires_in": 3599,
                "scope": "https://www.googleapis.com/auth/blogger",
                "token_type": "Bearer",
            },
        )


@pytest.fixture
def google() -> FakeGoogle:
    return FakeGoogle()


@pytest.fixture
def oauth_client(google) -> GoogleOAuthClient:
    return GoogleOAuthClient(
        client_id=TEST_CLIENT_ID,
        client_secret=TEST_CLIENT_SECRET,
        redirect_uri=TEST_REDIRECT_URI,
        transport=google.transport,
    )


# ---------------------------------------------------------------------------
# Consent flow stand-in
# ---------------------------------------------------------------------------
class StubFlowFactory:
    """
    Replaces ConsentFlow in resolver tests.

    Each flow it creates behaves like a successful consent: it saves
    `tokens` to the store and installs them on the client. Set `error` to
    make the flows fail instead, or clear `release` to hold them open
    (as if the user hadn't finished in the browser yet).
    """

    def __init__(self, tokens: TokenSet):
        self.tokens = tokens
        self.error: Exception | None = None
        self.release = asyncio.Event()
        self.release.set()
        self.started = 0

    def __call__(self, client: GoogleOAuthClient, store: CredentialStore) -> "StubFlow":
        return StubFlow(self, client, store)


class StubFlow:
    def __init__(self, factory: StubFlowFactory, client, store):
        self.factory = factory
        self.client = client
        self.store = store

    async def run(self) -> GoogleOAuthClient:
        self.factory.started += 1
        await self.factory.release.wait()
        if self.factory.error is not None:
            raise self.factory.error
        await self.store.save(self.factory.tokens)
        self.client.set_credentials(self.factory.tokens)
        return self.client


@pytest.fixture
def stub_flow(make_tokens) -> StubFlowFactory:
    return StubFlowFactory(
        make_tokens(access_token="consented-access", refresh_token="consented-refresh")
    )


# ---------------------------------------------------------------------------
# Fake Blogger API
# ---------------------------------------------------------------------------
class FakeBlogger:
    """
    Stands in for the Blogger v3 REST API.

    Routes are registered as (method, path) -> handler returning an
    httpx.Response; unregistered routes return Google's 404 error body.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def reply(self, method: str, path: str, status: int = 200, json: Any = None) -> None:
        def _respond(request: httpx.Request) -> httpx.Response:
            if json is None:
                return httpx.Response(status)
            return httpx.Response(status, json=json)

        self.routes[(method, "/blogger/v3" + path)] = _respond

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(
                404, json={"error": {"code": 404, "message": "Not Found"}}
            )
        return route(request)


@pytest.fixture
def blogger_api() -> FakeBlogger:
    return FakeBlogger()


@pytest.fixture
def blogger(blogger_api) -> BloggerClient:
    return BloggerClient(transport=blogger_api.transport)


# ---------------------------------------------------------------------------
# Resolver / dispatcher factories
# ---------------------------------------------------------------------------
@pytest.fixture
def make_resolver(oauth_client, store, stub_flow):
    """
    Factory fixture for a CredentialResolver built from the fakes.

    Usage in tests:
        resolver = make_resolver(api_key=None)       # OAuth only
        resolver = make_resolver(oauth=False)        # static key only
    """

    def _make_resolver(api_key: str | None = TEST_API_KEY, oauth: bool = True):
        return CredentialResolver(
            api_key=api_key,
            oauth_client=oauth_client if oauth else None,
            store=store,
            flow_factory=stub_flow,
        )

    return _make_resolver


@pytest.fixture
def make_dispatcher(make_resolver, blogger):
    def _make_dispatcher(**resolver_kwargs) -> ToolDispatcher:
        return ToolDispatcher(resolver=make_resolver(**resolver_kwargs), blogger=blogger)

    return _make_dispatcher
