"""
Google OAuth2 client and the interactive consent flow.

Writing to Blogger (and reading drafts) needs an OAuth2 access token for the
blog owner. The first token set comes from the authorization-code flow:

    1. Build a consent URL (scope, access_type=offline, prompt=consent)
    2. Start a temporary HTTP listener on the registered redirect URI
       (http://localhost:3000/oauth/callback by default)
    3. Open the URL in the user's browser (best-effort; the URL is also logged)
    4. Google redirects the browser back to the listener with ?code=... or ?error=...
    5. Exchange the code for tokens, persist them, and hand the authenticated
       client back to whoever asked

access_type=offline makes Google issue a refresh token, and prompt=consent
forces it to issue one again on repeat authorizations (otherwise only the
very first consent returns it).

ConsentFlow is single-use: its state only moves forward
(idle -> awaiting_callback -> completed | failed), and the listener is torn
down on every exit path, including timeout and cancellation.
"""

import asyncio
import html
import logging
import webbrowser
from typing import Any, Callable
from urllib.parse import urlencode

import httpx
from aiohttp import web

from blogger_mcp.config import BLOGGER_SCOPE
from blogger_mcp.exceptions import AuthFlowFailed
from blogger_mcp.models import FlowState, TokenSet
from blogger_mcp.store import CredentialStore

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"

SUCCESS_PAGE = """<!DOCTYPE html>
<html>
<head><title>Authentication Successful</title></head>
<body>
<h2>Authentication Successful!</h2>
<p>You can now close this window and return to your MCP client.</p>
<script>setTimeout(() => window.close(), 2000);</script>
</body>
</html>"""


def _error_page(message: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head><title>Authentication Failed</title></head>
<body>
<h2>Authentication Failed</h2>
<p>{html.escape(message)}</p>
</body>
</html>"""


def _describe_duration(seconds: float) -> str:
    if seconds >= 60 and seconds % 60 == 0:
        minutes = int(seconds // 60)
        return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"
    return f"{seconds:g} seconds"


# ---------------------------------------------------------------------------
# Token endpoint client
# ---------------------------------------------------------------------------


class GoogleOAuthClient:
    """
    OAuth2 client for Google's authorization and token endpoints.

    Holds the live, in-memory token set for this process (`credentials`).
    Only the credential resolver and the consent flow it starts update it.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scope: str = BLOGGER_SCOPE,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scope = scope
        self.timeout = timeout
        self._transport = transport
        self.credentials: TokenSet | None = None

    def set_credentials(self, tokens: TokenSet) -> None:
        self.credentials = tokens

    def build_auth_url(self) -> str:
        """Build the URL the user opens to grant consent."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": self.scope,
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenSet:
        """
        Exchange an authorization code for a token set.

        Raises:
            AuthFlowFailed: If Google rejects the code or the request fails
        """
        data = await self._post_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
            }
        )
        return _parse_token_response(data)

    async def refresh(self, tokens: TokenSet) -> TokenSet:
        """
        Mint a new access token from `tokens.refresh_token`.

        The returned set keeps the existing refresh token when Google doesn't
        send a new one.

        Raises:
            AuthFlowFailed: If there is no refresh token or the refresh is rejected
        """
        if not tokens.has_refresh_token:
            raise AuthFlowFailed("Cannot refresh OAuth tokens: no refresh token stored")

        data = await self._post_token(
            {
                "grant_type": "refresh_token",
                "refresh_token": tokens.refresh_token,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            }
        )
        return _parse_token_response(data, previous_refresh_token=tokens.refresh_token)

    async def revoke(self, tokens: TokenSet) -> None:
        """Revoke the refresh token (or access token) at Google."""
        token = tokens.refresh_token or tokens.access_token
        try:
            async with self._http() as client:
                response = await client.post(GOOGLE_REVOKE_URL, data={"token": token})
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise AuthFlowFailed(f"Failed to revoke OAuth token: {e}") from e

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _post_token(self, form: dict[str, Any]) -> dict[str, Any]:
        try:
            async with self._http() as client:
                response = await client.post(GOOGLE_TOKEN_URL, data=form)
        except httpx.HTTPError as e:
            raise AuthFlowFailed(f"Token request failed: {e}") from e

        if response.is_error:
            raise AuthFlowFailed(
                f"Token request rejected ({response.status_code}): "
                f"{_token_error_message(response)}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise AuthFlowFailed(f"Token response was not valid JSON: {e}") from e


def _parse_token_response(
    data: Any, previous_refresh_token: str | None = None
) -> TokenSet:
    if not isinstance(data, dict) or not data.get("access_token"):
        raise AuthFlowFailed("Token response did not include an access_token")
    try:
        return TokenSet.from_token_response(data, previous_refresh_token=previous_refresh_token)
    except (TypeError, ValueError) as e:
        raise AuthFlowFailed(f"Malformed token response: {e}") from e


def _token_error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if not isinstance(body, dict):
        return str(body)
    return body.get("error_description") or body.get("error") or response.reason_phrase


# ---------------------------------------------------------------------------
# Callback listener
# ---------------------------------------------------------------------------


class CallbackListener:
    """Temporary HTTP server serving exactly one route: the OAuth redirect URI."""

    def __init__(
        self,
        handler: Callable[[web.Request], Any],
        host: str = "localhost",
        port: int = 3000,
        path: str = "/oauth/callback",
    ):
        self.host = host
        self.path = path
        self._requested_port = port
        self.port = port
        self._handler = handler
        self._runner: web.AppRunner | None = None

    @property
    def running(self) -> bool:
        return self._runner is not None

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}{self.path}"

    async def start(self) -> None:
        app = web.Application()
        app.router.add_get(self.path, self._handler)

        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        site = web.TCPSite(runner, self.host, self._requested_port)
        try:
            await site.start()
        except OSError:
            await runner.cleanup()
            raise
        self._runner = runner

        # Pick up the real port when an ephemeral one (0) was requested
        addresses = runner.addresses
        if addresses:
            self.port = addresses[0][1]

        logger.debug("OAuth callback listener started on %s", self.url)

    async def stop(self) -> None:
        if self._runner is None:
            return
        runner, self._runner = self._runner, None
        await runner.cleanup()
        logger.debug("OAuth callback listener stopped")


# ---------------------------------------------------------------------------
# Consent flow
# ---------------------------------------------------------------------------


class ConsentFlow:
    """
    One interactive authorization-code round trip.

    The flow parks on a single-slot future that only the callback handler
    completes. run() returns the authenticated GoogleOAuthClient or raises
    AuthFlowFailed.
    """

    def __init__(
        self,
        client: GoogleOAuthClient,
        store: CredentialStore,
        host: str = "localhost",
        port: int = 3000,
        path: str = "/oauth/callback",
        timeout: float = 300.0,
        open_browser: Callable[[str], bool] = webbrowser.open,
    ):
        self.client = client
        self.store = store
        self.timeout = timeout
        self.listener = CallbackListener(self._handle_callback, host=host, port=port, path=path)
        self.state = FlowState.IDLE
        self.auth_url: str | None = None
        self._open_browser = open_browser
        self._result: asyncio.Future[GoogleOAuthClient] | None = None

    async def run(self) -> GoogleOAuthClient:
        if self.state is not FlowState.IDLE:
            raise AuthFlowFailed(f"Consent flow already {self.state.value}; start a new one")

        self.auth_url = self.client.build_auth_url()
        self._result = asyncio.get_running_loop().create_future()

        try:
            try:
                await self.listener.start()
            except OSError as e:
                raise AuthFlowFailed(
                    f"Could not start OAuth callback listener on port {self.listener.port}: {e}"
                ) from e

            self._transition(FlowState.AWAITING_CALLBACK)
            self._launch_browser(self.auth_url)

            try:
                client = await asyncio.wait_for(self._result, timeout=self.timeout)
            except asyncio.TimeoutError:
                raise AuthFlowFailed(
                    f"OAuth flow timed out after {_describe_duration(self.timeout)}"
                ) from None

            self._transition(FlowState.COMPLETED)
            return client
        finally:
            await self.listener.stop()
            if self.state is not FlowState.COMPLETED:
                self._transition(FlowState.FAILED)

    def _transition(self, new_state: FlowState) -> None:
        logger.info(
            "OAuth consent flow state changed",
            extra={"log_data": {"from": self.state.value, "to": new_state.value}},
        )
        self.state = new_state

    def _launch_browser(self, url: str) -> None:
        logger.warning("OAuth setup required: opening browser for Google authentication")
        try:
            opened = self._open_browser(url)
        except Exception as e:
            logger.warning("Could not open browser automatically: %s", e)
            opened = False

        if not opened:
            logger.warning(
                "Please visit this URL manually to authorize Blogger access",
                extra={"log_data": {"auth_url": url}},
            )

    def _fail(self, error: AuthFlowFailed) -> None:
        if self._result is not None and not self._result.done():
            self._result.set_exception(error)

    async def _handle_callback(self, request: web.Request) -> web.Response:
        if self._result is None or self._result.done():
            return web.Response(
                text=_error_page("No authorization is in progress."),
                content_type="text/html",
                status=409,
            )

        error = request.query.get("error")
        if error:
            logger.error("OAuth provider returned an error: %s", error)
            self._fail(AuthFlowFailed(f"OAuth error: {error}"))
            return web.Response(
                text=_error_page(f"Authentication failed: {error}"),
                content_type="text/html",
                status=400,
            )

        code = request.query.get("code")
        if not code:
            logger.error("OAuth callback carried no authorization code")
            self._fail(AuthFlowFailed("No authorization code received"))
            return web.Response(
                text=_error_page("No authorization code received"),
                content_type="text/html",
                status=400,
            )

        try:
            tokens = await self.client.exchange_code(code)
        except Exception as e:
            reason = str(e)
            logger.error("OAuth code exchange failed: %s", reason)
            self._fail(AuthFlowFailed(f"Token exchange failed: {reason}"))
            return web.Response(
                text=_error_page(f"Token exchange failed: {reason}"),
                content_type="text/html",
                status=502,
            )

        if self._result.done():
            # Timed out (or was cancelled) while the code was being exchanged
            return web.Response(
                text=_error_page("The authorization attempt has already ended."),
                content_type="text/html",
                status=409,
            )

        # Persist before anyone gets to use the token
        await self.store.save(tokens)
        self.client.set_credentials(tokens)
        if not self._result.done():
            self._result.set_result(self.client)

        logger.info("OAuth consent completed")
        return web.Response(text=SUCCESS_PAGE, content_type="text/html")
