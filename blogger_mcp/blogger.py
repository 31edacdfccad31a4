"""
Thin async client for the Blogger v3 REST API.

Every method takes the credential to call with; the client itself holds no
auth state. Non-2xx responses and transport errors raise
RemoteOperationFailed, carrying the API's own error message as `detail` so
it can be surfaced to the MCP client.
"""

import logging
from typing import Any

import httpx

from blogger_mcp.exceptions import RemoteOperationFailed
from blogger_mcp.models import Credential

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://www.googleapis.com/blogger/v3"


class BloggerClient:
    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    # --- Blogs ---

    async def get_blog(self, credential: Credential, blog_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/blogs/{blog_id}", credential)

    async def get_blog_by_url(self, credential: Credential, url: str) -> dict[str, Any]:
        return await self._request("GET", "/blogs/byurl", credential, params={"url": url})

    # --- Posts ---

    async def list_posts(
        self, credential: Credential, blog_id: str, max_results: int = 10
    ) -> dict[str, Any]:
        return await self._request(
            "GET", f"/blogs/{blog_id}/posts", credential, params={"maxResults": max_results}
        )

    async def get_post(self, credential: Credential, blog_id: str, post_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/blogs/{blog_id}/posts/{post_id}", credential)

    async def search_posts(
        self, credential: Credential, blog_id: str, query: str
    ) -> dict[str, Any]:
        return await self._request(
            "GET", f"/blogs/{blog_id}/posts/search", credential, params={"q": query}
        )

    async def create_post(
        self,
        credential: Credential,
        blog_id: str,
        title: str,
        content: str,
        labels: list[str] | None = None,
        is_draft: bool = False,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"kind": "blogger#post", "title": title, "content": content}
        if labels:
            body["labels"] = labels
        params = {"isDraft": "true"} if is_draft else None
        return await self._request(
            "POST", f"/blogs/{blog_id}/posts", credential, params=params, json=body
        )

    async def update_post(
        self,
        credential: Credential,
        blog_id: str,
        post_id: str,
        title: str | None = None,
        content: str | None = None,
        labels: list[str] | None = None,
    ) -> dict[str, Any]:
        """Patch a post; only the fields that are not None are sent."""
        body: dict[str, Any] = {}
        if title is not None:
            body["title"] = title
        if content is not None:
            body["content"] = content
        if labels is not None:
            body["labels"] = labels
        return await self._request(
            "PATCH", f"/blogs/{blog_id}/posts/{post_id}", credential, json=body
        )

    async def delete_post(self, credential: Credential, blog_id: str, post_id: str) -> None:
        await self._request("DELETE", f"/blogs/{blog_id}/posts/{post_id}", credential)

    # --- Transport ---

    async def _request(
        self,
        method: str,
        path: str,
        credential: Credential,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        query = dict(params or {})
        headers: dict[str, str] = {}
        credential.apply(query, headers)

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.request(
                    method, path, params=query, headers=headers, json=json
                )
        except httpx.HTTPError as e:
            raise RemoteOperationFailed(f"Blogger API request failed: {e}") from e

        logger.debug(
            "Blogger API call",
            extra={
                "log_data": {
                    "method": method,
                    "path": path,
                    "status": response.status_code,
                    "credential": credential.kind,
                }
            },
        )

        if response.is_error:
            raise RemoteOperationFailed(
                f"Blogger API returned {response.status_code}",
                status_code=response.status_code,
                detail=_api_error_message(response),
            )

        if not response.content:
            return {}
        return response.json()


def _api_error_message(response: httpx.Response) -> str | None:
    """Pull the message out of Google's {"error": {"message": ...}} error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or None

    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message")
    if isinstance(error, str):
        return body.get("error_description") or error
    return None
