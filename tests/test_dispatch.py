"""
Tests for the tool dispatch layer (blogger_mcp/dispatch.py).

These drive ToolDispatcher.invoke() the way the MCP server does and check
the three protocol outcomes:

- INVALID_PARAMS / METHOD_NOT_FOUND: the call was malformed. Raised before
  any credential is resolved, so a bad write call never opens a browser.
- INTERNAL_ERROR: the call was well-formed but failed (no credential,
  consent failed, Blogger said no). The message is always
  "Tool execution failed: ..." with the API's own error text appended.
- Success: one Blogger request, rendered as text.
"""

import json
from unittest.mock import AsyncMock

import pytest
from mcp import MCPError
from mcp.types import INTERNAL_ERROR, INVALID_PARAMS, METHOD_NOT_FOUND

from blogger_mcp.dispatch import ToolDispatcher
from blogger_mcp.exceptions import AuthFlowFailed
from blogger_mcp.models import ApiKeyCredential, AuthRequirement, ToolInvocation
from blogger_mcp.resolver import CredentialResolver

POST = {
    "id": "p1",
    "title": "Hello",
    "content": "<p>Body</p>",
    "published": "2026-01-01T00:00:00Z",
    "updated": "2026-01-02T00:00:00Z",
    "url": "https://example.blogspot.com/hello.html",
}


class TestToolList:
    def test_tools_listed_in_declared_order(self, make_dispatcher):
        names = [tool.name for tool in make_dispatcher().list_tools()]

        assert names == [
            "get_blog_info",
            "list_posts",
            "get_post",
            "search_posts",
            "create_post",
            "update_post",
            "delete_post",
        ]


class TestInvalidInvocations:
    async def test_missing_arguments(self, make_dispatcher, stub_flow):
        with pytest.raises(MCPError) as exc_info:
            await make_dispatcher().dispatch(ToolInvocation(name="create_post"))

        assert exc_info.value.code == INVALID_PARAMS
        assert exc_info.value.message == "Arguments are required"
        assert stub_flow.started == 0

    async def test_unknown_tool(self, make_dispatcher):
        with pytest.raises(MCPError) as exc_info:
            await make_dispatcher().invoke("publish_everything", {})

        assert exc_info.value.code == METHOD_NOT_FOUND
        assert exc_info.value.message == "Unknown tool: publish_everything"

    async def test_missing_required_argument_fails_before_auth(
        self, make_dispatcher, stub_flow, blogger_api
    ):
        """A malformed write must not trigger the consent flow."""
        with pytest.raises(MCPError) as exc_info:
            await make_dispatcher().invoke("create_post", {"blogId": "42", "title": "t"})

        assert exc_info.value.code == INVALID_PARAMS
        assert "create_post" in exc_info.value.message
        assert "content" in exc_info.value.message
        assert stub_flow.started == 0
        assert blogger_api.requests == []

    async def test_wrong_argument_type(self, make_dispatcher):
        with pytest.raises(MCPError) as exc_info:
            await make_dispatcher().invoke("list_posts", {"blogId": "42", "maxResults": "ten"})

        assert exc_info.value.code == INVALID_PARAMS
        assert "maxResults" in exc_info.value.message

    async def test_fractional_max_results_rejected(self, make_dispatcher, blogger_api):
        with pytest.raises(MCPError) as exc_info:
            await make_dispatcher().invoke("list_posts", {"blogId": "42", "maxResults": 2.5})

        assert exc_info.value.code == INVALID_PARAMS
        assert "maxResults" in exc_info.value.message
        assert blogger_api.requests == []

    async def test_update_with_nothing_to_change(self, make_dispatcher):
        with pytest.raises(MCPError) as exc_info:
            await make_dispatcher().invoke("update_post", {"blogId": "42", "postId": "p1"})

        assert exc_info.value.code == INVALID_PARAMS

    def test_validate_without_running(self, make_dispatcher, blogger_api):
        dispatcher = make_dispatcher()

        dispatcher.validate("get_post", {"blogId": "42", "postId": "p1"})
        with pytest.raises(MCPError):
            dispatcher.validate("get_post", {"blogId": "42"})

        assert blogger_api.requests == []


class TestReadTools:
    async def test_get_blog_info_by_id(self, make_dispatcher, blogger_api):
        blogger_api.reply(
            "GET", "/blogs/42", json={"id": "42", "name": "My Blog", "posts": {"totalItems": 3}}
        )

        text = await make_dispatcher().invoke("get_blog_info", {"blogUrl": "42"})

        summary = json.loads(text)
        assert summary["name"] == "My Blog"
        assert summary["posts"] == {"totalItems": 3}
        assert summary["pages"] == {"totalItems": 0}

    async def test_get_blog_info_by_bare_hostname(self, make_dispatcher, blogger_api):
        blogger_api.reply("GET", "/blogs/byurl", json={"id": "42"})

        await make_dispatcher().invoke("get_blog_info", {"blogUrl": "myblog.blogspot.com"})

        assert blogger_api.requests[0].url.params["url"] == "https://myblog.blogspot.com"

    async def test_list_posts_defaults_to_ten(self, make_dispatcher, blogger_api):
        blogger_api.reply("GET", "/blogs/42/posts", json={"items": [POST]})

        text = await make_dispatcher().invoke("list_posts", {"blogId": "42"})

        assert blogger_api.requests[0].url.params["maxResults"] == "10"
        assert text.startswith("Found 1 posts:")
        assert "**Hello**" in text

    async def test_list_posts_without_items(self, make_dispatcher, blogger_api):
        blogger_api.reply("GET", "/blogs/42/posts", json={"kind": "blogger#postList"})

        text = await make_dispatcher().invoke("list_posts", {"blogId": "42", "maxResults": 5})

        assert text.startswith("Found 0 posts:")

    async def test_search_posts_mentions_query(self, make_dispatcher, blogger_api):
        blogger_api.reply("GET", "/blogs/42/posts/search", json={"items": [POST, POST]})

        text = await make_dispatcher().invoke("search_posts", {"blogId": "42", "query": "hello"})

        assert text.startswith('Found 2 posts matching "hello":')

    async def test_reads_use_static_key(self, make_dispatcher, blogger_api, stub_flow):
        blogger_api.reply("GET", "/blogs/42/posts/search", json={"items": []})

        await make_dispatcher().invoke("search_posts", {"blogId": "42", "query": "x"})

        assert blogger_api.requests[0].url.params["key"] == "test-api-key"
        assert stub_flow.started == 0

    async def test_get_post_falls_back_to_key_when_consent_fails(
        self, make_dispatcher, blogger_api, stub_flow
    ):
        stub_flow.error = AuthFlowFailed("OAuth error: access_denied")
        blogger_api.reply("GET", "/blogs/42/posts/p1", json=POST)

        text = await make_dispatcher().invoke("get_post", {"blogId": "42", "postId": "p1"})

        assert stub_flow.started == 1
        assert blogger_api.requests[0].url.params["key"] == "test-api-key"
        assert "**Content:**\n<p>Body</p>" in text

    async def test_get_post_uses_oauth_when_token_stored(
        self, make_dispatcher, blogger_api, store, make_tokens
    ):
        await store.save(make_tokens(access_token="stored"))
        blogger_api.reply("GET", "/blogs/42/posts/p1", json={**POST, "status": "DRAFT"})

        text = await make_dispatcher().invoke("get_post", {"blogId": "42", "postId": "p1"})

        assert blogger_api.requests[0].headers["authorization"] == "Bearer stored"
        assert "Status: DRAFT" in text


class TestWriteTools:
    async def test_create_post_runs_consent_then_posts(
        self, make_dispatcher, blogger_api, stub_flow
    ):
        blogger_api.reply("POST", "/blogs/42/posts", json={**POST, "status": "LIVE"})

        text = await make_dispatcher().invoke(
            "create_post",
            {"blogId": "42", "title": "Hello", "content": "<p>Body</p>", "labels": ["x"]},
        )

        assert stub_flow.started == 1
        request = blogger_api.requests[0]
        assert request.headers["authorization"] == "Bearer consented-access"
        assert "isDraft" not in request.url.params
        assert text.startswith("Post created successfully.")
        assert "ID: p1" in text

    async def test_create_draft(self, make_dispatcher, blogger_api):
        blogger_api.reply("POST", "/blogs/42/posts", json={**POST, "status": "DRAFT"})

        await make_dispatcher().invoke(
            "create_post", {"blogId": "42", "title": "t", "content": "c", "isDraft": True}
        )

        assert blogger_api.requests[0].url.params["isDraft"] == "true"

    async def test_update_post(self, make_dispatcher, blogger_api):
        blogger_api.reply("PATCH", "/blogs/42/posts/p1", json={**POST, "labels": ["a", "b"]})

        text = await make_dispatcher().invoke(
            "update_post", {"blogId": "42", "postId": "p1", "labels": ["a", "b"]}
        )

        assert json.loads(blogger_api.requests[0].content) == {"labels": ["a", "b"]}
        assert "Labels: a, b" in text

    async def test_delete_post(self, make_dispatcher, blogger_api):
        blogger_api.reply("DELETE", "/blogs/42/posts/p1", status=204)

        text = await make_dispatcher().invoke("delete_post", {"blogId": "42", "postId": "p1"})

        assert text == "Post p1 deleted from blog 42."


class TestExecutionFailures:
    async def test_write_without_oauth_is_internal_error(self, make_dispatcher, blogger_api):
        with pytest.raises(MCPError) as exc_info:
            await make_dispatcher(oauth=False).invoke(
                "delete_post", {"blogId": "42", "postId": "p1"}
            )

        assert exc_info.value.code == INTERNAL_ERROR
        assert exc_info.value.message == (
            "Tool execution failed: OAuth required, not configured"
        )
        assert blogger_api.requests == []

    async def test_consent_timeout_is_internal_error(self, make_dispatcher, stub_flow):
        stub_flow.error = AuthFlowFailed("OAuth flow timed out after 5 minutes")

        with pytest.raises(MCPError) as exc_info:
            await make_dispatcher().invoke(
                "create_post", {"blogId": "42", "title": "t", "content": "c"}
            )

        assert exc_info.value.code == INTERNAL_ERROR
        assert exc_info.value.message == (
            "Tool execution failed: OAuth flow timed out after 5 minutes"
        )

    async def test_api_error_detail_is_included(self, make_dispatcher, blogger_api):
        blogger_api.reply(
            "GET",
            "/blogs/42/posts/search",
            status=400,
            json={"error": {"code": 400, "message": "Invalid query"}},
        )

        with pytest.raises(MCPError) as exc_info:
            await make_dispatcher().invoke("search_posts", {"blogId": "42", "query": "("})

        assert exc_info.value.code == INTERNAL_ERROR
        assert exc_info.value.message == (
            "Tool execution failed: Blogger API returned 400 - Invalid query"
        )

    async def test_unexpected_exception_is_internal_error(self, make_dispatcher, blogger):
        async def broken(*args, **kwargs):
            raise ValueError("boom")

        blogger.get_blog = broken

        with pytest.raises(MCPError) as exc_info:
            await make_dispatcher().invoke("get_blog_info", {"blogUrl": "42"})

        assert exc_info.value.code == INTERNAL_ERROR
        assert exc_info.value.message == "Tool execution failed: boom"


class TestCredentialRequests:
    """Which requirement each tool asks the resolver for."""

    @pytest.fixture
    def resolver(self):
        resolver = AsyncMock(spec=CredentialResolver)
        resolver.resolve.return_value = ApiKeyCredential("k")
        resolver.resolve_with_fallback.return_value = ApiKeyCredential("k")
        return resolver

    async def test_write_tools_ask_for_write(self, resolver, blogger, blogger_api):
        blogger_api.reply("DELETE", "/blogs/42/posts/p1", status=204)
        dispatcher = ToolDispatcher(resolver=resolver, blogger=blogger)

        await dispatcher.invoke("delete_post", {"blogId": "42", "postId": "p1"})

        resolver.resolve.assert_awaited_once_with(AuthRequirement.WRITE)
        resolver.resolve_with_fallback.assert_not_awaited()

    async def test_get_post_asks_for_private_read_with_read_fallback(
        self, resolver, blogger, blogger_api
    ):
        blogger_api.reply("GET", "/blogs/42/posts/p1", json=POST)
        dispatcher = ToolDispatcher(resolver=resolver, blogger=blogger)

        await dispatcher.invoke("get_post", {"blogId": "42", "postId": "p1"})

        resolver.resolve_with_fallback.assert_awaited_once_with(
            AuthRequirement.PRIVATE_READ, AuthRequirement.READ
        )

    async def test_invalid_call_never_reaches_resolver(self, resolver, blogger):
        dispatcher = ToolDispatcher(resolver=resolver, blogger=blogger)

        with pytest.raises(MCPError):
            await dispatcher.invoke("create_post", {"blogId": "42"})

        resolver.resolve.assert_not_awaited()
