"""
Blogger MCP server built on FastMCP.

This module wires everything together:
- One MCP tool per entry in tools.TOOL_DEFINITIONS, each delegating to the
  ToolDispatcher (validation, credential resolution, the Blogger call)
- InvocationMiddleware: validates every tools/call before the tool runs and
  logs each call with its authorization requirement
- Health and readiness HTTP endpoints (streamable-http transport only)
- Structured JSON logging to stderr

Architecture:
    The flow for every tools/call:

    1. The MCP client sends tools/call {name, arguments}
    2. InvocationMiddleware.on_call_tool validates name and arguments against
       the static schema; failures become INVALID_PARAMS / METHOD_NOT_FOUND
       protocol errors and the tool never runs
    3. DispatchedTool.run hands the call to ToolDispatcher.invoke
    4. The dispatcher asks the CredentialResolver for the tool's requirement
       (static key, stored/refreshed OAuth token, or an interactive consent flow)
    5. One Blogger API call is made and its result rendered as text
    6. Failures in 4-5 come back as a tool error result ("Tool execution failed: ...")

Running the server:
    BLOGGER_API_KEY=... python -m blogger_mcp.server

    With GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET also set, write tools become
    available; the first one triggers a browser consent flow.
"""

import logging
import sys
import uuid
from typing import Any, Sequence

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.server.middleware import CallNext, Middleware, MiddlewareContext
from fastmcp.tools import Tool, ToolResult
from mcp import MCPError
from mcp.types import CallToolRequestParams, ListToolsRequest, TextContent, ToolAnnotations
from pydantic import PrivateAttr
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from blogger_mcp.blogger import BloggerClient
from blogger_mcp.config import Settings, settings
from blogger_mcp.dispatch import ToolDispatcher
from blogger_mcp.logs import configure_logging
from blogger_mcp.models import AuthRequirement, ToolDefinition
from blogger_mcp.resolver import CredentialResolver
from blogger_mcp.tools import TOOL_REQUIREMENT_MAP

logger = logging.getLogger("blogger_mcp.server")

SERVER_NAME = "blogger-mcp-server"


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class DispatchedTool(Tool):
    """An MCP tool whose schema is static and whose body is the dispatcher."""

    _dispatcher: ToolDispatcher | None = PrivateAttr(default=None)

    @classmethod
    def from_definition(
        cls, definition: ToolDefinition, dispatcher: ToolDispatcher
    ) -> "DispatchedTool":
        read_only = definition.requirement is not AuthRequirement.WRITE
        tool = cls(
            name=definition.name,
            description=definition.description,
            parameters=definition.input_schema,
            annotations=ToolAnnotations(
                read_only_hint=read_only,
                destructive_hint=definition.name == "delete_post",
                open_world_hint=True,
            ),
        )
        tool._dispatcher = dispatcher
        return tool

    async def run(self, arguments: dict[str, Any]) -> ToolResult:
        try:
            text = await self._dispatcher.invoke(self.name, arguments)
        except MCPError as e:
            # Returned to the client as an isError result rather than a protocol error
            raise ToolError(e.message) from e
        return ToolResult(content=[TextContent(type="text", text=text)])


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


class InvocationMiddleware(Middleware):
    """
    Validates tools/call requests before any tool code (or credential
    resolution) runs, and logs every call with the credential it will need.
    """

    def __init__(self, dispatcher: ToolDispatcher):
        self.dispatcher = dispatcher

    async def on_list_tools(
        self,
        context: MiddlewareContext[ListToolsRequest],
        call_next: CallNext[ListToolsRequest, Sequence[Tool]],
    ) -> Sequence[Tool]:
        tools = await call_next(context)
        logger.debug(
            "Tool list requested",
            extra={"log_data": {"tools": [t.name for t in tools]}},
        )
        return tools

    async def on_call_tool(
        self,
        context: MiddlewareContext[CallToolRequestParams],
        call_next: CallNext[CallToolRequestParams, ToolResult],
    ) -> ToolResult:
        request_id = str(uuid.uuid4())[:8]
        tool_name = context.message.name

        # Raises MCPError (INVALID_PARAMS / METHOD_NOT_FOUND); FastMCP sends
        # it to the client as a protocol error.
        self.dispatcher.validate(tool_name, context.message.arguments)

        requirement = TOOL_REQUIREMENT_MAP[tool_name]
        logger.info(
            "Tool call accepted",
            extra={
                "log_data": {
                    "request_id": request_id,
                    "tool": tool_name,
                    "requirement": requirement.value,
                }
            },
        )
        return await call_next(context)


# ---------------------------------------------------------------------------
# Server factory
# ---------------------------------------------------------------------------


def build_server(config: Settings, dispatcher: ToolDispatcher | None = None) -> FastMCP:
    """Create the FastMCP server; `dispatcher` defaults to one built from `config`."""
    if dispatcher is None:
        dispatcher = ToolDispatcher(
            resolver=CredentialResolver.from_settings(config),
            blogger=BloggerClient(
                base_url=config.api_url, timeout=config.http_timeout_seconds
            ),
        )

    server = FastMCP(
        name=SERVER_NAME,
        instructions=(
            "Read, search, create, update and delete posts on Blogger blogs. "
            "Reads use the configured API key; writes require Google OAuth and "
            "may open a browser window for consent the first time."
        ),
        middleware=[InvocationMiddleware(dispatcher)],
        mask_error_details=False,
    )

    for definition in dispatcher.list_tools():
        server.add_tool(DispatchedTool.from_definition(definition, dispatcher))

    # Plain HTTP endpoints for process supervisors; served only with the
    # streamable-http transport and never authenticated.

    @server.custom_route("/health", methods=["GET"])
    async def health_check(request: Request) -> Response:
        return JSONResponse({"status": "healthy"})

    @server.custom_route("/ready", methods=["GET"])
    async def readiness_check(request: Request) -> Response:
        if not (config.api_key_configured or config.oauth_configured):
            return JSONResponse(
                {"status": "not_ready", "reason": "no credentials configured"},
                status_code=503,
            )
        return JSONResponse(
            {
                "status": "ready",
                "api_key": config.api_key_configured,
                "oauth": config.oauth_configured,
            }
        )

    return server


mcp = build_server(settings)


def main() -> None:
    configure_logging(settings.log_level)

    if not (settings.api_key_configured or settings.oauth_configured):
        logger.error(
            "No credentials configured: set BLOGGER_API_KEY and/or "
            "GOOGLE_CLIENT_ID + GOOGLE_CLIENT_SECRET"
        )
        sys.exit(1)

    logger.info(
        "Starting Blogger MCP server",
        extra={
            "log_data": {
                "transport": settings.transport,
                "api_key": settings.api_key_configured,
                "oauth": settings.oauth_configured,
            }
        },
    )

    if settings.transport == "stdio":
        mcp.run(transport="stdio", show_banner=False)
    else:
        mcp.run(
            transport=settings.transport,
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level,
            show_banner=False,
        )


if __name__ == "__main__":
    main()
