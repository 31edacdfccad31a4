"""
Tool dispatch: validate, authorize, call Blogger, normalize errors.

For every tools/call:

    1. Reject a missing `arguments` object (INVALID_PARAMS) before anything else
    2. Look up the tool (METHOD_NOT_FOUND if unknown)
    3. Validate arguments against the tool's JSON Schema (INVALID_PARAMS)
    4. Ask the resolver for the tool's credential, with its declared fallback
    5. Make exactly one Blogger API call and render the result as text

Anything that goes wrong in steps 4-5 (no credential, consent failed, the API
said no, or a plain bug) comes out as a single INTERNAL_ERROR whose message
carries the original text plus the API's own error detail when there is one.
No partial results: a call either fully succeeds or raises.
"""

import logging
import uuid
from typing import Any, Awaitable, Callable, Mapping

from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match
from mcp import MCPError
from mcp.types import INTERNAL_ERROR, INVALID_PARAMS, METHOD_NOT_FOUND

from blogger_mcp import formatting
from blogger_mcp.blogger import BloggerClient
from blogger_mcp.exceptions import BloggerMCPError, InvalidInvocation
from blogger_mcp.models import Credential, ToolDefinition, ToolInvocation
from blogger_mcp.resolver import CredentialResolver
from blogger_mcp.tools import TOOL_DEFINITIONS, TOOLS_BY_NAME

logger = logging.getLogger(__name__)

Handler = Callable[[Credential, dict[str, Any]], Awaitable[str]]


class ToolDispatcher:
    def __init__(self, resolver: CredentialResolver, blogger: BloggerClient):
        self.resolver = resolver
        self.blogger = blogger
        self._handlers: dict[str, Handler] = {
            "get_blog_info": self._get_blog_info,
            "list_posts": self._list_posts,
            "get_post": self._get_post,
            "search_posts": self._search_posts,
            "create_post": self._create_post,
            "update_post": self._update_post,
            "delete_post": self._delete_post,
        }
        self._validators = {
            tool.name: Draft202012Validator(tool.input_schema) for tool in TOOL_DEFINITIONS
        }

    def list_tools(self) -> list[ToolDefinition]:
        return list(TOOL_DEFINITIONS)

    async def invoke(self, name: str, arguments: Mapping[str, Any] | None) -> str:
        """
        Run one tool invocation and return its text result.

        Raises:
            MCPError: INVALID_PARAMS, METHOD_NOT_FOUND or INTERNAL_ERROR
        """
        return await self.dispatch(ToolInvocation(name=name, arguments=arguments))

    def validate(self, name: str, arguments: Mapping[str, Any] | None) -> None:
        """Check a call without running it; raises MCPError like dispatch()."""
        self._checked(ToolInvocation(name=name, arguments=arguments), str(uuid.uuid4())[:8])

    async def dispatch(self, invocation: ToolInvocation) -> str:
        request_id = str(uuid.uuid4())[:8]
        tool, args = self._checked(invocation, request_id)

        try:
            if tool.fallback is not None:
                credential = await self.resolver.resolve_with_fallback(
                    tool.requirement, tool.fallback
                )
            else:
                credential = await self.resolver.resolve(tool.requirement)
            result = await self._handlers[tool.name](credential, args)
        except Exception as e:
            message = _failure_message(e)
            logger.error(
                "Tool execution failed",
                exc_info=not isinstance(e, BloggerMCPError),
                extra={
                    "log_data": {
                        "request_id": request_id,
                        "tool": tool.name,
                        "requirement": tool.requirement.value,
                        "error": message,
                    }
                },
            )
            raise MCPError(code=INTERNAL_ERROR, message=f"Tool execution failed: {message}") from e

        logger.info(
            "Tool executed",
            extra={
                "log_data": {
                    "request_id": request_id,
                    "tool": tool.name,
                    "credential": credential.kind,
                }
            },
        )
        return result

    def _checked(
        self, invocation: ToolInvocation, request_id: str
    ) -> tuple[ToolDefinition, dict[str, Any]]:
        try:
            return self._validate(invocation)
        except InvalidInvocation as e:
            logger.warning(
                "Tool invocation rejected",
                extra={
                    "log_data": {
                        "request_id": request_id,
                        "tool": invocation.name,
                        "reason": e.message,
                    }
                },
            )
            raise MCPError(code=e.code, message=e.message) from e

    def _validate(self, invocation: ToolInvocation) -> tuple[ToolDefinition, dict[str, Any]]:
        if invocation.arguments is None:
            raise InvalidInvocation("Arguments are required", code=INVALID_PARAMS)

        tool = TOOLS_BY_NAME.get(invocation.name)
        if tool is None:
            raise InvalidInvocation(f"Unknown tool: {invocation.name}", code=METHOD_NOT_FOUND)

        args = dict(invocation.arguments)
        error = best_match(self._validators[tool.name].iter_errors(args))
        if error is not None:
            location = ".".join(str(part) for part in error.absolute_path)
            where = f" ({location})" if location else ""
            raise InvalidInvocation(
                f"Invalid arguments for {tool.name}{where}: {error.message}",
                code=INVALID_PARAMS,
            )

        for key, prop in tool.input_schema.get("properties", {}).items():
            if "default" in prop:
                args.setdefault(key, prop["default"])
        return tool, args

    # --- Handlers ---

    async def _get_blog_info(self, credential: Credential, args: dict[str, Any]) -> str:
        blog_url: str = args["blogUrl"]
        if "." in blog_url:
            url = blog_url if blog_url.startswith("http") else f"https://{blog_url}"
            blog = await self.blogger.get_blog_by_url(credential, url)
        else:
            blog = await self.blogger.get_blog(credential, blog_url)
        return formatting.format_blog(blog)

    async def _list_posts(self, credential: Credential, args: dict[str, Any]) -> str:
        response = await self.blogger.list_posts(
            credential, args["blogId"], max_results=int(args["maxResults"])
        )
        return formatting.format_post_list(response)

    async def _get_post(self, credential: Credential, args: dict[str, Any]) -> str:
        post = await self.blogger.get_post(credential, args["blogId"], args["postId"])
        return formatting.format_post(post)

    async def _search_posts(self, credential: Credential, args: dict[str, Any]) -> str:
        response = await self.blogger.search_posts(credential, args["blogId"], args["query"])
        return formatting.format_post_list(response, query=args["query"])

    async def _create_post(self, credential: Credential, args: dict[str, Any]) -> str:
        post = await self.blogger.create_post(
            credential,
            args["blogId"],
            title=args["title"],
            content=args["content"],
            labels=args.get("labels"),
            is_draft=bool(args["isDraft"]),
        )
        return formatting.format_saved_post(post, "created")

    async def _update_post(self, credential: Credential, args: dict[str, Any]) -> str:
        post = await self.blogger.update_post(
            credential,
            args["blogId"],
            args["postId"],
            title=args.get("title"),
            content=args.get("content"),
            labels=args.get("labels"),
        )
        return formatting.format_saved_post(post, "updated")

    async def _delete_post(self, credential: Credential, args: dict[str, Any]) -> str:
        await self.blogger.delete_post(credential, args["blogId"], args["postId"])
        return formatting.format_deleted(args["blogId"], args["postId"])


def _failure_message(error: Exception) -> str:
    message = getattr(error, "message", None) or str(error) or type(error).__name__
    detail = getattr(error, "detail", None)
    if detail:
        return f"{message} - {detail}"
    return message
