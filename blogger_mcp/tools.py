"""
Tool definitions and per-tool authorization requirements.

This module is the central registry of what the server exposes: each tool's
name, description, JSON Schema for its arguments, and the credential it needs.

    TOOL_REQUIREMENT_MAP = {
        "tool_name": AuthRequirement,
    }

The dispatcher (dispatch.py) validates arguments against these schemas and
asks the credential resolver for the declared requirement; server.py
registers one MCP tool per definition, in this order.

Requirement convention:
- read:          public content; the static API key is enough (and preferred)
- write:         modifies the blog; OAuth only
- private_read:  may touch unpublished content; tries OAuth, falls back to read
"""

from blogger_mcp.models import AuthRequirement, ToolDefinition

_BLOG_ID = {"type": "string", "description": "Blog ID"}
_POST_ID = {"type": "string", "description": "Post ID"}
_LABELS = {
    "type": "array",
    "items": {"type": "string"},
    "description": "Labels (tags) for the post",
}

TOOL_DEFINITIONS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="get_blog_info",
        description="Get information about a blog by URL or ID",
        input_schema={
            "type": "object",
            "properties": {
                "blogUrl": {
                    "type": "string",
                    "description": "Blog URL (e.g., myblog.blogspot.com) or Blog ID",
                },
            },
            "required": ["blogUrl"],
        },
        requirement=AuthRequirement.READ,
    ),
    ToolDefinition(
        name="list_posts",
        description="List posts from a blog",
        input_schema={
            "type": "object",
            "properties": {
                "blogId": _BLOG_ID,
                "maxResults": {
                    "type": "integer",
                    "description": "Maximum number of posts to return (default: 10)",
                    "default": 10,
                    "minimum": 1,
                },
            },
            "required": ["blogId"],
        },
        requirement=AuthRequirement.READ,
    ),
    ToolDefinition(
        name="get_post",
        description=(
            "Get a specific post by ID. Drafts are visible when OAuth is configured; "
            "otherwise only published posts can be read."
        ),
        input_schema={
            "type": "object",
            "properties": {"blogId": _BLOG_ID, "postId": _POST_ID},
            "required": ["blogId", "postId"],
        },
        requirement=AuthRequirement.PRIVATE_READ,
        fallback=AuthRequirement.READ,
    ),
    ToolDefinition(
        name="search_posts",
        description="Search for posts in a blog",
        input_schema={
            "type": "object",
            "properties": {
                "blogId": _BLOG_ID,
                "query": {"type": "string", "description": "Search query"},
            },
            "required": ["blogId", "query"],
        },
        requirement=AuthRequirement.READ,
    ),
    ToolDefinition(
        name="create_post",
        description="Create a new post on a blog (requires OAuth)",
        input_schema={
            "type": "object",
            "properties": {
                "blogId": _BLOG_ID,
                "title": {"type": "string", "description": "Post title"},
                "content": {"type": "string", "description": "Post content (HTML)"},
                "labels": _LABELS,
                "isDraft": {
                    "type": "boolean",
                    "description": "Save as a draft instead of publishing (default: false)",
                    "default": False,
                },
            },
            "required": ["blogId", "title", "content"],
        },
        requirement=AuthRequirement.WRITE,
    ),
    ToolDefinition(
        name="update_post",
        description="Update the title, content or labels of an existing post (requires OAuth)",
        input_schema={
            "type": "object",
            "properties": {
                "blogId": _BLOG_ID,
                "postId": _POST_ID,
                "title": {"type": "string", "description": "New post title"},
                "content": {"type": "string", "description": "New post content (HTML)"},
                "labels": _LABELS,
            },
            "required": ["blogId", "postId"],
            "anyOf": [
                {"required": ["title"]},
                {"required": ["content"]},
                {"required": ["labels"]},
            ],
        },
        requirement=AuthRequirement.WRITE,
    ),
    ToolDefinition(
        name="delete_post",
        description="Delete a post from a blog (requires OAuth)",
        input_schema={
            "type": "object",
            "properties": {"blogId": _BLOG_ID, "postId": _POST_ID},
            "required": ["blogId", "postId"],
        },
        requirement=AuthRequirement.WRITE,
    ),
)

TOOLS_BY_NAME: dict[str, ToolDefinition] = {tool.name: tool for tool in TOOL_DEFINITIONS}

TOOL_REQUIREMENT_MAP: dict[str, AuthRequirement] = {
    tool.name: tool.requirement for tool in TOOL_DEFINITIONS
}
