"""Plain-text renderings of Blogger API responses for MCP tool results."""

import json
from typing import Any


def format_blog(blog: dict[str, Any]) -> str:
    summary = {
        "id": blog.get("id"),
        "name": blog.get("name"),
        "description": blog.get("description"),
        "url": blog.get("url"),
        "published": blog.get("published"),
        "updated": blog.get("updated"),
        "posts": {"totalItems": (blog.get("posts") or {}).get("totalItems", 0)},
        "pages": {"totalItems": (blog.get("pages") or {}).get("totalItems", 0)},
    }
    return json.dumps(summary, indent=2)


def _post_summary(post: dict[str, Any]) -> str:
    return (
        f"**{post.get('title')}**\n"
        f"ID: {post.get('id')}\n"
        f"Published: {post.get('published')}\n"
        f"URL: {post.get('url')}\n"
        "---"
    )


def format_post_list(response: dict[str, Any], query: str | None = None) -> str:
    posts = response.get("items") or []
    if query is None:
        header = f"Found {len(posts)} posts:"
    else:
        header = f'Found {len(posts)} posts matching "{query}":'
    return header + "\n\n" + "\n\n".join(_post_summary(post) for post in posts)


def format_post(post: dict[str, Any]) -> str:
    text = f"**{post.get('title')}**\n\n"
    if post.get("status"):
        text += f"Status: {post['status']}\n"
    return text + (
        f"Published: {post.get('published')}\n"
        f"Updated: {post.get('updated')}\n"
        f"URL: {post.get('url')}\n\n"
        f"**Content:**\n{post.get('content')}"
    )


def format_saved_post(post: dict[str, Any], action: str) -> str:
    lines = [
        f"Post {action} successfully.",
        f"Title: {post.get('title')}",
        f"ID: {post.get('id')}",
    ]
    if post.get("status"):
        lines.append(f"Status: {post['status']}")
    if post.get("url"):
        lines.append(f"URL: {post['url']}")
    if post.get("labels"):
        lines.append(f"Labels: {', '.join(post['labels'])}")
    return "\n".join(lines)


def format_deleted(blog_id: str, post_id: str) -> str:
    return f"Post {post_id} deleted from blog {blog_id}."
