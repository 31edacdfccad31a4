"""
Exception hierarchy for the Blogger MCP server.

Every failure the server knows how to describe is a BloggerMCPError. The
dispatch layer (dispatch.py) is the only place these are turned into MCP
protocol errors, so the rest of the code raises plain Python exceptions and
never needs to know about JSON-RPC error codes.
"""

from mcp.types import INVALID_PARAMS


class BloggerMCPError(Exception):
    """
    Base exception for all Blogger MCP errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AuthUnavailable(BloggerMCPError):
    """No applicable credential exists or can be produced for an operation."""


class AuthFlowFailed(BloggerMCPError):
    """The OAuth consent was denied, the code exchange failed, or the flow timed out."""


class RemoteOperationFailed(BloggerMCPError):
    """
    The Blogger API rejected or errored on a call.

    Attributes:
        status_code: HTTP status returned by the API (None for transport errors)
        detail: The error message fragment from the API's JSON error body, if any
    """

    def __init__(
        self, message: str, status_code: int | None = None, detail: str | None = None
    ):
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class InvalidInvocation(BloggerMCPError):
    """
    A tool invocation was malformed (missing/invalid arguments, unknown tool).

    Attributes:
        code: The JSON-RPC error code to report (INVALID_PARAMS or METHOD_NOT_FOUND)
    """

    def __init__(self, message: str, code: int = INVALID_PARAMS):
        self.code = code
        super().__init__(message)
