"""
Response helpers for the search endpoints.

Errors go out as text/plain bodies holding only the client-facing message;
results go out as the stored JSON bytes untouched.
"""

from quart import Response

INTERNAL_SERVER_ERROR = "Internal Server Error"


class APIResponse:
    """Standardized API responses."""

    @staticmethod
    def json_bytes(payload: bytes, status: int = 200) -> Response:
        """
        Wrap already-serialized JSON.

        Example:
            >>> return APIResponse.json_bytes(results.to_json_bytes())
        """
        return Response(payload, status=status, content_type="application/json")

    @staticmethod
    def error(message: str, status: int = 400) -> Response:
        """
        Create a plain-text error response.

        Example:
            >>> return APIResponse.error("Org header is required", 400)
        """
        return Response(message, status=status, content_type="text/plain; charset=utf-8")

    @staticmethod
    def internal_error() -> Response:
        """500 response that leaks no detail about the failure."""
        return APIResponse.error(INTERNAL_SERVER_ERROR, 500)

    @staticmethod
    def empty(status: int = 200) -> Response:
        return Response("", status=status)
