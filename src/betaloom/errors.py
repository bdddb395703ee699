"""Errors the proxy raises itself, rendered as {"error": message}."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class ProxyHTTPException(Exception):
    """
    Error raised by the proxy itself, as opposed to an upstream error response.
    """

    # Rendered as {"error": message} so clients see the same shape for every
    # failure the proxy produces on its own.

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.headers = headers or {}

    @classmethod
    def register(cls, app: FastAPI) -> None:
        """Register exception handler with FastAPI app."""
        app.add_exception_handler(cls, cls._handler)

    @staticmethod
    async def _handler(request: Request, exc: "ProxyHTTPException") -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            headers=exc.headers,
            content={"error": exc.message},
        )


class UpstreamError(ProxyHTTPException):
    """The upstream could not be reached (connect, DNS, transport timeout)."""

    def __init__(self, message: str):
        super().__init__(message, status_code=500)
