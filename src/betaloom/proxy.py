"""HTTP proxy logic for forwarding requests to Anthropic."""

import logging
from collections.abc import AsyncIterator

import httpx

from .config import Settings
from .errors import UpstreamError

logger = logging.getLogger(__name__)

# Persistent client for connection pooling
_client: httpx.AsyncClient | None = None


def get_client(settings: Settings) -> httpx.AsyncClient:
    """Get or create the HTTP client."""
    global _client
    if _client is None:
        _client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.timeout, connect=settings.connect_timeout),
        )
    return _client


async def close():
    """Close the HTTP client."""
    global _client
    if _client:
        await _client.aclose()
        _client = None


def build_url(settings: Settings, path: str, query: str = "", beta: bool = True) -> httpx.URL:
    """Upstream URL for a request path, with beta=true forced when asked.

    path and query are the raw, still percent-encoded request target.
    Any existing beta values are replaced. Without beta the query goes
    through exactly as received.
    """
    if beta:
        query = str(httpx.QueryParams(query).set("beta", "true"))
    url = settings.upstream_url.rstrip("/") + path
    return httpx.URL(f"{url}?{query}" if query else url)


async def open_stream(
    settings: Settings,
    method: str,
    url: httpx.URL,
    headers: dict[str, str],
    content: bytes | None,
) -> httpx.Response:
    """Send a request upstream and return as soon as the headers arrive.

    The body is left unread; the caller must iterate it and then close it.
    Raises UpstreamError when the upstream can't be reached at all.
    """
    client = get_client(settings)
    request = client.build_request(method, url, headers=headers, content=content)
    try:
        return await client.send(request, stream=True)
    except httpx.RequestError as e:
        logger.error(f"Upstream request failed: {method} {url.path}: {e!r}")
        raise UpstreamError(str(e) or type(e).__name__) from e


async def stream_response(response: httpx.Response) -> AsyncIterator[bytes]:
    """Yield chunks from the upstream response, closing it when done.

    Also runs on client disconnect, when the generator is closed early.
    """
    try:
        async for chunk in response.aiter_bytes():
            yield chunk
    finally:
        await response.aclose()
