"""BetaLoom - FastAPI application.

Every request lands in one handler. The route's pattern rewrites the body,
the headers get the beta flags, and the upstream response is streamed
straight back.
"""

import json
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import StreamingResponse
import logfire
from starlette.background import BackgroundTask

from .config import DEFAULT_SETTINGS, Settings
from .errors import ProxyHTTPException
from .headers import collapse_headers, filter_response_headers, modify_headers
from .router import build_patterns, get_pattern_for_request
from . import proxy

# Nothing is sent anywhere unless LOGFIRE_TOKEN is set; spans still hit the console
logfire.configure(service_name="betaloom", send_to_logfire="if-token-present", scrubbing=False)
logfire.instrument_httpx()

PROXY_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]

# Requests forwarded without a body even if the client sent one
BODYLESS_METHODS = ("GET", "HEAD")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    settings: Settings = app.state.settings
    logfire.info(
        "BetaLoom is starting up, forwarding to {upstream}",
        upstream=settings.upstream_url,
        code_execution=settings.code_execution,
    )
    yield
    logfire.info("BetaLoom is shutting down...")
    await proxy.close()


async def read_body(request: Request, limit: int) -> bytes:
    """Collect the request body, refusing anything over limit bytes."""
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise ProxyHTTPException("request entity too large", status_code=413)

    chunks = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            raise ProxyHTTPException("request entity too large", status_code=413)
        chunks.append(chunk)
    return b"".join(chunks)


def raw_path(request: Request) -> str:
    """The request path as sent, so %2F stays inside its segment.

    The decoded request.url.path is only used for routing.
    """
    raw = request.scope.get("raw_path")
    if not raw:
        return request.url.path
    return raw.split(b"?", 1)[0].decode("latin-1")


def raw_query(request: Request) -> str:
    return request.scope.get("query_string", b"").decode("latin-1")


async def handle_request(request: Request, path: str):
    """Route requests through the appropriate pattern and relay upstream."""
    settings: Settings = request.app.state.settings
    pattern = get_pattern_for_request(request.app.state.patterns, request.method, request.url.path)
    pattern_name = type(pattern).__name__

    body_bytes = await read_body(request, settings.max_body_size)
    headers = modify_headers(collapse_headers(request.headers.items()))

    content = None if request.method in BODYLESS_METHODS else body_bytes
    model = None

    if pattern.parses_body and body_bytes:
        try:
            body = json.loads(body_bytes)
        except json.JSONDecodeError:
            logfire.warning("Failed to parse request body as JSON, forwarding as-is", path=request.url.path)
        else:
            headers, body = await pattern.request(headers, body)
            content = json.dumps(body).encode()
            if isinstance(body, dict):
                model = body.get("model")

    url = proxy.build_url(settings, raw_path(request), raw_query(request), beta=pattern.beta)

    with logfire.span(
        "betaloom: {method} {path}",
        method=request.method,
        path=request.url.path,
        pattern=pattern_name,
        model=model or "unknown",
    ) as span:
        try:
            upstream = await proxy.open_stream(settings, request.method, url, headers, content)
        except ProxyHTTPException as e:
            logfire.error("Upstream unreachable: {error}", error=e.message)
            raise
        span.set_attribute("http.status_code", upstream.status_code)

    response = StreamingResponse(
        proxy.stream_response(upstream),
        status_code=upstream.status_code,
        background=BackgroundTask(upstream.aclose),
    )
    for name, value in filter_response_headers(upstream.headers.multi_items()):
        response.headers.append(name, value)
    return response


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the proxy app. Every path is proxied, so the docs routes are off."""
    settings = settings or DEFAULT_SETTINGS

    app = FastAPI(
        title="BetaLoom",
        description="Anthropic API relay with beta tool use switched on.",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.state.patterns = build_patterns(settings)

    ProxyHTTPException.register(app)
    app.add_api_route("/{path:path}", handle_request, methods=PROXY_METHODS)

    # Instrument FastAPI
    logfire.instrument_fastapi(app)
    return app


app = create_app()
