"""Header handling for both directions of the relay."""

from collections.abc import Iterable, Mapping

BETA_HEADER = "anthropic-beta"

# Turns on tool search, deferred loading, and MCP toolsets upstream
BETA_FLAGS = "advanced-tool-use-2025-11-20,mcp-client-2025-11-20"

# Hop-by-hop headers that only describe a single connection
HOP_BY_HOP = frozenset(
    [
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
    ]
)

# httpx recomputes these for the outgoing request
REQUEST_STRIP = HOP_BY_HOP | {"host", "content-length"}

# httpx has already decoded and de-chunked the upstream body
RESPONSE_STRIP = HOP_BY_HOP | {"content-encoding", "content-length"}


def collapse_headers(pairs: Iterable[tuple[str, str]]) -> dict[str, str]:
    """Fold raw header pairs into one mapping, comma-joining repeats."""
    headers: dict[str, str] = {}
    for name, value in pairs:
        key = name.lower()
        if key in headers:
            headers[key] = f"{headers[key]}, {value}"
        else:
            headers[key] = value
    return headers


def merge_beta_flags(existing: str, flags: str = BETA_FLAGS) -> str:
    """Append flags to an anthropic-beta value unless already there.

    This is a plain substring check on the whole flag string. A value that
    carries only some of the flags gets all of them appended again.
    """
    if flags in existing:
        return existing
    return f"{existing},{flags}" if existing else flags


def modify_headers(headers: Mapping[str, str], flags: str = BETA_FLAGS) -> dict[str, str]:
    """Build the header set to send upstream from the inbound headers."""
    result = {k.lower(): v for k, v in headers.items()}
    result[BETA_HEADER] = merge_beta_flags(result.get(BETA_HEADER, ""), flags)
    return {k: v for k, v in result.items() if k not in REQUEST_STRIP}


def filter_response_headers(headers: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    """Drop framing headers that don't apply after httpx decodes the body.

    Works on pairs so repeated headers like set-cookie survive.
    """
    return [(k, v) for k, v in headers if k.lower() not in RESPONSE_STRIP]
