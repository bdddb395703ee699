"""Pattern routing - determines which pattern handles each request."""

import logging

from .config import Settings
from .protocol import Pattern
from .patterns import BatchesPattern, CountTokensPattern, MessagesPattern, PassthroughPattern

logger = logging.getLogger(__name__)

# Pattern used for every (method, path) not listed in ROUTES
DEFAULT_PATTERN = "passthrough"

ROUTES: dict[tuple[str, str], str] = {
    ("POST", "/v1/messages"): "messages",
    ("POST", "/v1/messages/count_tokens"): "count_tokens",
    ("POST", "/v1/messages/batches"): "batches",
}


def build_patterns(settings: Settings) -> dict[str, Pattern]:
    """Create the pattern registry for one app. Call at startup."""
    patterns: dict[str, Pattern] = {
        "passthrough": PassthroughPattern(),
        "messages": MessagesPattern(settings),
        "count_tokens": CountTokensPattern(settings),
        "batches": BatchesPattern(settings),
    }
    logger.info(f"Pattern router initialized with {len(patterns)} patterns")
    return patterns


def get_pattern_for_request(patterns: dict[str, Pattern], method: str, path: str) -> Pattern:
    """Pick the pattern for a request by exact method and path."""
    name = ROUTES.get((method.upper(), path.rstrip("/") or "/"), DEFAULT_PATTERN)
    logger.debug(f"Pattern for {method} {path}: {name}")
    return patterns[name]
