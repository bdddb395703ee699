"""The Passthrough Pattern - transparent pass-through, no transformation."""

from typing import Any


class PassthroughPattern:
    """Transparent pass-through for every route we don't rewrite.

    The body is never parsed and no beta query flag is added. Headers still
    get the beta flags merged in by the relay, like every other route.
    """

    beta = False
    parses_body = False

    async def request(
        self,
        headers: dict[str, str],
        body: Any,
    ) -> tuple[dict[str, str], Any]:
        """Pass through unchanged."""
        return headers, body
