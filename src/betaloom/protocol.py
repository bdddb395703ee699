"""The Pattern protocol - the contract every route's transformation fulfils."""

from typing import Any, Protocol


class Pattern(Protocol):
    """A request transformation for one family of routes.

    The relay itself is just machinery: it parses the body, hands it to the
    route's pattern, and forwards whatever comes back. Patterns decide what
    changes on the way upstream.
    """

    # Force beta=true onto the forwarded query string
    beta: bool

    # Whether the relay should parse the body as JSON and call request()
    parses_body: bool

    async def request(
        self,
        headers: dict[str, str],
        body: Any,
    ) -> tuple[dict[str, str], Any]:
        """Transform an outgoing request before it reaches Anthropic.

        Args:
            headers: Upstream headers, already filtered
            body: Parsed JSON body

        Returns:
            Tuple of (headers, body) after transformation. The inputs
            are not modified.
        """
        ...
