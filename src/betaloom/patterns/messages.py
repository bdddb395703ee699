"""Patterns for POST /v1/messages and POST /v1/messages/count_tokens."""

from typing import Any

from ..config import Settings
from ..tools import transform_body


class MessagesPattern:
    """Full body rewrite: normalized inputs, annotated tools, beta tools injected."""

    beta = True
    parses_body = True
    add_beta_tools = True

    def __init__(self, settings: Settings):
        self.settings = settings

    async def request(
        self,
        headers: dict[str, str],
        body: Any,
    ) -> tuple[dict[str, str], Any]:
        return headers, transform_body(body, self.settings, add_beta_tools=self.add_beta_tools)


class CountTokensPattern(MessagesPattern):
    """Same rewrite as MessagesPattern, minus the injected beta tools.

    Counting tokens for tools the client never asked for would skew the
    number it gets back.
    """

    add_beta_tools = False
