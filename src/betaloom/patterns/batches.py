"""Pattern for POST /v1/messages/batches."""

from typing import Any

from ..config import Settings
from ..tools import transform_batch


class BatchesPattern:
    """Apply the messages rewrite to every request in a batch, independently."""

    beta = True
    parses_body = True

    def __init__(self, settings: Settings):
        self.settings = settings

    async def request(
        self,
        headers: dict[str, str],
        body: Any,
    ) -> tuple[dict[str, str], Any]:
        return headers, transform_batch(body, self.settings)
