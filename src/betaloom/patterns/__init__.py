from .passthrough import PassthroughPattern
from .messages import MessagesPattern, CountTokensPattern
from .batches import BatchesPattern

__all__ = [
    "PassthroughPattern",
    "MessagesPattern",
    "CountTokensPattern",
    "BatchesPattern",
]
