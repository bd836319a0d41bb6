from funkovault.models.failure import (
    FailureDetail,
    FailureKind,
    KnownError,
    OperationResult,
    ProtocolError,
    RequestTimeoutError,
)
from funkovault.models.item import Item, ItemGenre, ItemType, ItemUpdate
from funkovault.models.protocol import Request, RequestKind, Response, ResponseKind

__all__ = [
    "FailureDetail",
    "FailureKind",
    "Item",
    "ItemGenre",
    "ItemType",
    "ItemUpdate",
    "KnownError",
    "OperationResult",
    "ProtocolError",
    "Request",
    "RequestKind",
    "RequestTimeoutError",
    "Response",
    "ResponseKind",
]
