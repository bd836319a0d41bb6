"""
Failure classification and the typed result contract.

Every operation that can fail for an expected reason (not found, duplicate
id, storage fault) returns an OperationResult instead of raising or
returning a bare boolean. Exceptions are reserved for wire-level problems
that abort a request before dispatch (KnownError / ProtocolError).

Failure kinds:
- Input: INVALID_REQUEST, MISSING_REQUIRED, INVALID_ITEM
- Lookup: NOT_FOUND, EMPTY_RESULT
- Constraint: DUPLICATE_ID
- Environment: STORAGE_FAILURE, TIMEOUT
- Catch-all: UNKNOWN
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from funkovault.models.protocol import Response


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Input validation failures
    INVALID_REQUEST = "invalid_request"
    MISSING_REQUIRED = "missing_required"
    INVALID_ITEM = "invalid_item"

    # Lookup failures
    NOT_FOUND = "not_found"
    EMPTY_RESULT = "empty_result"

    # Constraint violations
    DUPLICATE_ID = "duplicate_id"

    # Environment failures
    STORAGE_FAILURE = "storage_failure"
    TIMEOUT = "timeout"

    UNKNOWN = "unknown"


T = TypeVar("T")


@dataclass(frozen=True)
class FailureDetail:
    """Detailed information about a failure."""

    kind: FailureKind
    message: str
    detail: str | None = None


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """
    Outcome of a store or user-context operation.

    Exactly one of `value` (on success) or `failure` (otherwise) is
    meaningful. Callers branch on `ok`.
    """

    ok: bool
    value: T | None = None
    failure: FailureDetail | None = None

    @classmethod
    def success(cls, value: T) -> "OperationResult[T]":
        """Create a successful result."""
        return cls(ok=True, value=value)

    @classmethod
    def failed(
        cls,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
    ) -> "OperationResult[T]":
        """Create a failed result."""
        return cls(ok=False, failure=FailureDetail(kind=kind, message=message, detail=detail))

    @property
    def message(self) -> str:
        return self.failure.message if self.failure else ""

    @property
    def kind(self) -> FailureKind | None:
        return self.failure.kind if self.failure else None


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Raised where a request cannot be processed at all; converted into an
    `error` response at the connection boundary.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        super().__init__(message)

    def to_response(self) -> "Response":
        """Convert to an error Response."""
        from funkovault.models.protocol import Response

        return Response.error(self.message)


class ProtocolError(KnownError):
    """Raised when inbound bytes cannot be turned into a valid request."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(kind=FailureKind.INVALID_REQUEST, message=message, detail=detail)


class RequestTimeoutError(KnownError):
    """Raised when a client does not finish sending its request in time."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(
            kind=FailureKind.TIMEOUT,
            message="Request timed out",
            detail=f"No complete request received within {timeout:g} seconds",
        )
