"""
Request and response envelopes exchanged over the wire.

A connection carries exactly one Request followed by exactly one Response.
"""

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator

from funkovault.config import RESERVED_USERNAMES, USERNAME_PATTERN
from funkovault.models.item import Item


class RequestKind(str, Enum):
    """Operations a client can request."""

    ADD = "add"
    UPDATE = "update"
    REMOVE = "remove"
    SHOW = "show"
    LIST = "list"


class ResponseKind(str, Enum):
    """Response types: the request kind echoed back, or error."""

    ADD = "add"
    UPDATE = "update"
    REMOVE = "remove"
    SHOW = "show"
    LIST = "list"
    ERROR = "error"


class Request(BaseModel):
    """An inbound request."""

    type: RequestKind
    user: str = Field(..., pattern=USERNAME_PATTERN)
    id: str | None = None
    item: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("item", "funko"),
        description="Item fields: complete for add, partial for update",
    )

    @field_validator("user")
    @classmethod
    def _validate_user(cls, value: str) -> str:
        if value in RESERVED_USERNAMES:
            raise ValueError(f"'{value}' is not a valid username")
        return value

    @field_validator("id", mode="before")
    @classmethod
    def _validate_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class Response(BaseModel):
    """
    An outbound response.

    `success` is False both for refused operations (not found, duplicate)
    and for errors; `type` tells them apart.
    """

    type: ResponseKind
    success: bool
    message: str
    item: Item | None = None
    items: list[Item] | None = None

    @classmethod
    def ok(
        cls,
        kind: RequestKind,
        message: str,
        item: Item | None = None,
        items: list[Item] | None = None,
    ) -> "Response":
        """Create a success response for a request kind."""
        return cls(
            type=ResponseKind(kind.value),
            success=True,
            message=message,
            item=item,
            items=items,
        )

    @classmethod
    def refused(cls, kind: RequestKind, message: str) -> "Response":
        """Create a failure response for a request kind (not found, duplicate, ...)."""
        return cls(type=ResponseKind(kind.value), success=False, message=message)

    @classmethod
    def error(cls, message: str) -> "Response":
        """Create an error response (malformed or unprocessable request)."""
        return cls(type=ResponseKind.ERROR, success=False, message=message)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
