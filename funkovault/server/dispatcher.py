"""
Request dispatcher.

Routes one decoded Request to a fresh UserContext and turns the typed
operation result into a Response. Every request for a user runs under that
user's lock, so load -> mutate -> save is never interleaved with another
request for the same user.

Mutations write only the affected item file: add and update rewrite the
item's own file, remove deletes it.
"""

import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from funkovault.models.failure import FailureKind, KnownError
from funkovault.models.item import Item, ItemUpdate
from funkovault.models.protocol import Request, RequestKind, Response
from funkovault.server.codec import describe_validation_error
from funkovault.services.user_context import UserContext
from funkovault.services.user_locks import UserLockRegistry

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

Handler = Callable[[UserContext, Request], Awaitable[Response]]


def _require_id(request: Request) -> str:
    if request.id is None:
        raise KnownError(FailureKind.MISSING_REQUIRED, "Missing required field: id")
    return request.id


def _require_item(request: Request) -> dict[str, Any]:
    if request.item is None:
        raise KnownError(FailureKind.MISSING_REQUIRED, "Missing required field: item")
    return request.item


def _parse_item(model: type[ModelT], payload: dict[str, Any]) -> ModelT:
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise KnownError(
            FailureKind.INVALID_ITEM,
            f"Invalid item: {describe_validation_error(e)}",
            detail=str(e),
        ) from e


class RequestDispatcher:
    """Executes requests against the per-user collections under `data_dir`."""

    def __init__(self, data_dir: Path, locks: UserLockRegistry | None = None):
        self.data_dir = Path(data_dir)
        self.locks = locks if locks is not None else UserLockRegistry()
        self._handlers: dict[RequestKind, Handler] = {
            RequestKind.ADD: self._handle_add,
            RequestKind.UPDATE: self._handle_update,
            RequestKind.REMOVE: self._handle_remove,
            RequestKind.SHOW: self._handle_show,
            RequestKind.LIST: self._handle_list,
        }

    async def dispatch(self, request: Request) -> Response:
        """
        Execute a request and build its response.

        Never raises: known failures become error responses and anything
        unexpected is logged and reported as an internal error.
        """
        logger.info("Handling '%s' request for %s", request.type.value, request.user)
        handler = self._handlers[request.type]
        try:
            async with self.locks.hold(request.user):
                user = UserContext(request.user, self.data_dir)
                return await handler(user, request)
        except KnownError as e:
            logger.info("Rejected '%s' request for %s: %s", request.type.value, request.user, e)
            return e.to_response()
        except Exception:
            logger.exception(
                "Unexpected error handling '%s' request for %s", request.type.value, request.user
            )
            return Response.error("Internal server error")

    async def _load(self, user: UserContext, kind: RequestKind) -> Response | None:
        """Load the user's collection; returns a failure response if that fails."""
        result = await user.load_collection()
        if not result.ok:
            return Response.refused(kind, result.message)
        return None

    async def _handle_add(self, user: UserContext, request: Request) -> Response:
        payload = {key: value for key, value in _require_item(request).items() if key != "id"}
        item = _parse_item(Item, payload)

        failure = await self._load(user, RequestKind.ADD)
        if failure is not None:
            return failure

        added = user.add_item(item)
        if not added.ok or added.value is None:
            return Response.refused(RequestKind.ADD, added.message)

        saved = await user.persist(added.value)
        if not saved.ok:
            return Response.refused(RequestKind.ADD, saved.message)

        new_item = added.value
        return Response.ok(
            RequestKind.ADD,
            f"Item {new_item.name} added with ID {new_item.id}",
            item=new_item,
        )

    async def _handle_update(self, user: UserContext, request: Request) -> Response:
        item_id = _require_id(request)
        changes = _parse_item(ItemUpdate, _require_item(request))

        failure = await self._load(user, RequestKind.UPDATE)
        if failure is not None:
            return failure

        updated = user.update_item(item_id, changes)
        if not updated.ok or updated.value is None:
            return Response.refused(RequestKind.UPDATE, updated.message)

        saved = await user.persist(updated.value)
        if not saved.ok:
            return Response.refused(RequestKind.UPDATE, saved.message)

        return Response.ok(
            RequestKind.UPDATE,
            f"Item with ID {item_id} updated",
            item=updated.value,
        )

    async def _handle_remove(self, user: UserContext, request: Request) -> Response:
        item_id = _require_id(request)

        failure = await self._load(user, RequestKind.REMOVE)
        if failure is not None:
            return failure

        removed = await user.remove_item(item_id)
        if not removed.ok:
            return Response.refused(RequestKind.REMOVE, removed.message)
        return Response.ok(RequestKind.REMOVE, f"Item with ID {item_id} removed")

    async def _handle_show(self, user: UserContext, request: Request) -> Response:
        item_id = _require_id(request)

        failure = await self._load(user, RequestKind.SHOW)
        if failure is not None:
            return failure

        item = user.get_item(item_id)
        if item is None:
            return Response.refused(RequestKind.SHOW, f"Item with ID {item_id} not found")
        return Response.ok(RequestKind.SHOW, f"Item with ID {item_id} found", item=item)

    async def _handle_list(self, user: UserContext, request: Request) -> Response:
        failure = await self._load(user, RequestKind.LIST)
        if failure is not None:
            return failure

        items = user.list_items()
        if not items:
            return Response.refused(RequestKind.LIST, "No items found")
        return Response.ok(RequestKind.LIST, f"Found {len(items)} item(s)", items=items)
