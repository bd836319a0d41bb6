"""Tests for request routing."""

import asyncio
import json
from pathlib import Path

import pytest

from funkovault.models.protocol import Request, RequestKind, ResponseKind
from funkovault.server.dispatcher import RequestDispatcher
from funkovault.services.collection_store import CollectionStore


@pytest.fixture
def dispatcher(data_dir: Path) -> RequestDispatcher:
    return RequestDispatcher(data_dir)


def make_request(kind: str, **fields) -> Request:
    return Request.model_validate({"type": kind, "user": "alice", **fields})


class TestAdd:
    async def test_add_assigns_id_and_writes_file(
        self, dispatcher: RequestDispatcher, data_dir: Path, item_fields
    ) -> None:
        response = await dispatcher.dispatch(make_request("add", item=item_fields))

        assert response.type is ResponseKind.ADD
        assert response.success is True
        assert response.item.id == "1"
        assert "ID 1" in response.message
        saved = json.loads((data_dir / "alice" / "1.json").read_text(encoding="utf-8"))
        assert saved["name"] == "Groot"
        assert saved["id"] == "1"

    async def test_add_ignores_client_supplied_id(
        self, dispatcher: RequestDispatcher, item_fields
    ) -> None:
        response = await dispatcher.dispatch(make_request("add", item={**item_fields, "id": "99"}))
        assert response.item.id == "1"

    async def test_sequential_adds(self, dispatcher: RequestDispatcher, item_fields) -> None:
        ids = []
        for _ in range(3):
            response = await dispatcher.dispatch(make_request("add", item=item_fields))
            ids.append(response.item.id)
        assert ids == ["1", "2", "3"]

    async def test_add_without_item(self, dispatcher: RequestDispatcher, data_dir: Path) -> None:
        response = await dispatcher.dispatch(make_request("add"))

        assert response.type is ResponseKind.ERROR
        assert response.message == "Missing required field: item"
        assert not (data_dir / "alice").exists()

    async def test_add_invalid_item(self, dispatcher: RequestDispatcher, item_fields) -> None:
        response = await dispatcher.dispatch(
            make_request("add", item={**item_fields, "market_value": -3})
        )
        assert response.type is ResponseKind.ERROR
        assert response.message.startswith("Invalid item: market_value")

    async def test_concurrent_adds_get_distinct_ids(
        self, dispatcher: RequestDispatcher, data_dir: Path, item_fields
    ) -> None:
        responses = await asyncio.gather(
            *(dispatcher.dispatch(make_request("add", item=item_fields)) for _ in range(5))
        )

        assert all(r.success for r in responses)
        assert sorted(r.item.id for r in responses) == ["1", "2", "3", "4", "5"]
        store = CollectionStore(data_dir / "alice")
        await store.load_all()
        assert len(store) == 5


class TestUpdate:
    async def test_partial_update(self, dispatcher: RequestDispatcher, item_fields) -> None:
        await dispatcher.dispatch(make_request("add", item=item_fields))

        response = await dispatcher.dispatch(
            make_request("update", id="1", item={"marketValue": 40})
        )
        shown = await dispatcher.dispatch(make_request("show", id="1"))

        assert response.type is ResponseKind.UPDATE
        assert response.success is True
        assert shown.item.market_value == 40
        assert shown.item.name == "Groot"
        assert shown.item.franchise == "Guardians of the Galaxy"

    async def test_update_missing_item(self, dispatcher: RequestDispatcher) -> None:
        response = await dispatcher.dispatch(make_request("update", id="7", item={"name": "X"}))

        assert response.type is ResponseKind.UPDATE
        assert response.success is False
        assert response.message == "Item with ID 7 not found"

    async def test_update_requires_id(self, dispatcher: RequestDispatcher) -> None:
        response = await dispatcher.dispatch(make_request("update", item={"name": "X"}))
        assert response.type is ResponseKind.ERROR
        assert response.message == "Missing required field: id"

    async def test_update_rejects_invalid_value(
        self, dispatcher: RequestDispatcher, item_fields
    ) -> None:
        await dispatcher.dispatch(make_request("add", item=item_fields))
        response = await dispatcher.dispatch(
            make_request("update", id="1", item={"type": "Bobblehead"})
        )
        assert response.type is ResponseKind.ERROR
        assert response.message.startswith("Invalid item")


class TestRemove:
    async def test_remove_existing(
        self, dispatcher: RequestDispatcher, data_dir: Path, item_fields
    ) -> None:
        await dispatcher.dispatch(make_request("add", item=item_fields))

        response = await dispatcher.dispatch(make_request("remove", id="1"))

        assert response.type is ResponseKind.REMOVE
        assert response.success is True
        assert not (data_dir / "alice" / "1.json").exists()

    async def test_remove_twice(self, dispatcher: RequestDispatcher, item_fields) -> None:
        await dispatcher.dispatch(make_request("add", item=item_fields))
        await dispatcher.dispatch(make_request("remove", id="1"))

        response = await dispatcher.dispatch(make_request("remove", id="1"))

        assert response.type is ResponseKind.REMOVE
        assert response.success is False
        assert response.message == "Item with ID 1 not found"

    async def test_removed_id_not_reused_while_higher_ids_exist(
        self, dispatcher: RequestDispatcher, item_fields
    ) -> None:
        for _ in range(2):
            await dispatcher.dispatch(make_request("add", item=item_fields))
        await dispatcher.dispatch(make_request("remove", id="1"))

        response = await dispatcher.dispatch(make_request("add", item=item_fields))

        assert response.item.id == "3"


class TestShowAndList:
    async def test_show_missing(self, dispatcher: RequestDispatcher) -> None:
        response = await dispatcher.dispatch(make_request("show", id="1"))
        assert response.type is ResponseKind.SHOW
        assert response.success is False

    async def test_show_found(self, dispatcher: RequestDispatcher, item_fields) -> None:
        await dispatcher.dispatch(make_request("add", item=item_fields))
        response = await dispatcher.dispatch(make_request("show", id=1))
        assert response.success is True
        assert response.item.name == "Groot"

    async def test_list_empty_is_not_a_success(self, dispatcher: RequestDispatcher) -> None:
        response = await dispatcher.dispatch(make_request("list"))

        assert response.type is ResponseKind.LIST
        assert response.success is False
        assert response.message == "No items found"
        assert response.items is None

    async def test_list_returns_items_in_id_order(
        self, dispatcher: RequestDispatcher, item_fields
    ) -> None:
        for name in ("Groot", "Rocket", "Drax"):
            await dispatcher.dispatch(make_request("add", item={**item_fields, "name": name}))

        response = await dispatcher.dispatch(make_request("list"))

        assert response.success is True
        assert [item.name for item in response.items] == ["Groot", "Rocket", "Drax"]
        assert [item.id for item in response.items] == ["1", "2", "3"]


class TestFaults:
    async def test_storage_failure_reported(
        self, data_dir: Path, item_fields
    ) -> None:
        # A file where the data directory should be makes every load fail
        data_dir.parent.mkdir(parents=True, exist_ok=True)
        data_dir.write_text("not a directory", encoding="utf-8")
        dispatcher = RequestDispatcher(data_dir)

        response = await dispatcher.dispatch(make_request("add", item=item_fields))

        assert response.type is ResponseKind.ADD
        assert response.success is False

    async def test_unexpected_error_becomes_error_response(
        self, dispatcher: RequestDispatcher, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def explode(self) -> None:
            raise RuntimeError("boom")

        monkeypatch.setattr(CollectionStore, "load_all", explode)

        response = await dispatcher.dispatch(make_request("list"))

        assert response.type is ResponseKind.ERROR
        assert response.message == "Internal server error"

    async def test_lock_released_after_failure(
        self, dispatcher: RequestDispatcher, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def explode(self) -> None:
            raise RuntimeError("boom")

        monkeypatch.setattr(CollectionStore, "load_all", explode)
        await dispatcher.dispatch(make_request("list"))

        assert len(dispatcher.locks) == 0


def test_every_request_kind_has_a_handler(data_dir: Path) -> None:
    dispatcher = RequestDispatcher(data_dir)
    assert set(dispatcher._handlers) == set(RequestKind)
