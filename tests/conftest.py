from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from funkovault.models.item import Item


@pytest.fixture
def item_fields() -> dict[str, Any]:
    """Wire/file field set for a sample item, without an id."""
    return {
        "name": "Groot",
        "description": "Dancing Groot",
        "type": "Pop!",
        "genre": "Animación, Películas y TV",
        "franchise": "Guardians of the Galaxy",
        "number": 65,
        "exclusive": False,
        "market_value": 25,
    }


@pytest.fixture
def make_item(item_fields: dict[str, Any]) -> Callable[..., Item]:
    """Factory building a valid Item with field overrides."""

    def _make(**overrides: Any) -> Item:
        return Item.model_validate({**item_fields, **overrides})

    return _make


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Root data directory (not created up front)."""
    return tmp_path / "data"
