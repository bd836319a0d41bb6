"""
Collectible item model.

An Item is one figure in a user's collection. Items have no identity
outside the CollectionStore that owns them: `id` stays None until the
store allocates one.
"""

import logging
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# Accept the persisted snake_case key and the camelCase key older clients send
MARKET_VALUE_ALIASES = AliasChoices("market_value", "marketValue")

ITEM_ID_PATTERN = r"^[A-Za-z0-9_-]{1,64}$"


def _lookup_member(enum_cls: type[Enum], value: object) -> Enum | None:
    """Match by value or member name, ignoring case and surrounding whitespace."""
    if not isinstance(value, str):
        return None
    wanted = value.strip().casefold()
    for member in enum_cls:
        if wanted in (str(member.value).casefold(), member.name.casefold()):
            return member
    return None


class ItemType(str, Enum):
    """Product line of a figure."""

    POP = "Pop!"
    POP_RIDES = "Pop! Rides"
    VYNIL_SODA = "Vynil Soda"
    VYNIL_GOLD = "Vynil Gold"

    @classmethod
    def _missing_(cls, value: object) -> "ItemType | None":
        return _lookup_member(cls, value)  # type: ignore[return-value]


class ItemGenre(str, Enum):
    """Genre of the franchise a figure belongs to."""

    AMT = "Animación, Películas y TV"
    VIDEOGAMES = "Videojuegos"
    SPORTS = "Deportes"
    MUSIC = "Música"
    ANIME = "Ánime"
    OTHER = "Otros"

    @classmethod
    def _missing_(cls, value: object) -> "ItemGenre | None":
        return _lookup_member(cls, value)  # type: ignore[return-value]


def _coerce_id(value: Any) -> Any:
    # JSON clients frequently send numeric ids
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


def _coerce_enum(enum_cls: type[Enum], value: Any) -> Any:
    # Route strings through the enum so _missing_ applies its tolerant lookup
    if isinstance(value, str):
        return enum_cls(value)
    return value


def _flag_market_value(value: float) -> float:
    if value == 0:
        logger.warning("Market value should be a positive number, got %s", value)
    return value


class Item(BaseModel):
    """A single collectible record."""

    # Ids double as file names, so they are restricted to a safe alphabet
    id: str | None = Field(default=None, pattern=ITEM_ID_PATTERN)
    name: str = Field(..., min_length=1)
    description: str = ""
    type: ItemType
    genre: ItemGenre
    franchise: str
    number: int
    exclusive: bool = False
    market_value: float = Field(..., ge=0, validation_alias=MARKET_VALUE_ALIASES)

    @field_validator("id", mode="before")
    @classmethod
    def _validate_id(cls, value: Any) -> Any:
        return _coerce_id(value)

    @field_validator("type", mode="before")
    @classmethod
    def _validate_type(cls, value: Any) -> Any:
        return _coerce_enum(ItemType, value)

    @field_validator("genre", mode="before")
    @classmethod
    def _validate_genre(cls, value: Any) -> Any:
        return _coerce_enum(ItemGenre, value)

    @field_validator("market_value")
    @classmethod
    def _validate_market_value(cls, value: float) -> float:
        return _flag_market_value(value)

    def to_document(self) -> dict[str, Any]:
        """Full field set as JSON-compatible data (file and wire shape)."""
        return self.model_dump(mode="json")


class ItemUpdate(BaseModel):
    """
    Partial set of item fields.

    Only fields present in the payload are applied; `id` is never part of
    an update.
    """

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    type: ItemType | None = None
    genre: ItemGenre | None = None
    franchise: str | None = None
    number: int | None = None
    exclusive: bool | None = None
    market_value: float | None = Field(default=None, ge=0, validation_alias=MARKET_VALUE_ALIASES)

    @field_validator("type", mode="before")
    @classmethod
    def _validate_type(cls, value: Any) -> Any:
        return _coerce_enum(ItemType, value)

    @field_validator("genre", mode="before")
    @classmethod
    def _validate_genre(cls, value: Any) -> Any:
        return _coerce_enum(ItemGenre, value)

    def changes(self) -> dict[str, Any]:
        """Fields explicitly provided with a non-null value."""
        return self.model_dump(exclude_unset=True, exclude_none=True)

    def is_empty(self) -> bool:
        return not self.changes()

    def apply_to(self, item: Item) -> Item:
        """
        Return a new Item with these changes applied.

        The result is fully re-validated, so market value checks run
        exactly as they do on construction.
        """
        data = item.model_dump()
        data.update(self.changes())
        return Item.model_validate(data)
