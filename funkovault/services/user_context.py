"""
User context.

Binds a username to its CollectionStore. A context is created per request
and discarded afterwards, so every request starts from what is on disk.
"""

import logging
import re
from pathlib import Path

from funkovault.config import RESERVED_USERNAMES, USERNAME_PATTERN
from funkovault.models.failure import OperationResult
from funkovault.models.item import Item, ItemUpdate
from funkovault.services.collection_store import CollectionStore

logger = logging.getLogger(__name__)

_USERNAME_RE = re.compile(USERNAME_PATTERN)


def validate_username(username: str) -> str:
    """
    Check that a username is safe to use as a directory name.

    Raises:
        ValueError: If the username contains path separators or is reserved.
    """
    if not _USERNAME_RE.match(username) or username in RESERVED_USERNAMES:
        raise ValueError(f"Invalid username: {username!r}")
    return username


class UserContext:
    """A username and the collection stored under `data_dir/username`."""

    def __init__(self, username: str, data_dir: Path):
        self.username = validate_username(username)
        self.collection = CollectionStore(Path(data_dir) / username)

    def __repr__(self) -> str:
        return f"UserContext(username={self.username!r}, items={len(self.collection)})"

    async def load_collection(self) -> OperationResult[int]:
        """Load the user's items from disk."""
        result = await self.collection.load_all()
        if result.ok:
            logger.debug("Loaded %d item(s) for %s", result.value, self.username)
        else:
            logger.error("Failed to load the collection of %s: %s", self.username, result.message)
        return result

    async def save_collection(self) -> OperationResult[int]:
        """Rewrite every item file of the user."""
        result = await self.collection.save_all()
        if result.ok:
            logger.debug("Saved %d item(s) for %s", result.value, self.username)
        else:
            logger.error("Failed to save the collection of %s: %s", self.username, result.message)
        return result

    async def persist(self, item: Item) -> OperationResult[Item]:
        """Write a single item's file."""
        return await self.collection.save_item(item)

    def add_item(self, item: Item) -> OperationResult[Item]:
        """Add an item with a freshly allocated id."""
        result = self.collection.add(item)
        if result.ok and result.value is not None:
            logger.info("Item with ID %s added to the collection of %s", result.value.id, self.username)
        else:
            logger.warning("Could not add item for %s: %s", self.username, result.message)
        return result

    def update_item(self, item_id: str, changes: ItemUpdate) -> OperationResult[Item]:
        return self.collection.update(item_id, changes)

    async def remove_item(self, item_id: str) -> OperationResult[str]:
        return await self.collection.remove(item_id)

    def get_item(self, item_id: str) -> Item | None:
        return self.collection.get_by_id(item_id)

    def list_items(self) -> list[Item]:
        return self.collection.list()
