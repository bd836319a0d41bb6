"""
File-backed collection store.

Holds one user's items in memory, in insertion order, and persists them as
one pretty-printed JSON document per item (`<directory>/<id>.json`). The
directory listing is the only index: whatever item files exist are the
collection.

Per-file faults during load and save are logged and skipped so one corrupt
or unwritable file never takes down the rest of the collection.
"""

from __future__ import annotations

import contextlib
import json
import logging
from pathlib import Path

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from funkovault.models.failure import FailureKind, OperationResult
from funkovault.models.item import Item, ItemUpdate

logger = logging.getLogger(__name__)

ITEM_FILE_SUFFIX = ".json"


def _is_item_file(filename: str) -> bool:
    """Item files are visible `*.json` files; temp files start with a dot."""
    return filename.endswith(ITEM_FILE_SUFFIX) and not filename.startswith(".")


def _id_sort_key(item: Item) -> tuple[int, int, str]:
    item_id = item.id or ""
    if item_id.isdigit():
        return (0, int(item_id), "")
    return (1, 0, item_id)


class CollectionStore:
    """
    An ordered set of Items for one user, unique by id.

    Ids are allocated by the store from its own contents, never from a
    process-wide counter, so two stores never influence each other.
    """

    def __init__(self, directory: Path, items: list[Item] | None = None):
        self.directory = Path(directory)
        self._items: list[Item] = []
        # Numeric stems of item files seen on disk, parsed or not
        self._reserved_ids: set[int] = set()
        for item in items or []:
            result = self.add(item, preserve_id=item.id is not None)
            if not result.ok:
                raise ValueError(result.message)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return any(item.id == item_id for item in self._items)

    def item_path(self, item_id: str) -> Path:
        """Path of the file backing an item."""
        return self.directory / f"{item_id}{ITEM_FILE_SUFFIX}"

    # --- In-memory operations ---

    def list(self) -> list[Item]:
        """Current items in store order."""
        return list(self._items)

    def next_id(self) -> str:
        """
        Allocate the next id: one more than the largest numeric id.

        Non-numeric ids are ignored. Ids freed by removals are not reused,
        and neither are ids of item files that exist on disk but failed to
        load, so an add never overwrites a file it could not read.
        """
        numeric_ids = {int(item.id) for item in self._items if item.id and item.id.isdigit()}
        return str(max(numeric_ids | self._reserved_ids, default=0) + 1)

    def get_by_id(self, item_id: str) -> Item | None:
        """Get an item by id. Returns None if absent."""
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def add(self, item: Item, preserve_id: bool = False) -> OperationResult[Item]:
        """
        Add an item to the store.

        With preserve_id=False the item gets a freshly allocated id. With
        preserve_id=True (rehydrating from disk) the item's id is kept
        verbatim. Fails without mutating the store if the id is taken.
        """
        if not preserve_id:
            item = item.model_copy(update={"id": self.next_id()})
        elif item.id is None:
            return OperationResult.failed(
                FailureKind.INVALID_ITEM,
                f"Item {item.name} has no id to preserve",
            )

        if item.id in self:
            return OperationResult.failed(
                FailureKind.DUPLICATE_ID,
                f"Item with ID {item.id} already exists",
            )

        self._items.append(item)
        return OperationResult.success(item)

    def update(self, item_id: str, changes: ItemUpdate) -> OperationResult[Item]:
        """
        Apply a partial update to an item.

        Only fields present in `changes` are replaced. The item keeps its
        position in the store.
        """
        for index, item in enumerate(self._items):
            if item.id != item_id:
                continue
            try:
                updated = changes.apply_to(item)
            except ValidationError as e:
                return OperationResult.failed(
                    FailureKind.INVALID_ITEM,
                    f"Invalid update for item with ID {item_id}",
                    detail=str(e),
                )
            self._items[index] = updated
            return OperationResult.success(updated)

        return OperationResult.failed(FailureKind.NOT_FOUND, f"Item with ID {item_id} not found")

    # --- Persistence ---

    async def remove(self, item_id: str) -> OperationResult[str]:
        """
        Remove an item and its backing file.

        A backing file that is already gone counts as deleted. The file is
        deleted before the in-memory record; the two steps are not atomic.
        """
        if item_id not in self:
            return OperationResult.failed(
                FailureKind.NOT_FOUND, f"Item with ID {item_id} not found"
            )

        path = self.item_path(item_id)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            logger.debug("Backing file %s already absent", path)
        except OSError as e:
            logger.error("Error deleting %s: %s", path, e)
            return OperationResult.failed(
                FailureKind.STORAGE_FAILURE,
                f"Could not delete item with ID {item_id}",
                detail=str(e),
            )

        self._items = [item for item in self._items if item.id != item_id]
        return OperationResult.success(item_id)

    async def save_all(self) -> OperationResult[int]:
        """
        Write every item to its own file, overwriting existing files.

        A failed write is logged and the remaining writes still happen.
        Succeeds only if every file was written.

        Returns:
            Number of files written on success.
        """
        try:
            await self._ensure_directory()
        except OSError as e:
            logger.error("Error creating user directory %s: %s", self.directory, e)
            return OperationResult.failed(
                FailureKind.STORAGE_FAILURE,
                "Could not create the collection directory",
                detail=str(e),
            )

        failed_ids: list[str] = []
        for item in list(self._items):
            try:
                await self._write_item(item)
            except OSError as e:
                logger.error("Error saving item %s to %s: %s", item.id, self.directory, e)
                failed_ids.append(str(item.id))

        if failed_ids:
            return OperationResult.failed(
                FailureKind.STORAGE_FAILURE,
                f"Failed to save {len(failed_ids)} of {len(self._items)} item(s)",
                detail=", ".join(failed_ids),
            )
        return OperationResult.success(len(self._items))

    async def save_item(self, item: Item) -> OperationResult[Item]:
        """Write a single item's file."""
        try:
            await self._ensure_directory()
            await self._write_item(item)
        except OSError as e:
            logger.error("Error saving item %s to %s: %s", item.id, self.directory, e)
            return OperationResult.failed(
                FailureKind.STORAGE_FAILURE,
                f"Could not save item with ID {item.id}",
                detail=str(e),
            )
        return OperationResult.success(item)

    async def load_all(self) -> OperationResult[int]:
        """
        Replace the in-memory items with the contents of the directory.

        A missing directory is created and yields an empty store. Files
        that cannot be read, parsed or validated are logged and skipped.
        Loaded items are ordered by numeric id.

        Returns:
            Number of items loaded on success.
        """
        try:
            existed = await self._ensure_directory()
        except OSError as e:
            logger.error("Error creating user directory %s: %s", self.directory, e)
            return OperationResult.failed(
                FailureKind.STORAGE_FAILURE,
                "Could not access the collection directory",
                detail=str(e),
            )

        self._items = []
        self._reserved_ids = set()
        if not existed:
            return OperationResult.success(0)

        try:
            filenames = await aiofiles.os.listdir(self.directory)
        except OSError as e:
            logger.error("Error reading directory %s: %s", self.directory, e)
            return OperationResult.failed(
                FailureKind.STORAGE_FAILURE,
                "Could not read the collection directory",
                detail=str(e),
            )

        loaded: list[Item] = []
        for filename in filenames:
            if not _is_item_file(filename):
                continue
            stem = filename.removesuffix(ITEM_FILE_SUFFIX)
            if stem.isdigit():
                self._reserved_ids.add(int(stem))
            item = await self._read_item(self.directory / filename)
            if item is not None:
                loaded.append(item)

        for item in sorted(loaded, key=_id_sort_key):
            result = self.add(item, preserve_id=True)
            if not result.ok:
                logger.warning("Skipping item in %s: %s", self.directory, result.message)

        return OperationResult.success(len(self._items))

    # --- File helpers ---

    async def _ensure_directory(self) -> bool:
        """Create the directory if needed. Returns True if it already existed."""
        if await aiofiles.os.path.isdir(self.directory):
            return True
        await aiofiles.os.makedirs(self.directory, exist_ok=True)
        return False

    async def _write_item(self, item: Item) -> None:
        # Write to a hidden sibling first so readers never see a partial file
        path = self.item_path(str(item.id))
        tmp_path = path.with_name(f".{path.name}.tmp")
        content = json.dumps(item.to_document(), indent=2, ensure_ascii=False)
        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(content)
            await aiofiles.os.replace(tmp_path, path)
        except OSError:
            with contextlib.suppress(OSError):
                await aiofiles.os.remove(tmp_path)
            raise

    async def _read_item(self, path: Path) -> Item | None:
        try:
            async with aiofiles.open(path, encoding="utf-8") as f:
                content = await f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Error reading file %s: %s", path, e)
            return None

        try:
            item = Item.model_validate(json.loads(content))
        except json.JSONDecodeError as e:
            logger.warning("Error parsing file %s: %s", path, e)
            return None
        except ValidationError as e:
            logger.warning("Invalid item in file %s: %s", path, e)
            return None

        if item.id is not None and path.stem != item.id:
            logger.warning("File %s holds item with ID %s", path, item.id)
        return item
