from funkovault.services.collection_store import ITEM_FILE_SUFFIX, CollectionStore
from funkovault.services.user_context import UserContext, validate_username
from funkovault.services.user_locks import UserLockRegistry

__all__ = [
    "CollectionStore",
    "ITEM_FILE_SUFFIX",
    "UserContext",
    "UserLockRegistry",
    "validate_username",
]
