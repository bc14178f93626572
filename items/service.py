"""
items/service.py -- Item operations with the one auth rule they carry.

Creating an item requires a session and records the creator. Everything else
is passthrough to ItemStore.
"""

from __future__ import annotations

import logging

from auth.errors import NotAuthenticated
from items.models import Item
from items.store import ItemStore

logger = logging.getLogger("shopfront.items")


class ItemService:
    def __init__(self, store: ItemStore) -> None:
        self.store = store

    def create_item(self, user_id: str | None, **fields) -> Item:
        """Create an item owned by user_id. Raises NotAuthenticated without a session."""
        if not user_id:
            raise NotAuthenticated()
        item = self.store.create_item(Item(user_id=user_id, **fields))
        logger.info("User %s created item %s", user_id, item.id)
        return item

    def get_item(self, item_id: str) -> Item | None:
        return self.store.get_item(item_id)

    def list_items(self, skip: int = 0, first: int | None = None) -> list[Item]:
        return self.store.list_items(skip=skip, first=first)

    def count_items(self) -> int:
        return self.store.count_items()

    def update_item(self, item_id: str, **fields) -> Item | None:
        if not self.store.update_item(item_id, **fields):
            return None
        return self.store.get_item(item_id)

    def delete_item(self, item_id: str) -> Item | None:
        item = self.store.get_item(item_id)
        if item is None:
            return None
        self.store.delete_item(item_id)
        return item
