"""
items/store.py -- SQLAlchemy Core persistence layer for items.

Pattern: Repository + Data Mapper (same as auth/store.py).

Item reads and writes are straight passthrough: whatever fields the API layer
validated are written as-is. The only column the store never takes from a
caller's update is user_id -- ownership is fixed at creation.

DB path: items/shopfront_items.db unless ITEMS_DATABASE_URL is set.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from auth.store import make_engine
from items.models import Item

_metadata = MetaData()

_items = Table(
    "items",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("title", String(255), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("price", Integer, nullable=False),
    Column("image", Text),
    Column("large_image", Text),
    Column("user_id", String(32)),
    Column("created_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ItemStore:
    """Repository for Item entities."""

    _UPDATABLE: set = {"title", "description", "price", "image", "large_image"}

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def create_item(self, item: Item) -> Item:
        """Insert item and return it with id and created_at assigned."""
        item.id = uuid.uuid4().hex
        item.created_at = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _items.insert().values(
                    id=item.id,
                    title=item.title,
                    description=item.description,
                    price=item.price,
                    image=item.image,
                    large_image=item.large_image,
                    user_id=item.user_id,
                    created_at=item.created_at,
                )
            )
            conn.commit()
        return item

    def get_item(self, item_id: str) -> Item | None:
        with self.engine.connect() as conn:
            row = conn.execute(_items.select().where(_items.c.id == item_id)).fetchone()
        return _row_to_item(row) if row is not None else None

    def list_items(self, skip: int = 0, first: int | None = None) -> list[Item]:
        """Return items newest first, paged by skip/first."""
        query = _items.select().order_by(_items.c.created_at.desc(), _items.c.id).offset(skip)
        if first is not None:
            query = query.limit(first)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_item(r) for r in rows]

    def count_items(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_items)).scalar()
        return result or 0

    def update_item(self, item_id: str, **fields) -> bool:
        """Update mutable fields. Returns True if the item exists."""
        unknown = set(fields) - self._UPDATABLE
        if unknown:
            raise ValueError(f"Unknown item fields: {sorted(unknown)!r}")
        if not fields:
            return self.get_item(item_id) is not None
        with self.engine.connect() as conn:
            result = conn.execute(_items.update().where(_items.c.id == item_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_item(self, item_id: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_items.delete().where(_items.c.id == item_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


def _row_to_item(row) -> Item:
    return Item(
        id=row.id,
        title=row.title,
        description=row.description or "",
        price=row.price,
        image=row.image,
        large_image=row.large_image,
        user_id=row.user_id,
        created_at=row.created_at,
    )
