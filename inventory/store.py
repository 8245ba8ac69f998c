"""
inventory/store.py -- SQLAlchemy-backed persistence for items.

Uses SQLAlchemy Core (not ORM) so the Item dataclass in inventory/models.py
remains the authoritative domain representation.

Pattern: Repository + Data Mapper. ItemStore is the repository; _row_to_item
is the mapper. Route handlers never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = ItemStore("sqlite:///stockroom.db")
    item = store.create_item(Item(name="Widget", price="9.99", quantity=3))
    store.update_item(item.id, quantity=2)
    removed = store.delete_item(item.id)
    store.close()
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from auth.store import make_engine
from inventory.models import Item

_UPDATABLE_FIELDS = {"name", "price", "quantity", "image"}

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_items = Table(
    "items",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("price", String(50), nullable=False),
    Column("quantity", Integer, nullable=False, server_default="0"),
    Column("image", Text),  # upload filename, NULL when no image
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ItemStore:
    """Repository for Item records."""

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        metadata.create_all(self.engine)

    def create_item(self, item: Item) -> Item:
        """Insert an item and return it with id and timestamps filled in."""
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _items.insert().values(
                    name=item.name,
                    price=item.price,
                    quantity=item.quantity,
                    image=item.image,
                    created_at=now,
                    updated_at=now,
                )
            )
            item_id = result.inserted_primary_key[0]
            conn.commit()
        return Item(
            id=item_id,
            name=item.name,
            price=item.price,
            quantity=item.quantity,
            image=item.image,
            created_at=now,
            updated_at=now,
        )

    def list_items(self) -> list[Item]:
        """Return all items, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(_items.select().order_by(_items.c.id.desc())).fetchall()
        return [_row_to_item(r) for r in rows]

    def get_item(self, item_id: int) -> Optional[Item]:
        with self.engine.connect() as conn:
            row = conn.execute(_items.select().where(_items.c.id == item_id)).fetchone()
        return _row_to_item(row) if row is not None else None

    def update_item(self, item_id: int, **fields) -> Optional[Item]:
        """Update fields on an item and return the updated record.

        Accepted fields: name, price, quantity, image. Unknown keys raise
        ValueError. Returns None if item_id does not exist.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown item fields: {unknown!r}")
        with self.engine.connect() as conn:
            result = conn.execute(
                _items.update().where(_items.c.id == item_id).values(updated_at=_now_iso(), **fields)
            )
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_item(item_id)

    def delete_item(self, item_id: int) -> Optional[Item]:
        """Delete an item. Returns the removed record so callers can clean up
        its image, or None if it did not exist."""
        with self.engine.connect() as conn:
            row = conn.execute(_items.select().where(_items.c.id == item_id)).fetchone()
            if row is None:
                return None
            conn.execute(_items.delete().where(_items.c.id == item_id))
            conn.commit()
        return _row_to_item(row)

    def close(self) -> None:
        self.engine.dispose()


def _row_to_item(row) -> Item:
    return Item(
        id=row.id,
        name=row.name,
        price=row.price,
        quantity=row.quantity,
        image=row.image,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
