"""
inventory/models.py -- Domain dataclass for stocked items.

Pure data container with zero logic. Persistence lives in inventory/store.py.
"""

from dataclasses import asdict, dataclass
from typing import Optional


@dataclass
class Item:
    """A stocked item.

    price is kept as entered (a string): the catalogue shows prices with
    whatever currency formatting the user typed.
    image is the stored upload filename, served under /uploads/.
    id is None before the record is written to the database.
    """

    name: str
    price: str
    quantity: int
    image: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""

    def to_dict(self) -> dict:
        return asdict(self)
