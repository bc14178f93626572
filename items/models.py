"""
items/models.py -- Domain dataclass for shop items.

A pure data container. Items carry no business rules beyond the link to the
user who created them; items/service.py enforces that link.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Item:
    """A listed item for sale.

    price is in integer cents. user_id is the creator's id and is set by
    ItemService.create_item(), never taken from the request body.

    id is None before the record is written to the database.
    """

    title: str
    price: int
    description: str = ""
    image: Optional[str] = None
    large_image: Optional[str] = None
    id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on insert
