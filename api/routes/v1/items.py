"""
api/routes/v1/items.py -- Item passthrough endpoints.

Routes:
  GET    /api/v1/items            -- list items (skip / first paging)
  GET    /api/v1/items/count      -- total number of items
  GET    /api/v1/items/{id}       -- one item
  POST   /api/v1/items            -- create item (requires session; records creator)
  PATCH  /api/v1/items/{id}       -- update item
  DELETE /api/v1/items/{id}       -- delete item

Only creation carries an auth rule. The other endpoints pass straight
through to the store.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.models import ItemCreate, ItemResponse, ItemsCountResponse, ItemUpdate
from auth.dependencies import get_session_user_id
from items.service import ItemService

router = APIRouter()


def get_item_service(request: Request) -> ItemService:
    return request.app.state.item_service


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"code": "not_found", "message": "Item not found."},
    )


@router.get("/items", response_model=list[ItemResponse])
def list_items(
    skip: int = Query(default=0, ge=0),
    first: int | None = Query(default=None, ge=1, le=100),
    items: ItemService = Depends(get_item_service),
) -> list[ItemResponse]:
    return [ItemResponse.from_item(i) for i in items.list_items(skip=skip, first=first)]


# Declared before /items/{item_id} so "count" is not captured as an id.
@router.get("/items/count", response_model=ItemsCountResponse)
def count_items(items: ItemService = Depends(get_item_service)) -> ItemsCountResponse:
    return ItemsCountResponse(count=items.count_items())


@router.get("/items/{item_id}", response_model=ItemResponse)
def get_item(item_id: str, items: ItemService = Depends(get_item_service)) -> ItemResponse:
    item = items.get_item(item_id)
    if item is None:
        raise _not_found()
    return ItemResponse.from_item(item)


@router.post("/items", response_model=ItemResponse, status_code=201)
def create_item(
    body: ItemCreate,
    user_id: str | None = Depends(get_session_user_id),
    items: ItemService = Depends(get_item_service),
) -> ItemResponse:
    """Create an item linked to the signed-in user."""
    item = items.create_item(user_id, **body.model_dump())
    return ItemResponse.from_item(item)


@router.patch("/items/{item_id}", response_model=ItemResponse)
def update_item(
    item_id: str,
    body: ItemUpdate,
    items: ItemService = Depends(get_item_service),
) -> ItemResponse:
    item = items.update_item(item_id, **body.model_dump(exclude_none=True))
    if item is None:
        raise _not_found()
    return ItemResponse.from_item(item)


@router.delete("/items/{item_id}", response_model=ItemResponse)
def delete_item(item_id: str, items: ItemService = Depends(get_item_service)) -> ItemResponse:
    item = items.delete_item(item_id)
    if item is None:
        raise _not_found()
    return ItemResponse.from_item(item)
