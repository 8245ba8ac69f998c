"""
api/routes/items.py -- Item CRUD for JSON clients.

Routes (all require a token via api_guard):
  GET    /api/items        -- list items
  POST   /api/items        -- create item (multipart: name, price, quantity, image)
  GET    /api/items/{id}   -- single item
  PUT    /api/items/{id}   -- update item; a new image replaces the old file
  DELETE /api/items/{id}   -- delete item and its image

Guard: no token -> 403 {"message": "Access Denied"}; invalid or expired token
-> 401 {"message": "Invalid Token"}. The guard is a router-level dependency,
so handlers never run for unauthenticated callers.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile

from api.models import ItemListResponse, ItemOut, ItemResponse
from auth.dependencies import api_guard
from inventory.models import Item
from inventory.store import ItemStore
from inventory.uploads import UploadTooLarge, remove_upload, save_upload

# Router-level dependency enforces auth; handlers do not repeat it.
router = APIRouter(prefix="/api/items", dependencies=[Depends(api_guard)])

_NOT_FOUND = {"message": "Item not found"}


def _store(request: Request) -> ItemStore:
    return request.app.state.item_store


async def _save_image(request: Request, image: Optional[UploadFile]) -> Optional[str]:
    try:
        return await save_upload(image, request.app.state.upload_dir)
    except UploadTooLarge as exc:
        raise HTTPException(status_code=413, detail={"message": str(exc)}) from exc


@router.get("", response_model=ItemListResponse)
def list_items(request: Request) -> ItemListResponse:
    items = _store(request).list_items()
    return ItemListResponse(
        message="Items retrieved successfully",
        data=[ItemOut.from_item(i) for i in items],
    )


@router.post("", response_model=ItemResponse, status_code=201)
async def create_item(
    request: Request,
    name: str = Form(..., min_length=1, max_length=255),
    price: str = Form(..., min_length=1, max_length=50),
    quantity: int = Form(..., ge=0),
    image: Optional[UploadFile] = File(default=None),
) -> ItemResponse:
    stored = await _save_image(request, image)
    item = _store(request).create_item(Item(name=name.strip(), price=price.strip(), quantity=quantity, image=stored))
    return ItemResponse(message="Item added successfully", data=ItemOut.from_item(item))


@router.get("/{item_id}", response_model=ItemResponse)
def get_item(request: Request, item_id: int) -> ItemResponse:
    item = _store(request).get_item(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    return ItemResponse(message="Item retrieved successfully", data=ItemOut.from_item(item))


@router.put("/{item_id}", response_model=ItemResponse)
async def update_item(
    request: Request,
    item_id: int,
    name: str = Form(..., min_length=1, max_length=255),
    price: str = Form(..., min_length=1, max_length=50),
    quantity: int = Form(..., ge=0),
    image: Optional[UploadFile] = File(default=None),
) -> ItemResponse:
    """Replace an item's fields. Without a new file the current image is kept."""
    store = _store(request)
    existing = store.get_item(item_id)
    if existing is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)

    new_image = await _save_image(request, image)
    updated = store.update_item(
        item_id,
        name=name.strip(),
        price=price.strip(),
        quantity=quantity,
        image=new_image or existing.image,
    )
    if updated is None:
        # Deleted between the read and the write.
        remove_upload(new_image, request.app.state.upload_dir)
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    if new_image and existing.image:
        remove_upload(existing.image, request.app.state.upload_dir)
    return ItemResponse(message="Item updated successfully", data=ItemOut.from_item(updated), duration=2000)


@router.delete("/{item_id}", response_model=ItemResponse)
def delete_item(request: Request, item_id: int) -> ItemResponse:
    item = _store(request).delete_item(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    remove_upload(item.image, request.app.state.upload_dir)
    return ItemResponse(message="Item deleted successfully", data=ItemOut.from_item(item), duration=2000)
