"""
Items router: submit, browse and delete listed items.

New items start 'pending' and only become visible (and swappable) once an
admin approves them via /admin/items/{id}/approve.
"""
import uuid
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rewear.database import get_db
from rewear.core.dependencies import get_current_user
from rewear.models.user import User
from rewear.schemas.item import (
    ItemCreateRequest,
    ItemCreateResponse,
    ItemDeleteResponse,
    ItemListResponse,
    ItemOut,
)
from rewear.services import item_service
from rewear.services.event_bus import bus

router = APIRouter()


@router.post("", response_model=ItemCreateResponse, status_code=201)
def submit_item(
    body: ItemCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Submit an item for admin approval."""
    item = item_service.create_item(db, owner_id=current_user.id, data=body.model_dump())
    bus.notify("item:created", {"id": str(item.id)})
    return ItemCreateResponse(
        message="Item submitted for admin approval",
        item=ItemOut.model_validate(item),
    )


@router.get("", response_model=ItemListResponse)
def browse_items(
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """Approved items that can still be swapped. Newest first."""
    total, items = item_service.list_items(
        db, status="approved", available_only=True, page=page, limit=limit
    )
    return ItemListResponse(
        total=total,
        page=page,
        limit=limit,
        items=[ItemOut.model_validate(i) for i in items],
    )


@router.get("/mine", response_model=List[ItemOut])
def my_items(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """All of the caller's items, whatever their status."""
    return [ItemOut.model_validate(i) for i in item_service.list_user_items(db, current_user.id)]


@router.get("/{item_id}", response_model=ItemOut)
def get_item(
    item_id: uuid.UUID,
    db: Session = Depends(get_db),
):
    """Item detail. Pending and rejected items are reported as not found."""
    return ItemOut.model_validate(item_service.get_public_item_or_404(db, item_id))


@router.delete("/{item_id}", response_model=ItemDeleteResponse)
def delete_item(
    item_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete one of your items. Its swap requests are deleted with it."""
    removed = item_service.delete_item(db, item_id, acting_user=current_user)
    bus.notify("item:deleted", {"id": str(item_id)})
    return ItemDeleteResponse(message="Item deleted", swap_requests_deleted=removed)
