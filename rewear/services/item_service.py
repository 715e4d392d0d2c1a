"""
Item & swap store: item CRUD plus every status transition of items and
swap requests.

Status changes that can race are compare-and-set UPDATEs; the return value
says whether this caller performed the transition. Callers that need several
of them to land together pass commit=False and commit once themselves.

Cascade rule: deleting an item deletes all of its swap requests in the same
commit. Reads that stumble on a swap request whose item is gone purge it and
report NotFound.
"""
import logging
from typing import Optional

from sqlalchemy import select, update, delete, func
from sqlalchemy.orm import Session

from rewear.models.item import Item, SwapRequest, ITEM_STATUSES
from rewear.models.user import User
from rewear.core.exceptions import (
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)

logger = logging.getLogger(__name__)


# ── Items ─────────────────────────────────────────────────────────────────────

def create_item(db: Session, owner_id, data: dict) -> Item:
    """Submit an item for moderation. Always starts 'pending'."""
    if not (data.get("title") or "").strip():
        raise ValidationException("title cannot be empty")

    item = Item(
        owner_id=owner_id,
        title=data["title"].strip(),
        description=data.get("description"),
        category=data.get("category"),
        size=data.get("size"),
        condition=data.get("condition"),
        tags=data.get("tags"),
        image_url=data.get("image_url"),
        points_price=max(0, int(data.get("points_price") or 0)),
        status="pending",
        is_available=True,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def get_item_or_404(db: Session, item_id) -> Item:
    item = db.get(Item, item_id)
    if not item:
        raise NotFoundException("Item")
    return item


def get_public_item_or_404(db: Session, item_id) -> Item:
    """Items that are not approved are invisible to the public."""
    item = db.get(Item, item_id)
    if not item or item.status != "approved":
        raise NotFoundException("Item")
    return item


def list_items(
    db: Session,
    status: Optional[str] = "approved",
    available_only: bool = True,
    page: int = 1,
    limit: int = 20,
) -> tuple[int, list[Item]]:
    query = db.query(Item)
    if status:
        query = query.filter(Item.status == status)
    if available_only:
        query = query.filter(Item.is_available.is_(True))
    total = query.count()
    items = (
        query.order_by(Item.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return total, items


def list_user_items(db: Session, owner_id) -> list[Item]:
    return (
        db.query(Item)
        .filter(Item.owner_id == owner_id)
        .order_by(Item.created_at.desc())
        .all()
    )


def set_item_status(db: Session, item_id, status: str) -> tuple[Item, list]:
    """
    Admin moderation: approve or reject an item.

    Swapped items are frozen. Rejecting an item rejects its pending swap
    requests in the same commit, since they can no longer be settled.
    Returns (item, ids_of_auto_rejected_swaps).
    """
    if status not in ("approved", "rejected"):
        raise ValidationException("status must be 'approved' or 'rejected'")

    item = get_item_or_404(db, item_id)
    if not item.is_available:
        raise InvalidStateException("Item has already been swapped and cannot be moderated")
    if item.status == status:
        return item, []

    result = db.execute(
        update(Item)
        .where(Item.id == item_id, Item.is_available.is_(True))
        .values(status=status, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise InvalidStateException("Item has already been swapped and cannot be moderated")

    rejected = []
    if status == "rejected":
        rejected = reject_pending_swaps_for_item(db, item_id, commit=False)

    db.commit()
    db.refresh(item)
    logger.info("Item %s moved to %s (%d pending swaps rejected)", item_id, status, len(rejected))
    return item, rejected


def delete_item(db: Session, item_id, acting_user: User) -> int:
    """
    Delete an item and all of its swap requests. Owner or admin only.
    Returns the number of swap requests removed.
    """
    item = get_item_or_404(db, item_id)
    if item.owner_id != acting_user.id and not acting_user.is_admin:
        raise ForbiddenException("Only the owner or an admin can delete this item")

    # Explicit delete so the cascade holds even where the DB doesn't enforce FKs.
    removed = db.execute(
        delete(SwapRequest)
        .where(SwapRequest.item_id == item_id)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.execute(
        delete(Item)
        .where(Item.id == item_id)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.expire_all()
    logger.info("Item %s deleted with %d swap requests", item_id, removed)
    return removed


def lock_item(db: Session, item_id) -> None:
    """SELECT ... FOR UPDATE on the item row. SQLite ignores the lock."""
    db.execute(select(Item.id).where(Item.id == item_id).with_for_update())


def mark_item_swapped(db: Session, item_id, acquired_by_id, commit: bool = True) -> bool:
    """
    CAS: approved & available -> unavailable. True only for the caller that
    flipped it; a second approval for the same item gets False.
    """
    result = db.execute(
        update(Item)
        .where(
            Item.id == item_id,
            Item.status == "approved",
            Item.is_available.is_(True),
        )
        .values(is_available=False, acquired_by_id=acquired_by_id, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    if commit:
        db.commit()
    return result.rowcount == 1


# ── Swap requests ─────────────────────────────────────────────────────────────

def get_swap_or_404(db: Session, swap_id) -> SwapRequest:
    """
    Load a swap request. One whose item no longer exists is invalid: it is
    purged on the spot and reported as not found.
    """
    swap = db.get(SwapRequest, swap_id)
    if not swap:
        raise NotFoundException("Swap request")
    if db.get(Item, swap.item_id) is None:
        logger.warning("Purging orphaned swap request %s (item %s missing)", swap.id, swap.item_id)
        db.execute(
            delete(SwapRequest)
            .where(SwapRequest.id == swap_id)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        db.expire_all()
        raise NotFoundException("Swap request")
    return swap


def find_pending_swap(db: Session, item_id, requester_id) -> Optional[SwapRequest]:
    return db.execute(
        select(SwapRequest).where(
            SwapRequest.item_id == item_id,
            SwapRequest.requester_id == requester_id,
            SwapRequest.status == "pending",
        )
    ).scalars().first()


def transition_swap_status(
    db: Session,
    swap_id,
    from_status: str,
    to_status: str,
    commit: bool = True,
) -> bool:
    """CAS on swap status. True only for the caller that made the transition."""
    result = db.execute(
        update(SwapRequest)
        .where(SwapRequest.id == swap_id, SwapRequest.status == from_status)
        .values(status=to_status, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    if commit:
        db.commit()
    return result.rowcount == 1


def reject_pending_swaps_for_item(
    db: Session,
    item_id,
    except_swap_id=None,
    commit: bool = True,
) -> list:
    """Reject every pending request for an item (optionally sparing one). Returns their ids."""
    query = select(SwapRequest.id).where(
        SwapRequest.item_id == item_id,
        SwapRequest.status == "pending",
    )
    if except_swap_id is not None:
        query = query.where(SwapRequest.id != except_swap_id)
    ids = list(db.execute(query).scalars())

    if ids:
        db.execute(
            update(SwapRequest)
            .where(SwapRequest.id.in_(ids), SwapRequest.status == "pending")
            .values(status="rejected", updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
    if commit:
        db.commit()
    return ids


def list_swaps(
    db: Session,
    owner_id=None,
    requester_id=None,
    status: Optional[str] = None,
) -> list[SwapRequest]:
    """Incoming (owner_id) or outgoing (requester_id) swap requests, orphans purged first."""
    purge_orphaned_swaps(db)
    query = db.query(SwapRequest)
    if owner_id is not None:
        query = query.filter(SwapRequest.owner_id == owner_id)
    if requester_id is not None:
        query = query.filter(SwapRequest.requester_id == requester_id)
    if status:
        query = query.filter(SwapRequest.status == status)
    return query.order_by(SwapRequest.created_at.desc()).all()


def count_swaps_for_item(db: Session, item_id) -> int:
    return db.execute(
        select(func.count()).select_from(SwapRequest).where(SwapRequest.item_id == item_id)
    ).scalar_one()


def purge_orphaned_swaps(db: Session) -> int:
    """Delete swap requests that reference a missing item. Returns how many went."""
    removed = db.execute(
        delete(SwapRequest)
        .where(~SwapRequest.item_id.in_(select(Item.id)))
        .execution_options(synchronize_session=False)
    ).rowcount
    if removed:
        logger.warning("Purged %d orphaned swap requests", removed)
        db.commit()
    return removed


def validate_item_status(status: Optional[str]) -> Optional[str]:
    if status is not None and status not in ITEM_STATUSES:
        raise ValidationException(f"status must be one of: {', '.join(ITEM_STATUSES)}")
    return status
