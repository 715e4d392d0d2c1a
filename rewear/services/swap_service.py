"""
Swap service: create, approve and reject swap requests.

approve_swap is the most critical function in the code base.
It must atomically:
  1. Flip the swap request pending -> approved (CAS, prevents double approval)
  2. Flip the item to unavailable (CAS, prevents a second swap of the same item)
  3. Move item.points_price from requester to owner (conditional debit)
  4. Reject every other pending request for the item
  5. Commit everything in one transaction
If ANY step fails, the entire transaction rolls back and the swap stays pending.

Notifications are NOT sent from here. The router emits them after this
function has returned, i.e. after the commit.
"""
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from rewear.models.item import SwapRequest
from rewear.core.exceptions import (
    DuplicatePendingException,
    ForbiddenException,
    InsufficientBalanceException,
    InvalidStateException,
    ItemNotAvailableException,
    NotFoundException,
    SelfSwapForbiddenException,
)
from rewear.services import item_service, ledger_service

logger = logging.getLogger(__name__)


def create_swap_request(db: Session, item_id, requester_id) -> SwapRequest:
    """
    Open a swap request on an approved, still-available item.
    At most one pending request per (item, requester).
    """
    item = item_service.get_item_or_404(db, item_id)
    if item.status != "approved" or not item.is_available:
        raise ItemNotAvailableException()
    if item.owner_id == requester_id:
        raise SelfSwapForbiddenException()

    # Cheap pre-check; the partial unique index catches the race.
    if item_service.find_pending_swap(db, item_id, requester_id) is not None:
        raise DuplicatePendingException()

    swap = SwapRequest(
        item_id=item.id,
        requester_id=requester_id,
        owner_id=item.owner_id,
        status="pending",
    )
    db.add(swap)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicatePendingException()
    db.refresh(swap)
    logger.info("Swap request %s created: item=%s requester=%s", swap.id, item_id, requester_id)
    return swap


def _load_for_owner_action(db: Session, swap_id, acting_user_id) -> SwapRequest:
    """Steps shared by approve and reject: exists, caller owns it, still pending."""
    swap = item_service.get_swap_or_404(db, swap_id)
    if swap.owner_id != acting_user_id:
        raise ForbiddenException("Only the item owner can act on this swap request")
    if swap.status != "pending":
        raise InvalidStateException(f"Swap request is already {swap.status}")
    return swap


def approve_swap(db: Session, swap_id, acting_user_id) -> dict:
    """
    Approve a pending swap and settle its points.

    Returns {"swap", "item", "requester_balance", "owner_balance",
    "auto_rejected"} where auto_rejected lists the competing swap ids that
    were closed because the item is gone.
    """
    swap = _load_for_owner_action(db, swap_id, acting_user_id)

    item = item_service.get_item_or_404(db, swap.item_id)
    if item.status != "approved" or not item.is_available:
        raise ItemNotAvailableException("Item is no longer available for swap")

    price = max(0, item.points_price or 0)
    swap_id = swap.id
    item_id = item.id
    requester_id = swap.requester_id
    owner_id = swap.owner_id

    try:
        # Item row first, then swap rows, then user rows (inside transfer_points).
        # Moderation takes the item row before the swap rows too.
        item_service.lock_item(db, item_id)
        if not item_service.transition_swap_status(db, swap_id, "pending", "approved", commit=False):
            db.rollback()
            raise InvalidStateException("Swap request is no longer pending")

        if not item_service.mark_item_swapped(db, item_id, requester_id, commit=False):
            db.rollback()
            raise ItemNotAvailableException("Item is no longer available for swap")

        balances = ledger_service.transfer_points(
            db,
            from_user_id=requester_id,
            to_user_id=owner_id,
            amount=price,
            description=f"Swap for '{item.title}'",
            reference={"swap_id": str(swap_id), "item_id": str(item_id)},
            commit=False,
        )

        auto_rejected = item_service.reject_pending_swaps_for_item(
            db, item_id, except_swap_id=swap_id, commit=False
        )
        db.commit()
    except InsufficientBalanceException:
        # transfer_points already rolled back the whole unit; swap is still pending
        logger.info("Swap %s not approved: requester %s cannot cover %s points",
                    swap_id, requester_id, price)
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Storage failure while approving swap %s", swap_id)
        raise

    db.expire_all()
    swap = db.get(SwapRequest, swap_id)
    item = item_service.get_item_or_404(db, item_id)
    logger.info("Swap %s approved: %s points %s -> %s, %d competing requests rejected",
                swap_id, price, requester_id, owner_id, len(auto_rejected))
    return {
        "swap": swap,
        "item": item,
        "requester_balance": ledger_service.get_balance(db, requester_id),
        "owner_balance": ledger_service.get_balance(db, owner_id),
        "auto_rejected": auto_rejected,
    }


def reject_swap(db: Session, swap_id, acting_user_id) -> SwapRequest:
    """Reject a pending swap. No ledger effect."""
    swap = _load_for_owner_action(db, swap_id, acting_user_id)

    if not item_service.transition_swap_status(db, swap.id, "pending", "rejected"):
        raise InvalidStateException("Swap request is no longer pending")

    db.expire_all()
    swap = db.get(SwapRequest, swap_id)
    if swap is None:
        raise NotFoundException("Swap request")
    logger.info("Swap %s rejected by owner %s", swap_id, acting_user_id)
    return swap


def list_incoming(db: Session, owner_id, status: str = None) -> list[SwapRequest]:
    return item_service.list_swaps(db, owner_id=owner_id, status=status)


def list_outgoing(db: Session, requester_id, status: str = None) -> list[SwapRequest]:
    return item_service.list_swaps(db, requester_id=requester_id, status=status)
