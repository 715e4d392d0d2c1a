"""
Admin router: all admin-only operations.

Every endpoint:
  - Requires get_current_admin dependency (is_admin=True)
  - Writes an audit log after any state-changing operation
  - Returns structured responses

Endpoints:
  GET    /admin/stats
  GET    /admin/items
  PUT    /admin/items/{id}/approve
  PUT    /admin/items/{id}/reject
  DELETE /admin/items/{id}
  POST   /admin/wallet/bonus
  GET    /admin/audit-logs
"""
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import func

from rewear.database import get_db
from rewear.core.dependencies import get_current_admin
from rewear.middleware.audit_middleware import log_admin_action
from rewear.models.user import User
from rewear.models.item import Item, SwapRequest
from rewear.models.transaction import Transaction
from rewear.models.audit_log import AuditLog
from rewear.schemas.admin import (
    AdminStatsResponse,
    AuditLogOut,
    AuditLogListResponse,
    BonusCreditResponse,
    ItemModerationResponse,
)
from rewear.schemas.item import ItemDeleteResponse, ItemListResponse, ItemOut
from rewear.schemas.ledger import AdminBonusRequest
from rewear.services import item_service, ledger_service
from rewear.services.event_bus import bus

router = APIRouter()


# ── Dashboard Stats ───────────────────────────────────────────────────────────

@router.get("/stats", response_model=AdminStatsResponse)
def get_stats(
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    """Dashboard overview stats."""
    total_users = db.query(User).filter(User.is_admin == False).count()  # noqa: E712
    pending_items = db.query(Item).filter(Item.status == "pending").count()
    approved_items = (
        db.query(Item)
        .filter(Item.status == "approved", Item.is_available.is_(True))
        .count()
    )
    swapped_items = db.query(Item).filter(Item.is_available.is_(False)).count()
    pending_swaps = db.query(SwapRequest).filter(SwapRequest.status == "pending").count()
    total_points = db.query(func.coalesce(func.sum(User.points_balance), 0)).scalar()
    total_purchased = (
        db.query(func.coalesce(func.sum(Transaction.points_amount), 0))
        .filter(Transaction.kind == "purchase", Transaction.status == "completed")
        .scalar()
    )
    total_transactions = db.query(Transaction).count()

    return AdminStatsResponse(
        total_users=total_users,
        pending_items=pending_items,
        approved_items=approved_items,
        swapped_items=swapped_items,
        pending_swaps=pending_swaps,
        total_points_in_circulation=int(total_points),
        total_points_purchased=int(total_purchased),
        total_transactions=total_transactions,
    )


# ── Item Moderation ───────────────────────────────────────────────────────────

@router.get("/items", response_model=ItemListResponse)
def list_items(
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
    status: Optional[str] = Query(None, description="pending, approved or rejected"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """All items, optionally filtered by moderation status. Swapped items included."""
    total, items = item_service.list_items(
        db,
        status=item_service.validate_item_status(status),
        available_only=False,
        page=page,
        limit=limit,
    )
    return ItemListResponse(
        total=total,
        page=page,
        limit=limit,
        items=[ItemOut.model_validate(i) for i in items],
    )


def _moderate(db: Session, admin: User, item_id: uuid.UUID, status: str, action: str) -> ItemModerationResponse:
    item, rejected = item_service.set_item_status(db, item_id, status)

    log_admin_action(
        db, admin_id=admin.id, action=action,
        target_type="item", target_id=item_id,
        details={"title": item.title, "rejected_swap_ids": [str(i) for i in rejected]},
        swaps_affected=len(rejected),
    )

    bus.notify("item:status", {"id": str(item_id), "status": status}, user_ids=[item.owner_id])
    for swap_id in rejected:
        bus.notify("swap:rejected", {"id": str(swap_id), "status": "rejected"})

    return ItemModerationResponse(
        message=f"Item {status}",
        item_id=str(item_id),
        status=status,
        swaps_rejected=len(rejected),
    )


@router.put("/items/{item_id}/approve", response_model=ItemModerationResponse)
def approve_item(
    item_id: uuid.UUID,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    """Make a submitted item visible and swappable."""
    return _moderate(db, admin, item_id, "approved", "APPROVE_ITEM")


@router.put("/items/{item_id}/reject", response_model=ItemModerationResponse)
def reject_item(
    item_id: uuid.UUID,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    """
    Hide an item. Pending swap requests for it are rejected in the same commit.
    Items that have already been swapped cannot be moderated (409).
    """
    return _moderate(db, admin, item_id, "rejected", "REJECT_ITEM")


@router.delete("/items/{item_id}", response_model=ItemDeleteResponse)
def delete_item(
    item_id: uuid.UUID,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    """Remove any item. Its swap requests go with it."""
    removed = item_service.delete_item(db, item_id, acting_user=admin)

    log_admin_action(
        db, admin_id=admin.id, action="DELETE_ITEM",
        target_type="item", target_id=item_id,
        swaps_affected=removed,
    )
    bus.notify("item:deleted", {"id": str(item_id)})
    return ItemDeleteResponse(message="Item deleted", swap_requests_deleted=removed)


# ── Wallet ────────────────────────────────────────────────────────────────────

@router.post("/wallet/bonus", response_model=BonusCreditResponse)
def credit_bonus(
    body: AdminBonusRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    """Credit bonus or refund points to any user. Requires a reason for audit trail."""
    txn = ledger_service.credit_bonus(
        db,
        user_id=body.user_id,
        points=body.points,
        reason=body.reason,
        kind=body.kind,
    )
    new_balance = ledger_service.get_balance(db, body.user_id)

    log_admin_action(
        db, admin_id=admin.id, action=f"CREDIT_{body.kind.upper()}",
        target_type="wallet", target_id=body.user_id,
        details={"points": body.points, "reason": body.reason, "transaction_id": str(txn.id)},
    )
    bus.notify(
        "wallet:credited",
        {"transaction_id": str(txn.id), "points": body.points, "kind": body.kind},
        user_ids=[body.user_id],
    )
    return BonusCreditResponse(
        message=f"Credited {body.points} points.",
        transaction_id=str(txn.id),
        new_balance=new_balance,
    )


# ── Audit Logs ────────────────────────────────────────────────────────────────

@router.get("/audit-logs", response_model=AuditLogListResponse)
def get_audit_logs(
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    action: Optional[str] = Query(None, description="Filter by action type"),
    target_type: Optional[str] = Query(None, description="Filter by target type"),
):
    """
    Read-only audit log. Newest entries first.
    Can be filtered by action type (e.g., 'APPROVE_ITEM') or target type (e.g., 'item').
    """
    query = db.query(AuditLog)

    if action:
        query = query.filter(AuditLog.action == action.upper())
    if target_type:
        query = query.filter(AuditLog.target_type == target_type.lower())

    total = query.count()
    logs = (
        query.order_by(AuditLog.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return AuditLogListResponse(
        total=total,
        page=page,
        limit=limit,
        logs=[AuditLogOut.model_validate(log) for log in logs],
    )
