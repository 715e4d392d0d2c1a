"""
Wallet router: points balance and transaction history.

Purchases and transfers are in the settlement router; this one is read-only.
"""
import math
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rewear.database import get_db
from rewear.core.dependencies import get_current_user
from rewear.models.user import User
from rewear.schemas.ledger import (
    BalanceOut,
    PaginationOut,
    TransactionListResponse,
    TransactionOut,
)
from rewear.services import ledger_service

router = APIRouter()


@router.get("", response_model=BalanceOut)
def get_wallet(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Return the current user's points balance."""
    return BalanceOut(
        user_id=str(current_user.id),
        points_balance=ledger_service.get_balance(db, current_user.id),
    )


@router.get("/transactions", response_model=TransactionListResponse)
def get_transactions(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(10, ge=1, le=100, description="Items per page"),
    kind: Optional[str] = Query(None, pattern="^(purchase|swap|refund|bonus)$"),
    status: Optional[str] = Query(None, pattern="^(pending|completed|failed|cancelled)$"),
):
    """
    Paginated transaction history for the current user.
    Ordered newest-first. Max 100 per page.
    Swap transfers appear for both the payer and the receiver.
    """
    total, transactions = ledger_service.get_transactions(
        db, current_user.id, page=page, limit=limit, kind=kind, status=status
    )
    total_pages = math.ceil(total / limit) if total else 0
    return TransactionListResponse(
        transactions=[TransactionOut.model_validate(t) for t in transactions],
        pagination=PaginationOut(
            current_page=page,
            total_pages=total_pages,
            total_transactions=total,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
            limit=limit,
        ),
    )
