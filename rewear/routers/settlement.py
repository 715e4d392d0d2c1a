"""
Settlement router: points purchases and swap approval.

Payment flow:
  1. POST /settlement/payment/order   → create Razorpay order + pending transaction
  2. [Frontend opens Razorpay checkout modal — user pays]
  3. POST /settlement/payment/verify  → verify HMAC signature → credit points once
  (3b. POST /settlement/payment/fail  → user abandoned / gateway failure)

Swap flow:
  1. POST /settlement/swap                  → requester asks for an approved item
  2. POST /settlement/swap/{id}/approve     → owner accepts, points move atomically
     POST /settlement/swap/{id}/reject      → owner declines, no ledger effect

Every endpoint is safe to retry: duplicates either return already_processed
or fail with a 409 without changing anything.

Notifications are emitted after the service call has committed. They are
fire-and-forget and can never turn a success into an error.
"""
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from rewear.config import settings
from rewear.database import get_db
from rewear.core.dependencies import get_current_user
from rewear.core.rate_limiter import limiter
from rewear.models.user import User
from rewear.schemas.ledger import (
    PaymentOrderRequest,
    PaymentOrderResponse,
    PaymentVerifyRequest,
    PaymentVerifyResponse,
    PaymentFailRequest,
    PaymentFailResponse,
    TransactionOut,
)
from rewear.schemas.swap import (
    SwapCreateRequest,
    SwapResponse,
    SwapApproveResponse,
    SwapListResponse,
    SwapOut,
)
from rewear.services import payment_service, swap_service
from rewear.services.event_bus import bus

router = APIRouter()


# ── Payments ──────────────────────────────────────────────────────────────────

@router.post("/payment/order", response_model=PaymentOrderResponse)
@limiter.limit(settings.payment_rate_limit)
def create_payment_order(
    request: Request,
    body: PaymentOrderRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Create a Razorpay order for `points` points and the pending transaction
    that the verify step will complete.

    Returns:
      - order_id: needed by frontend for checkout
      - amount_paise: the charge amount in paise
      - key_id: public key for the Razorpay modal
      - transaction_id: must be sent back to /payment/verify
      - upi_link: deep link when a UPI app was chosen and a merchant VPA is configured
    """
    result = payment_service.initiate_purchase(
        db,
        user_id=current_user.id,
        points=body.points,
        payment_method=body.payment_method,
    )
    order = result["order"]
    return PaymentOrderResponse(
        order_id=order["id"],
        amount_paise=order["amount"],
        currency=order.get("currency", "INR"),
        points=body.points,
        transaction_id=str(result["transaction"].id),
        key_id=settings.razorpay_key_id,
        upi_link=result["upi_link"],
    )


@router.post("/payment/verify", response_model=PaymentVerifyResponse)
@limiter.limit(settings.payment_rate_limit)
def verify_payment(
    request: Request,
    body: PaymentVerifyRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Verify Razorpay payment signature and credit points.

    CRITICAL SECURITY STEP:
    The HMAC-SHA256 signature is verified using our Razorpay secret.
    If the signature doesn't match, the request is rejected — no points credited.

    Idempotency: a transaction completes at most once. Re-submitting the same
    transaction returns success with already_processed=true and the current
    balance instead of crediting again.
    """
    result = payment_service.settle_payment(
        db,
        external_order_id=body.external_order_id,
        external_payment_id=body.external_payment_id,
        provided_signature=body.signature,
        transaction_id=body.transaction_id,
        acting_user_id=current_user.id,
    )
    txn = result["transaction"]

    if result["already_processed"]:
        message = "Payment already processed."
    else:
        message = f"Successfully added {txn.points_amount} points to your account!"
        bus.notify(
            "payment:completed",
            {"transaction_id": str(txn.id), "points": txn.points_amount},
            user_ids=[txn.user_id],
        )

    return PaymentVerifyResponse(
        already_processed=result["already_processed"],
        message=message,
        new_balance=result["new_balance"],
        points_credited=0 if result["already_processed"] else txn.points_amount,
        transaction_id=str(txn.id),
    )


@router.post("/payment/fail", response_model=PaymentFailResponse)
def fail_payment(
    body: PaymentFailRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Mark the caller's pending purchase as failed (checkout closed or payment declined)."""
    txn = payment_service.fail_payment(
        db,
        transaction_id=body.transaction_id,
        acting_user_id=current_user.id,
        reason=body.reason,
    )
    bus.notify("payment:failed", {"transaction_id": str(txn.id)}, user_ids=[txn.user_id])
    return PaymentFailResponse(transaction=TransactionOut.model_validate(txn))


# ── Swaps ─────────────────────────────────────────────────────────────────────

@router.post("/swap", response_model=SwapResponse, status_code=201)
def create_swap(
    body: SwapCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Request an approved item. The owner is notified."""
    swap = swap_service.create_swap_request(db, item_id=body.item_id, requester_id=current_user.id)
    bus.notify(
        "swap:created",
        {"id": str(swap.id), "item_id": str(swap.item_id), "status": swap.status},
        user_ids=[swap.owner_id],
    )
    return SwapResponse(message="Swap request sent", swap=SwapOut.model_validate(swap))


@router.get("/swap/incoming", response_model=SwapListResponse)
def incoming_swaps(
    status: Optional[str] = Query(None, pattern="^(pending|approved|rejected)$"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Swap requests on the caller's items."""
    swaps = swap_service.list_incoming(db, owner_id=current_user.id, status=status)
    return SwapListResponse(swaps=[SwapOut.model_validate(s) for s in swaps])


@router.get("/swap/outgoing", response_model=SwapListResponse)
def outgoing_swaps(
    status: Optional[str] = Query(None, pattern="^(pending|approved|rejected)$"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Swap requests the caller has made."""
    swaps = swap_service.list_outgoing(db, requester_id=current_user.id, status=status)
    return SwapListResponse(swaps=[SwapOut.model_validate(s) for s in swaps])


@router.post("/swap/{swap_id}/approve", response_model=SwapApproveResponse)
def approve_swap(
    swap_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Approve a pending swap on one of your items.

    Full atomic operation:
      1. Swap pending → approved (only one concurrent approval can win)
      2. Item marked unavailable
      3. item.points_price moved from requester to owner
      4. Competing pending requests for the item rejected

    402 if the requester can't pay. The swap stays pending and can be
    retried later or rejected.
    """
    result = swap_service.approve_swap(db, swap_id=swap_id, acting_user_id=current_user.id)
    swap = result["swap"]

    bus.notify(
        "swap:approved",
        {"id": str(swap.id), "item_id": str(swap.item_id), "status": "approved"},
        user_ids=[swap.requester_id, swap.owner_id],
    )
    for rejected_id in result["auto_rejected"]:
        bus.notify("swap:rejected", {"id": str(rejected_id), "status": "rejected"})
    bus.notify("item:status", {"id": str(swap.item_id), "status": "swapped"})

    return SwapApproveResponse(
        message="Swap approved",
        swap=SwapOut.model_validate(swap),
        requester_balance=result["requester_balance"],
        owner_balance=result["owner_balance"],
        auto_rejected=[str(i) for i in result["auto_rejected"]],
    )


@router.post("/swap/{swap_id}/reject", response_model=SwapResponse)
def reject_swap(
    swap_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Decline a pending swap on one of your items. No points move."""
    swap = swap_service.reject_swap(db, swap_id=swap_id, acting_user_id=current_user.id)
    bus.notify(
        "swap:rejected",
        {"id": str(swap.id), "item_id": str(swap.item_id), "status": "rejected"},
        user_ids=[swap.requester_id],
    )
    return SwapResponse(message="Swap rejected", swap=SwapOut.model_validate(swap))
