"""
Payment settlement: turn a verified Razorpay payment into a ledger credit,
exactly once.

Duplicate callbacks are expected (the checkout handler and a retrying client
can both deliver the same payment). They are answered with success and
already_processed=True, never with a second credit.
"""
import logging
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from rewear.config import settings
from rewear.core.exceptions import (
    AlreadyProcessedException,
    ForbiddenException,
    InvalidSignatureException,
    InvalidStateException,
    PaymentMismatchException,
    PaymentUnavailableException,
    ValidationException,
)
from rewear.models.transaction import Transaction
from rewear.services import ledger_service, razorpay_service

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("rewear.security")

# UPI apps that can be opened with a upi://pay deep link. Anything else goes
# through the Razorpay checkout modal.
UPI_APPS = {
    "gpay": "Google Pay",
    "phonepe": "PhonePe",
    "paytm": "Paytm",
    "amazonpay": "Amazon Pay",
    "bhim": "BHIM UPI",
}


def build_upi_link(amount_paise: int, order_id: str) -> str:
    """Standard UPI payment URI; `tr` carries the order id so the payment can be matched."""
    amount = amount_paise / 100
    params = urlencode({
        "pa": settings.merchant_upi_id,
        "pn": settings.merchant_name,
        "am": f"{amount:.2f}",
        "cu": "INR",
        "tr": order_id,
        "tn": f"Purchase {amount:g} points for {settings.merchant_name}",
    })
    return f"upi://pay?{params}"


def initiate_purchase(db: Session, user_id, points: int, payment_method: str = "razorpay") -> dict:
    """
    Create a gateway order and the matching pending transaction.

    The price is computed here from configuration; the client only says how
    many points it wants.
    """
    if points <= 0:
        raise ValidationException("Invalid points amount")
    if points > settings.max_points_per_purchase:
        raise ValidationException(
            f"Cannot purchase more than {settings.max_points_per_purchase} points at once"
        )
    if not settings.razorpay_configured:
        logger.error("Purchase attempted while Razorpay credentials are missing")
        raise PaymentUnavailableException()

    method = "upi" if payment_method in UPI_APPS else "razorpay"
    amount_inr = points * settings.point_price_inr

    order = razorpay_service.create_order(
        amount_inr=amount_inr,
        points=points,
        notes={"pts": str(points), "method": payment_method, "user": str(user_id)},
    )
    logger.info("Razorpay order %s created for user %s (%s points)", order["id"], user_id, points)

    txn = ledger_service.create_pending_transaction(
        db,
        user_id=user_id,
        points_amount=points,
        monetary_amount=amount_inr,
        external_ref=order["id"],
        kind="purchase",
        payment_method=method,
        description=f"Purchase of {points} points",
    )

    upi_link = None
    if method == "upi" and settings.merchant_upi_id:
        upi_link = build_upi_link(order["amount"], order["id"])

    return {
        "order": order,
        "transaction": txn,
        "upi_link": upi_link,
    }


def settle_payment(
    db: Session,
    external_order_id: str,
    external_payment_id: str,
    provided_signature: str,
    transaction_id,
    acting_user_id=None,
) -> dict:
    """
    Verify the gateway signature and credit the transaction's points once.

    Returns {"already_processed": bool, "new_balance": int, "transaction": Transaction}.
    """
    if not razorpay_service.verify_payment_signature(
        razorpay_order_id=external_order_id,
        razorpay_payment_id=external_payment_id,
        razorpay_signature=provided_signature,
    ):
        security_logger.warning(
            "Invalid payment signature: order=%s payment=%s transaction=%s user=%s",
            external_order_id, external_payment_id, transaction_id, acting_user_id,
        )
        raise InvalidSignatureException()

    txn = ledger_service.get_transaction(db, transaction_id)

    if acting_user_id is not None and txn.user_id != acting_user_id:
        raise ForbiddenException("This transaction belongs to another user")
    if txn.external_order_id != external_order_id:
        security_logger.warning(
            "Signed order %s presented for transaction %s (order %s)",
            external_order_id, transaction_id, txn.external_order_id,
        )
        raise PaymentMismatchException()

    if txn.status == "completed":
        return _already_processed(db, txn)

    try:
        result = ledger_service.complete_transaction(
            db, transaction_id, external_payment_ref=external_payment_id
        )
    except AlreadyProcessedException:
        # Lost the race against a concurrent duplicate; the winner credited it.
        db.expire_all()
        txn = ledger_service.get_transaction(db, transaction_id)
        if txn.status != "completed":
            raise InvalidStateException(f"Transaction is {txn.status} and cannot be completed")
        return _already_processed(db, txn)

    return {
        "already_processed": False,
        "new_balance": result["new_balance"],
        "transaction": result["transaction"],
    }


def fail_payment(db: Session, transaction_id, acting_user_id, reason: str = None) -> Transaction:
    """Gateway reported a failure, or the user abandoned checkout."""
    txn = ledger_service.get_transaction(db, transaction_id)
    if txn.user_id != acting_user_id:
        raise ForbiddenException("This transaction belongs to another user")
    return ledger_service.fail_transaction(db, transaction_id, reason=reason, status="failed")


def _already_processed(db: Session, txn: Transaction) -> dict:
    logger.info("Duplicate settlement for transaction %s ignored", txn.id)
    return {
        "already_processed": True,
        "new_balance": ledger_service.get_balance(db, txn.user_id),
        "transaction": txn,
    }
