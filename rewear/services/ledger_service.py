"""
Ledger service: the only code allowed to change users.points_balance.

CRITICAL: balances are never loaded, mutated in Python and saved back. Every
change is a single UPDATE with a column expression (points_balance + n), and
every status change is a compare-and-set UPDATE ... WHERE status IN (...)
whose rowcount tells us whether we won. Two concurrent duplicate webhooks, or
two concurrent transfers out of the same wallet, therefore cannot both apply.

Locking order convention (to prevent deadlocks):
  When more than one user row is touched, lock them with SELECT FOR UPDATE in
  ascending id order. Swap settlement locks the item row, then the swap rows
  (via CAS UPDATEs), BEFORE calling transfer_points. Item moderation takes the
  item row before the swap rows as well. Never reverse this order.

Functions that take `commit=True` can be composed into a larger unit of work
by passing commit=False; the caller then owns commit/rollback.
"""
import logging
from typing import Optional

from sqlalchemy import select, update, or_, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from rewear.models.transaction import Transaction, TRANSACTION_KINDS
from rewear.models.user import User
from rewear.core.exceptions import (
    AlreadyProcessedException,
    DuplicateReferenceException,
    InsufficientBalanceException,
    InvalidStateException,
    NotFoundException,
    TransactionNotFoundException,
    ValidationException,
)

logger = logging.getLogger(__name__)

COMPLETABLE_STATUSES = ("pending", "failed", "cancelled")


def get_balance(db: Session, user_id) -> int:
    """Current balance read straight from the row, bypassing the identity map."""
    balance = db.execute(
        select(User.points_balance).where(User.id == user_id)
    ).scalar_one_or_none()
    if balance is None:
        raise NotFoundException("User")
    return balance


def get_transaction(db: Session, transaction_id) -> Transaction:
    txn = db.get(Transaction, transaction_id)
    if not txn:
        raise TransactionNotFoundException()
    return txn


def get_transaction_by_order(db: Session, external_order_id: str) -> Optional[Transaction]:
    return db.execute(
        select(Transaction).where(Transaction.external_order_id == external_order_id)
    ).scalar_one_or_none()


def create_pending_transaction(
    db: Session,
    user_id,
    points_amount: int,
    monetary_amount: int,
    external_ref: str,
    kind: str = "purchase",
    payment_method: str = "razorpay",
    description: str = None,
) -> Transaction:
    """
    Record a payment attempt before the user pays.

    external_ref is the gateway order id. It is UNIQUE, so creating the same
    order twice raises DuplicateReferenceException instead of producing a
    second transaction that could later be completed.
    """
    if points_amount is None or points_amount <= 0:
        raise ValidationException("Points amount must be positive")
    if monetary_amount is None or monetary_amount < 0:
        raise ValidationException("Monetary amount cannot be negative")
    if not external_ref:
        raise ValidationException("External payment reference is required")
    if kind not in TRANSACTION_KINDS:
        raise ValidationException(f"kind must be one of: {', '.join(TRANSACTION_KINDS)}")

    if db.get(User, user_id) is None:
        raise NotFoundException("User")

    # Cheap pre-check; the UNIQUE constraint below catches the race.
    if get_transaction_by_order(db, external_ref) is not None:
        raise DuplicateReferenceException(external_ref)

    txn = Transaction(
        user_id=user_id,
        kind=kind,
        points_amount=points_amount,
        amount_inr=monetary_amount,
        status="pending",
        payment_method=payment_method,
        external_order_id=external_ref,
        description=description or f"Purchase of {points_amount} points",
    )
    db.add(txn)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateReferenceException(external_ref)
    db.refresh(txn)
    logger.info("Pending %s transaction %s created for user %s (%s points)",
                kind, txn.id, user_id, points_amount)
    return txn


def complete_transaction(
    db: Session,
    transaction_id,
    external_payment_ref: str = None,
) -> dict:
    """
    Move a transaction to completed and credit its points, atomically.

    Failed and cancelled purchases can still complete: a user may close the
    checkout before a late UPI confirmation arrives, and a captured payment
    must still be credited.

    The status flip and the balance increment are committed together or not at
    all. A second call for the same transaction raises AlreadyProcessedException
    and credits nothing, whether it arrives after the first commit (seen by
    the status check) or concurrently with it (seen by the CAS rowcount).

    Returns {"new_balance": int, "transaction": Transaction}.
    """
    txn = get_transaction(db, transaction_id)
    if txn.status == "completed":
        raise AlreadyProcessedException()
    if txn.status not in COMPLETABLE_STATUSES:
        raise InvalidStateException(f"Transaction is {txn.status} and cannot be completed")

    user_id = txn.user_id
    points = txn.points_amount

    values = {"status": "completed", "updated_at": func.now()}
    if external_payment_ref:
        values["external_payment_id"] = external_payment_ref

    try:
        result = db.execute(
            update(Transaction)
            .where(
                Transaction.id == transaction_id,
                Transaction.status.in_(COMPLETABLE_STATUSES),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # Someone else completed it between our read and our write.
            db.rollback()
            raise AlreadyProcessedException()

        _credit(db, user_id, points)
        db.commit()
    except NotFoundException:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        # external_payment_id is UNIQUE: this payment already completed another transaction
        raise DuplicateReferenceException(external_payment_ref)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Storage failure while completing transaction %s", transaction_id)
        raise

    db.refresh(txn)
    new_balance = get_balance(db, user_id)
    logger.info("Transaction %s completed: +%s points to user %s (balance %s)",
                transaction_id, points, user_id, new_balance)
    return {"new_balance": new_balance, "transaction": txn}


def fail_transaction(
    db: Session,
    transaction_id,
    reason: str = None,
    status: str = "failed",
) -> Transaction:
    """Mark a pending transaction failed or cancelled. No balance effect."""
    if status not in ("failed", "cancelled"):
        raise ValidationException("status must be 'failed' or 'cancelled'")

    txn = get_transaction(db, transaction_id)
    if txn.status == "completed":
        raise AlreadyProcessedException()
    if txn.status != "pending":
        raise InvalidStateException(f"Transaction is already {txn.status}")

    details = dict(txn.details or {})
    if reason:
        details["failure_reason"] = reason

    result = db.execute(
        update(Transaction)
        .where(Transaction.id == transaction_id, Transaction.status == "pending")
        .values(status=status, details=details, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise InvalidStateException("Transaction is no longer pending")
    db.commit()
    db.refresh(txn)
    logger.info("Transaction %s marked %s (%s)", transaction_id, status, reason or "no reason given")
    return txn


def transfer_points(
    db: Session,
    from_user_id,
    to_user_id,
    amount: int,
    description: str = None,
    reference: dict = None,
    commit: bool = True,
) -> dict:
    """
    Move `amount` points from one user to another.

    Debit and credit happen in the same DB transaction; the debit is
    conditional on the balance covering it, so a balance can never go
    negative and a failed debit leaves both sides untouched. The sum of the
    two balances is the same before and after.

    A completed kind='swap' transaction is appended for the audit trail
    (user_id = receiver, counterparty_id = payer) when amount > 0.

    Returns {"from_balance": int, "to_balance": int}.
    """
    if amount is None or amount < 0:
        raise ValidationException("Transfer amount cannot be negative")
    if from_user_id == to_user_id:
        raise ValidationException("Cannot transfer points to the same user")

    try:
        # Lock both rows in a fixed order so two opposite transfers can't deadlock.
        locked = db.execute(
            select(User.id, User.points_balance)
            .where(User.id.in_([from_user_id, to_user_id]))
            .order_by(User.id)
            .with_for_update()
        ).all()
        balances = {row.id: row.points_balance for row in locked}
        if from_user_id not in balances or to_user_id not in balances:
            raise NotFoundException("User")

        if amount > 0:
            debited = db.execute(
                update(User)
                .where(User.id == from_user_id, User.points_balance >= amount)
                .values(points_balance=User.points_balance - amount)
                .execution_options(synchronize_session=False)
            )
            if debited.rowcount != 1:
                raise InsufficientBalanceException(
                    available=get_balance(db, from_user_id), required=amount
                )
            _credit(db, to_user_id, amount)

            db.add(Transaction(
                user_id=to_user_id,
                counterparty_id=from_user_id,
                kind="swap",
                points_amount=amount,
                amount_inr=0,
                status="completed",
                payment_method="wallet",
                description=description or f"Transfer of {amount} points",
                details=reference,
            ))

        if commit:
            db.commit()
        else:
            db.flush()
    except (InsufficientBalanceException, NotFoundException):
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Storage failure while transferring %s points %s -> %s",
                         amount, from_user_id, to_user_id)
        raise

    from_balance = get_balance(db, from_user_id)
    to_balance = get_balance(db, to_user_id)
    logger.info("Transferred %s points %s -> %s", amount, from_user_id, to_user_id)
    return {"from_balance": from_balance, "to_balance": to_balance}


def credit_bonus(
    db: Session,
    user_id,
    points: int,
    reason: str,
    kind: str = "bonus",
) -> Transaction:
    """Admin-initiated credit (bonus or refund). Ledger row and credit commit together."""
    if points is None or points <= 0:
        raise ValidationException("Points amount must be positive")
    if kind not in ("bonus", "refund"):
        raise ValidationException("kind must be 'bonus' or 'refund'")
    if db.get(User, user_id) is None:
        raise NotFoundException("User")

    txn = Transaction(
        user_id=user_id,
        kind=kind,
        points_amount=points,
        amount_inr=0,
        status="completed",
        payment_method="wallet",
        description=f"{kind.capitalize()}: {reason}",
    )
    try:
        db.add(txn)
        _credit(db, user_id, points)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Storage failure while crediting %s to user %s", kind, user_id)
        raise
    db.refresh(txn)
    return txn


def get_transactions(
    db: Session,
    user_id,
    page: int = 1,
    limit: int = 20,
    kind: Optional[str] = None,
    status: Optional[str] = None,
) -> tuple[int, list[Transaction]]:
    """
    Paginated transaction history for a user, newest first.
    Includes transfers the user paid for (counterparty side).
    Returns (total_count, list_of_transactions).
    """
    query = db.query(Transaction).filter(
        or_(Transaction.user_id == user_id, Transaction.counterparty_id == user_id)
    )
    if kind:
        query = query.filter(Transaction.kind == kind)
    if status:
        query = query.filter(Transaction.status == status)

    total = query.count()
    transactions = (
        query.order_by(Transaction.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return total, transactions


def _credit(db: Session, user_id, amount: int) -> None:
    credited = db.execute(
        update(User)
        .where(User.id == user_id)
        .values(points_balance=User.points_balance + amount)
        .execution_options(synchronize_session=False)
    )
    if credited.rowcount != 1:
        raise NotFoundException("User")
