import uuid
from sqlalchemy import (
    CheckConstraint, Column, Integer, TIMESTAMP, ForeignKey, String, JSON, Uuid, Index,
    Enum as SAEnum, func,
)
from sqlalchemy.orm import relationship
from rewear.database import Base

TRANSACTION_KINDS = ("purchase", "swap", "refund", "bonus")
TRANSACTION_STATUSES = ("pending", "completed", "failed", "cancelled")
PAYMENT_METHODS = ("razorpay", "upi", "wallet")


class Transaction(Base):
    """
    Points ledger entry. Append-only: rows are inserted, their status may move
    pending -> completed|failed|cancelled exactly once, and they are never deleted.

    Purchases are created 'pending' when the gateway order is created and are
    completed by payment settlement. Swap transfers and admin bonuses are written
    'completed' in the same DB transaction as the balance change they record.
    """
    __tablename__ = "transactions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    # Owner of the balance being credited. RESTRICT: a user with ledger rows cannot be deleted.
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    # Payer side of a swap transfer; NULL for purchases and bonuses
    counterparty_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    kind = Column(SAEnum(*TRANSACTION_KINDS, name="txn_kind"), nullable=False)
    points_amount = Column(Integer, nullable=False)
    # Monetary amount in whole rupees. 0 for internal movements.
    amount_inr = Column(Integer, nullable=False, default=0, server_default="0")
    status = Column(
        SAEnum(*TRANSACTION_STATUSES, name="txn_status"),
        nullable=False,
        default="pending",
        server_default="pending",
    )
    payment_method = Column(
        SAEnum(*PAYMENT_METHODS, name="payment_method"),
        nullable=False,
        default="razorpay",
        server_default="razorpay",
    )
    # Gateway order id. UNIQUE: one transaction per order, which is what makes
    # order creation idempotent.
    external_order_id = Column(String(100), unique=True, nullable=True)
    # Gateway payment id, attached on completion. UNIQUE: a payment can
    # complete at most one transaction.
    external_payment_id = Column(String(100), unique=True, nullable=True)
    description = Column(String(255), nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        CheckConstraint("points_amount > 0", name="ck_transactions_points_positive"),
        CheckConstraint("amount_inr >= 0", name="ck_transactions_amount_non_negative"),
        Index("ix_transactions_user_created", "user_id", "created_at"),
        Index("ix_transactions_status", "status"),
    )

    # ── Relationships ──────────────────────────────────────────────────────────
    user = relationship("User", back_populates="transactions", foreign_keys=[user_id])
    counterparty = relationship("User", foreign_keys=[counterparty_id])
