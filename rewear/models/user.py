import uuid
from sqlalchemy import Boolean, CheckConstraint, Column, Integer, String, TIMESTAMP, Uuid, func
from sqlalchemy.orm import relationship, validates
from rewear.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    # Stored lower-cased so the unique index is effectively case-insensitive
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False)

    # Flags
    is_admin = Column(Boolean, default=False, server_default="0", nullable=False)
    is_active = Column(Boolean, default=False, server_default="0", nullable=False)

    # Points are integers — never floats. 1 point = ₹1.
    # Written ONLY by ledger_service, always via atomic UPDATE expressions.
    points_balance = Column(Integer, nullable=False, default=0, server_default="0")

    created_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint("points_balance >= 0", name="ck_users_points_non_negative"),
    )

    # ── Relationships ──────────────────────────────────────────────────────────
    transactions = relationship(
        "Transaction",
        back_populates="user",
        foreign_keys="[Transaction.user_id]",
        # Ledger rows are never deleted; the FK refuses to drop a user who has any
        passive_deletes="all",
    )
    items = relationship(
        "Item",
        back_populates="owner",
        foreign_keys="[Item.owner_id]",
        cascade="all, delete-orphan",
    )
    audit_logs = relationship(
        "AuditLog",
        back_populates="admin",
        foreign_keys="[AuditLog.admin_id]",
    )

    @validates("email")
    def normalise_email(self, key, value: str) -> str:
        return value.strip().lower()
