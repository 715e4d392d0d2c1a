import uuid
from sqlalchemy import Column, String, TIMESTAMP, ForeignKey, JSON, Uuid, func
from sqlalchemy.orm import relationship
from rewear.database import Base


class AuditLog(Base):
    """
    Immutable audit trail for all admin actions.
    Records are INSERT-only — never updated or deleted.

    Examples of actions recorded:
      APPROVE_ITEM, REJECT_ITEM, DELETE_ITEM, CREDIT_BONUS
    """
    __tablename__ = "audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    admin_id = Column(
        Uuid,
        # SET NULL: preserve log even if admin account is deleted
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    action = Column(String(100), nullable=False, index=True)
    # What kind of entity was affected: "item", "wallet", "user"
    target_type = Column(String(50), nullable=True)
    # UUID (as string) of the affected entity for easy lookups
    target_id = Column(String(100), nullable=True, index=True)
    # e.g. {"points": 50, "reason": "Launch week bonus"} or {"swaps_affected": 3}
    details = Column(JSON, nullable=True)
    created_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────────
    admin = relationship("User", back_populates="audit_logs", foreign_keys=[admin_id])
