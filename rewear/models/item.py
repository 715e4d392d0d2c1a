import uuid
from sqlalchemy import (
    Boolean, CheckConstraint, Column, String, Integer, Text, TIMESTAMP, ForeignKey, Uuid, Index,
    Enum as SAEnum, func, text,
)
from sqlalchemy.orm import relationship
from rewear.database import Base

ITEM_STATUSES = ("pending", "approved", "rejected")
SWAP_STATUSES = ("pending", "approved", "rejected")


class Item(Base):
    """
    A listed clothing item.

    Lifecycle: submitted 'pending' -> admin sets 'approved' or 'rejected'.
    Once a swap for it is approved, is_available flips to False and the item is
    frozen: no further swaps, no further moderation.
    """
    __tablename__ = "items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    owner_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=True)
    size = Column(String(20), nullable=True)
    condition = Column(String(50), nullable=True)
    tags = Column(String(255), nullable=True)
    image_url = Column(String(500), nullable=True)
    # Price to acquire via swap, in points
    points_price = Column(Integer, nullable=False, default=0, server_default="0")
    status = Column(
        SAEnum(*ITEM_STATUSES, name="item_status"),
        nullable=False,
        default="pending",
        server_default="pending",
    )
    is_available = Column(Boolean, nullable=False, default=True, server_default="1")
    # Requester whose swap was approved
    acquired_by_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
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
        CheckConstraint("points_price >= 0", name="ck_items_points_price_non_negative"),
        Index("ix_items_status_available", "status", "is_available"),
    )

    # ── Relationships ──────────────────────────────────────────────────────────
    owner = relationship("User", back_populates="items", foreign_keys=[owner_id])
    acquired_by = relationship("User", foreign_keys=[acquired_by_id])
    swap_requests = relationship(
        "SwapRequest",
        back_populates="item",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class SwapRequest(Base):
    """
    A requester's offer to acquire an item for its points price.

    State machine: pending -> approved | rejected. Both are terminal.
    owner_id is a snapshot of the item owner at creation time.
    """
    __tablename__ = "swap_requests"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    item_id = Column(
        Uuid,
        ForeignKey("items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    requester_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    owner_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status = Column(
        SAEnum(*SWAP_STATUSES, name="swap_status"),
        nullable=False,
        default="pending",
        server_default="pending",
    )
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
        CheckConstraint("requester_id <> owner_id", name="ck_swap_requests_not_self"),
        # At most one PENDING request per (item, requester). Approved/rejected
        # rows do not count, so a rejected requester may ask again.
        Index(
            "uq_swap_requests_pending_item_requester",
            "item_id",
            "requester_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    # ── Relationships ──────────────────────────────────────────────────────────
    item = relationship("Item", back_populates="swap_requests")
    requester = relationship("User", foreign_keys=[requester_id])
    owner = relationship("User", foreign_keys=[owner_id])
