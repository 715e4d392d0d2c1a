import uuid
from pydantic import BaseModel, field_validator, ConfigDict
from typing import Optional, List
from datetime import datetime


class BalanceOut(BaseModel):
    user_id: str
    points_balance: int


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    counterparty_id: Optional[str] = None
    kind: str
    points_amount: int
    amount_inr: int
    status: str
    payment_method: str
    external_order_id: Optional[str] = None
    external_payment_id: Optional[str] = None
    description: str
    created_at: datetime
    updated_at: datetime

    @field_validator("id", "user_id", "counterparty_id", mode="before")
    @classmethod
    def uuid_to_str(cls, v) -> Optional[str]:
        return str(v) if v is not None else None


class PaginationOut(BaseModel):
    current_page: int
    total_pages: int
    total_transactions: int
    has_next_page: bool
    has_prev_page: bool
    limit: int


class TransactionListResponse(BaseModel):
    success: bool = True
    transactions: List[TransactionOut]
    pagination: PaginationOut


class PaymentOrderRequest(BaseModel):
    """Start a points purchase. The price is derived server-side."""
    points: int
    payment_method: str = "razorpay"

    @field_validator("points")
    @classmethod
    def points_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Must purchase at least 1 point")
        return v

    @field_validator("payment_method")
    @classmethod
    def method_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Payment method is required")
        return v.strip().lower()


class PaymentOrderResponse(BaseModel):
    """Returned to frontend to open Razorpay checkout (or a UPI app)."""
    success: bool = True
    order_id: str
    amount_paise: int         # Razorpay works in paise (rupees × 100)
    currency: str = "INR"
    points: int
    transaction_id: str
    key_id: str               # frontend needs this to open the checkout
    upi_link: Optional[str] = None


class PaymentVerifyRequest(BaseModel):
    """
    Frontend sends this after user completes Razorpay payment.
    The first three fields come from Razorpay's checkout callback.
    """
    external_order_id: str
    external_payment_id: str
    signature: str
    transaction_id: uuid.UUID

    @field_validator("external_order_id", "external_payment_id", "signature")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Missing payment parameters")
        return v.strip()


class PaymentVerifyResponse(BaseModel):
    success: bool = True
    already_processed: bool
    message: str
    new_balance: int
    points_credited: int
    transaction_id: str


class PaymentFailRequest(BaseModel):
    transaction_id: uuid.UUID
    reason: Optional[str] = None


class PaymentFailResponse(BaseModel):
    success: bool = True
    transaction: TransactionOut


class AdminBonusRequest(BaseModel):
    """Admin-initiated bonus or refund credit."""
    user_id: uuid.UUID
    points: int
    reason: str
    kind: str = "bonus"

    @field_validator("points")
    @classmethod
    def points_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Points must be positive")
        return v

    @field_validator("kind")
    @classmethod
    def kind_valid(cls, v: str) -> str:
        if v not in ("bonus", "refund"):
            raise ValueError("kind must be 'bonus' or 'refund'")
        return v

    @field_validator("reason")
    @classmethod
    def reason_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("reason cannot be empty")
        return v.strip()
