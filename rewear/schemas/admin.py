from pydantic import BaseModel, field_validator, ConfigDict
from typing import Optional, List
from datetime import datetime


class AdminStatsResponse(BaseModel):
    """Dashboard stats for admin panel."""
    total_users: int
    pending_items: int
    approved_items: int
    swapped_items: int
    pending_swaps: int
    total_points_in_circulation: int   # sum of all user balances
    total_points_purchased: int        # sum of completed purchase transactions
    total_transactions: int


class AuditLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    admin_id: Optional[str] = None
    action: str
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    details: Optional[dict] = None
    created_at: datetime

    @field_validator("id", "admin_id", mode="before")
    @classmethod
    def uuid_to_str(cls, v) -> Optional[str]:
        if v is None:
            return None
        return str(v)


class AuditLogListResponse(BaseModel):
    total: int
    page: int
    limit: int
    logs: List[AuditLogOut]


class ItemModerationResponse(BaseModel):
    message: str
    item_id: str
    status: str
    swaps_rejected: int = 0


class BonusCreditResponse(BaseModel):
    message: str
    transaction_id: str
    new_balance: int
