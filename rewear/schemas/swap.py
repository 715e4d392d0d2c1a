import uuid
from pydantic import BaseModel, field_validator, ConfigDict
from typing import Optional, List
from datetime import datetime


class SwapOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    item_id: str
    requester_id: str
    owner_id: str
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    @field_validator("id", "item_id", "requester_id", "owner_id", mode="before")
    @classmethod
    def uuid_to_str(cls, v) -> str:
        return str(v)


class SwapCreateRequest(BaseModel):
    item_id: uuid.UUID


class SwapResponse(BaseModel):
    success: bool = True
    message: str
    swap: SwapOut


class SwapApproveResponse(SwapResponse):
    requester_balance: int
    owner_balance: int
    auto_rejected: List[str] = []


class SwapListResponse(BaseModel):
    swaps: List[SwapOut]
