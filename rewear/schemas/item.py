from pydantic import BaseModel, field_validator, ConfigDict
from typing import Optional, List
from datetime import datetime


class ItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    size: Optional[str] = None
    condition: Optional[str] = None
    tags: Optional[str] = None
    image_url: Optional[str] = None
    points_price: int
    status: str
    is_available: bool
    acquired_by_id: Optional[str] = None
    created_at: datetime

    @field_validator("id", "owner_id", "acquired_by_id", mode="before")
    @classmethod
    def uuid_to_str(cls, v) -> Optional[str]:
        return str(v) if v is not None else None


class ItemListResponse(BaseModel):
    total: int
    page: int
    limit: int
    items: List[ItemOut]


class ItemCreateRequest(BaseModel):
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    size: Optional[str] = None
    condition: Optional[str] = None
    tags: Optional[str] = None
    # Uploaded beforehand; image storage is not handled by this service
    image_url: Optional[str] = None
    points_price: int = 0

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title cannot be empty")
        return v.strip()

    @field_validator("points_price")
    @classmethod
    def price_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("points_price cannot be negative")
        return v


class ItemCreateResponse(BaseModel):
    message: str
    item: ItemOut


class ItemDeleteResponse(BaseModel):
    message: str
    swap_requests_deleted: int
