"""
User schemas: public profile views.
"""
from pydantic import BaseModel, field_validator, ConfigDict
from datetime import datetime


class UserOut(BaseModel):
    """
    Public-safe user representation of the acting user.
    Pydantic only exposes fields declared here.
    """
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    is_admin: bool
    is_active: bool
    points_balance: int
    created_at: datetime

    # UUID → str conversion for JSON serialization
    @field_validator("id", mode="before")
    @classmethod
    def uuid_to_str(cls, v) -> str:
        return str(v)
