"""
Users router: the caller's own profile.

Account creation, login and profile editing belong to the auth front-end.
"""
from fastapi import APIRouter, Depends

from rewear.core.dependencies import get_current_user
from rewear.models.user import User
from rewear.schemas.user import UserOut

router = APIRouter()


@router.get("/me", response_model=UserOut)
def get_me(current_user: User = Depends(get_current_user)):
    """Return the authenticated user's profile, including the points balance."""
    return current_user
