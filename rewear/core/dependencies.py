"""
FastAPI dependencies used across routers.
Keep this file lean — only auth/DB dependencies go here.
Business logic belongs in services/.
"""
import uuid

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from jwt.exceptions import InvalidTokenError

from rewear.database import get_db
from rewear.core.security import decode_access_token
from rewear.core.exceptions import CredentialsException, InactiveUserException, ForbiddenException
from rewear.models.user import User

# Tokens are issued by the auth front-end; the URL is only used by the docs UI.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def user_from_token(db: Session, token: str) -> User:
    """
    Resolve a bearer token to a User, or raise CredentialsException.
    Shared by the HTTP dependency and the WebSocket endpoint.
    """
    try:
        payload = decode_access_token(token)
        user_id = uuid.UUID(payload.get("sub"))
    except (InvalidTokenError, TypeError, ValueError):
        raise CredentialsException()

    user = db.get(User, user_id)
    if user is None:
        raise CredentialsException()
    return user


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Validates the JWT access token and returns the authenticated User.

    Checks performed (in order):
    1. Token is a valid JWT signed with our secret key
    2. Token type is 'access'
    3. 'sub' claim is a UUID that maps to a real user
    4. User account is active (email verified)

    The acting user for every settlement operation comes from here and nowhere else.
    """
    user = user_from_token(db, token)
    if not user.is_active:
        raise InactiveUserException()
    return user


def get_current_admin(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Requires the authenticated user to be an admin.
    Returns the User object so admin routes can access it normally.
    """
    if not current_user.is_admin:
        raise ForbiddenException("Admin access required")
    return current_user
