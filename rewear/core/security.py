"""
JWT access-token helpers.
Uses PyJWT (not python-jose) — actively maintained, no known CVEs as of 2026.

Session issuance lives in the auth front-end; this service only needs to
mint tokens for tooling/tests and to validate the ones it receives.
"""
import jwt
from jwt.exceptions import InvalidTokenError
from datetime import datetime, timedelta, timezone
from rewear.config import settings


def create_access_token(user_id: str, is_admin: bool = False) -> str:
    """
    Short-lived access token (default 30 min).
    Contains user_id (as 'sub') and is_admin flag.

    PyJWT 2.x note: jwt.encode() returns str directly — no need to call .decode().
    Always use timezone-aware datetimes to avoid PyJWT deprecation warnings.
    """
    payload = {
        "sub": str(user_id),      # 'sub' is the standard JWT subject claim
        "is_admin": is_admin,
        "type": "access",         # custom claim to distinguish token types
        "iat": datetime.now(timezone.utc),
        "exp": datetime.now(timezone.utc) + timedelta(
            minutes=settings.access_token_expire_minutes
        ),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> dict:
    """
    Decodes and validates an access token.
    Raises jwt.exceptions.InvalidTokenError (or subclass) on any failure.
    The caller is responsible for converting this into an HTTPException.
    """
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    if payload.get("type") != "access":
        raise InvalidTokenError("Not an access token")
    return payload
