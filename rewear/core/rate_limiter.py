"""
slowapi rate limiter instance.
Import `limiter` into routers and decorate endpoints with @limiter.limit("N/period").

Every rate-limited endpoint MUST have `request: Request` as a parameter, and
the @limiter.limit decorator goes BELOW the @router.xxx decorator.

Payment endpoints are keyed per user rather than per IP, so several shoppers
behind one NAT don't share a budget and one user can't dodge the limit by
hopping addresses. Requests without a readable token fall back to the IP.
"""
from fastapi import Request
from jwt.exceptions import InvalidTokenError
from slowapi import Limiter
from slowapi.util import get_remote_address

from rewear.config import settings
from rewear.core.security import decode_access_token


def user_or_ip(request: Request) -> str:
    auth = request.headers.get("authorization", "")
    scheme, _, token = auth.partition(" ")
    if scheme.lower() == "bearer" and token:
        try:
            sub = decode_access_token(token).get("sub")
        except InvalidTokenError:
            sub = None
        if sub:
            return f"user:{sub}"
    return get_remote_address(request)


limiter = Limiter(
    key_func=user_or_ip,
    default_limits=["200/minute"],
    enabled=settings.rate_limit_enabled,
)
