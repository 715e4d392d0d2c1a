from starlette.requests import Request

from rewear.core.rate_limiter import user_or_ip
from rewear.core.security import create_access_token


def _request(headers=None):
    return Request({
        "type": "http",
        "method": "POST",
        "path": "/settlement/payment/order",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": ("203.0.113.7", 50000),
    })


def test_authenticated_requests_are_keyed_by_user():
    token = create_access_token("5b3c2f0e-1111-4222-8333-944455556666")
    key = user_or_ip(_request({"Authorization": f"Bearer {token}"}))
    assert key == "user:5b3c2f0e-1111-4222-8333-944455556666"


def test_bad_token_falls_back_to_ip():
    assert user_or_ip(_request({"Authorization": "Bearer garbage"})) == "203.0.113.7"


def test_anonymous_requests_are_keyed_by_ip():
    assert user_or_ip(_request()) == "203.0.113.7"
