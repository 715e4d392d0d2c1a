"""
Shared fixtures.

The app runs against an in-memory SQLite database: settings are read at
import time, so the environment is prepared before anything from rewear is
imported.
"""
import os
import uuid

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_secret")
os.environ.setdefault("SQLALCHEMY_DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from rewear.core.security import create_access_token
from rewear.database import Base, SessionLocal, engine
from rewear.main import app
from rewear.models.item import Item, SwapRequest
from rewear.models.user import User
from rewear.services.event_bus import bus


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def reset_bus():
    yield
    bus.listeners.clear()
    bus.active_connections.clear()


@pytest.fixture
def make_user(db):
    def _make_user(name="user", balance=0, is_admin=False, is_active=True):
        user = User(
            email=f"{name}-{uuid.uuid4().hex[:8]}@example.com",
            name=name,
            points_balance=balance,
            is_admin=is_admin,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_item(db):
    def _make_item(owner, points_price=40, status="approved", title="Denim jacket"):
        item = Item(
            owner_id=owner.id,
            title=title,
            category="outerwear",
            size="M",
            points_price=points_price,
            status=status,
            is_available=True,
        )
        db.add(item)
        db.commit()
        db.refresh(item)
        return item

    return _make_item


@pytest.fixture
def make_swap(db):
    def _make_swap(item, requester, status="pending"):
        swap = SwapRequest(
            item_id=item.id,
            requester_id=requester.id,
            owner_id=item.owner_id,
            status=status,
        )
        db.add(swap)
        db.commit()
        db.refresh(swap)
        return swap

    return _make_swap


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        token = create_access_token(str(user.id), is_admin=user.is_admin)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers
