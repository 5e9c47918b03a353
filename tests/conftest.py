import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from datetime import time

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db.base import Base
from db.session import configure_sqlite

import models  # noqa: F401

from main import app
from api.deps import get_db, get_current_user
from models.orm_gym import GymEntity
from models.orm_time_slot import TimeSlotEntity
from models.orm_user import UserEntity


@pytest.fixture()
def engine():
    eng = configure_sqlite(
        create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    )
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture()
def db_session(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def user(db_session):
    user = UserEntity(
        username="testuser",
        email="test@example.com",
        password_hash="x",
        is_admin=True,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def make_user(db_session):
    counter = {"n": 0}

    def _make(username=None, is_admin=False):
        counter["n"] += 1
        username = username or f"member{counter['n']}"
        u = UserEntity(
            username=username,
            email=f"{username}@example.com",
            password_hash="x",
            is_admin=is_admin,
            is_active=True,
        )
        db_session.add(u)
        db_session.commit()
        db_session.refresh(u)
        return u

    return _make


@pytest.fixture()
def gym(db_session):
    gym = GymEntity(name="Iron Temple", address="1 Main St", city="Springfield", is_active=True)
    db_session.add(gym)
    db_session.commit()
    db_session.refresh(gym)
    return gym


@pytest.fixture()
def make_slot(db_session, gym):
    def _make(total_spots=10, price=0, start=time(9, 0), end=time(10, 0), gym_id=None):
        slot = TimeSlotEntity(
            gym_id=gym_id or gym.id,
            start_time=start,
            end_time=end,
            total_spots=total_spots,
            price=price,
        )
        db_session.add(slot)
        db_session.commit()
        db_session.refresh(slot)
        return slot

    return _make


@pytest.fixture()
def client(db_session, user):
    def _get_db_override():
        yield db_session

    def _get_current_user_override():
        return user

    app.dependency_overrides[get_db] = _get_db_override
    app.dependency_overrides[get_current_user] = _get_current_user_override

    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def public_client(db_session):
    def _get_db_override():
        yield db_session

    app.dependency_overrides[get_db] = _get_db_override

    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def register_and_login(public_client):
    def _register(username="member", email=None, password="secret12") -> dict:
        r = public_client.post(
            "/api/auth/register",
            json={"username": username, "email": email or f"{username}@example.com", "password": password},
        )
        assert r.status_code == 201, r.text

        r = public_client.post("/api/auth/login", json={"username": username, "password": password})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['access_token']}"}

    return _register


@pytest.fixture()
def make_booking(db_session):
    from uuid import uuid4

    from models.orm_booking import BookingEntity

    def _make(user, slot, booking_date, status="CONFIRMED"):
        b = BookingEntity(
            user_id=user.id,
            gym_id=slot.gym_id,
            time_slot_id=slot.id,
            booking_date=booking_date,
            status=status,
            qr_code=str(uuid4()),
            price=slot.price,
        )
        db_session.add(b)
        db_session.commit()
        db_session.refresh(b)
        return b

    return _make


@pytest.fixture()
def make_subscription(db_session):
    from datetime import timedelta

    from core.base_classes import utcnow
    from models.orm_subscription import SubscriptionEntity

    def _make(user, status="ACTIVE", end_date=None, sub_type="ONE_MONTH", amount=29.99):
        now = utcnow()
        sub = SubscriptionEntity(
            user_id=user.id,
            type=sub_type,
            status=status,
            start_date=now,
            end_date=end_date or now + timedelta(days=30),
            amount=amount,
            created_at=now,
        )
        db_session.add(sub)
        db_session.commit()
        db_session.refresh(sub)
        return sub

    return _make


@pytest.fixture()
def post_callback():
    import json

    from services.payment_service import sign_callback

    def _post(client, payload, path="/api/payments/callback", signature=None):
        body = json.dumps(payload).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "X-Gateway-Signature": signature if signature is not None else sign_callback(body),
        }
        return client.post(path, content=body, headers=headers)

    return _post
