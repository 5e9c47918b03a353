from datetime import date, timedelta

import pytest

from core.base_classes import utcnow
from core.exceptions import NotFoundError
from models.orm_booking import BookingEntity
from models.orm_payment import PaymentEntity
from models.orm_subscription import SubscriptionEntity
from models.orm_user import UserEntity
from services.payment_service import (
    cleanup_pending_payments,
    get_payment_by_payment_id,
    initiate_booking_payment,
    initiate_subscription_payment,
    process_callback,
)
from services.subscription_service import add_months

DAY = date(2025, 1, 1)


def test_initiate_subscription_payment_creates_pending_pair(db_session, user):
    out = initiate_subscription_payment(db_session, user.id, "ONE_MONTH")

    assert out["status"] == "PENDING"
    assert out["amount"] == 29.99
    assert out["currency"] == "USD"
    assert out["payment_id"].startswith("PAY_")
    assert out["redirect_url"].endswith(f"?paymentId={out['payment_id']}")

    payment = get_payment_by_payment_id(db_session, out["payment_id"])
    assert payment.type == "SUBSCRIPTION"
    assert payment.status == "PENDING"
    assert payment.booking_id is None
    sub = db_session.get(SubscriptionEntity, payment.subscription_id)
    assert sub.status == "PENDING"


def test_subscription_payment_success_activates(db_session, user):
    out = initiate_subscription_payment(db_session, user.id, "ONE_MONTH")

    payment, duplicate = process_callback(
        db_session, out["payment_id"], "success", transaction_id="TX1", payment_method="CARD"
    )
    assert duplicate is False
    assert payment.status == "SUCCESS"
    assert payment.transaction_id == "TX1"
    assert payment.payment_method == "CARD"

    sub = db_session.get(SubscriptionEntity, payment.subscription_id)
    assert sub.status == "ACTIVE"
    assert sub.amount == 29.99
    assert sub.end_date == add_months(sub.created_at, 1)
    assert sub.payment_id == out["payment_id"]

    db_session.refresh(user)
    assert user.subscription_status == "ACTIVE"
    assert user.subscription_plan == "BASIC"


def test_duplicate_success_callback_applies_once(db_session, user):
    out = initiate_subscription_payment(db_session, user.id, "ONE_MONTH")
    first, dup1 = process_callback(db_session, out["payment_id"], "SUCCESS", transaction_id="TX1")
    sub = db_session.get(SubscriptionEntity, first.subscription_id)
    end_date = sub.end_date

    second, dup2 = process_callback(db_session, out["payment_id"], "SUCCESS", transaction_id="TX2")

    assert (dup1, dup2) == (False, True)
    assert second.status == "SUCCESS"
    assert second.transaction_id == "TX2"

    db_session.expire_all()
    sub = db_session.get(SubscriptionEntity, first.subscription_id)
    assert sub.status == "ACTIVE"
    assert sub.end_date == end_date
    assert db_session.query(SubscriptionEntity).count() == 1


def test_failed_callback_leaves_subscription_pending(db_session, user):
    out = initiate_subscription_payment(db_session, user.id, "SIX_MONTHS")

    payment, duplicate = process_callback(db_session, out["payment_id"], "DECLINED", raw={"reason": "card"})
    assert duplicate is False
    assert payment.status == "FAILED"
    assert payment.gateway_response == {"reason": "card"}

    sub = db_session.get(SubscriptionEntity, payment.subscription_id)
    assert sub.status == "PENDING"
    db_session.refresh(user)
    assert user.subscription_status == "INACTIVE"

    payment, duplicate = process_callback(db_session, out["payment_id"], "SUCCESS")
    assert duplicate is True
    assert payment.status == "FAILED"
    assert db_session.get(SubscriptionEntity, payment.subscription_id).status == "PENDING"


def test_unknown_payment_id_is_not_found(db_session):
    with pytest.raises(NotFoundError):
        process_callback(db_session, "PAY_MISSING", "SUCCESS")


def test_success_for_superseded_subscription_is_refunded(db_session, user, make_subscription):
    out = initiate_subscription_payment(db_session, user.id, "ONE_MONTH")
    payment = get_payment_by_payment_id(db_session, out["payment_id"])
    # another subscription became active while this payment was open
    make_subscription(user, sub_type="ONE_YEAR")

    payment, duplicate = process_callback(db_session, out["payment_id"], "SUCCESS")
    assert duplicate is False
    assert payment.status == "REFUNDED"
    assert db_session.get(SubscriptionEntity, payment.subscription_id).status == "CANCELLED"
    assert db_session.query(SubscriptionEntity).filter(SubscriptionEntity.status == "ACTIVE").count() == 1


def test_booking_payment_success_confirms_booking(db_session, user, make_slot, make_booking):
    slot = make_slot(total_spots=1, price=15)
    booking = make_booking(user, slot, DAY, status="PENDING_PAYMENT")

    out = initiate_booking_payment(db_session, user.id, booking.id)
    assert out["amount"] == 15
    again = initiate_booking_payment(db_session, user.id, booking.id)
    assert again["payment_id"] == out["payment_id"]
    assert db_session.query(PaymentEntity).count() == 1

    payment, _ = process_callback(db_session, out["payment_id"], "SUCCESS")
    assert payment.status == "SUCCESS"
    assert db_session.get(BookingEntity, booking.id).status == "CONFIRMED"


def test_booking_payment_when_slot_filled_meanwhile_is_refunded(
    db_session, user, make_user, make_slot, make_booking
):
    slot = make_slot(total_spots=1, price=15)
    booking = make_booking(user, slot, DAY, status="PENDING_PAYMENT")
    out = initiate_booking_payment(db_session, user.id, booking.id)
    make_booking(make_user(), slot, DAY)

    payment, _ = process_callback(db_session, out["payment_id"], "SUCCESS")
    assert payment.status == "REFUNDED"
    assert db_session.get(BookingEntity, booking.id).status == "PENDING_PAYMENT"


def test_booking_payment_requires_pending_booking(db_session, user, make_user, make_slot, make_booking):
    from core.exceptions import InvalidTransitionError

    slot = make_slot()
    confirmed = make_booking(user, slot, DAY)
    foreign = make_booking(make_user(), slot, DAY, status="PENDING_PAYMENT")

    with pytest.raises(InvalidTransitionError):
        initiate_booking_payment(db_session, user.id, confirmed.id)
    with pytest.raises(NotFoundError):
        initiate_booking_payment(db_session, user.id, foreign.id)


def test_cleanup_fails_only_stale_pending_payments(db_session, user, make_slot, make_booking):
    stale = initiate_subscription_payment(db_session, user.id, "ONE_MONTH")
    slot = make_slot(price=10)
    booking = make_booking(user, slot, DAY, status="PENDING_PAYMENT")
    fresh = initiate_booking_payment(db_session, user.id, booking.id)

    stale_row = get_payment_by_payment_id(db_session, stale["payment_id"])
    stale_row.created_at = utcnow() - timedelta(hours=2)
    db_session.commit()

    assert cleanup_pending_payments(db_session) == 1
    assert cleanup_pending_payments(db_session) == 0

    db_session.expire_all()
    assert get_payment_by_payment_id(db_session, stale["payment_id"]).status == "FAILED"
    assert get_payment_by_payment_id(db_session, fresh["payment_id"]).status == "PENDING"
    assert db_session.get(SubscriptionEntity, stale_row.subscription_id).status == "PENDING"
    assert db_session.get(BookingEntity, booking.id).status == "PENDING_PAYMENT"


def test_payment_endpoints(client, db_session, user, make_slot, post_callback):
    r = client.post("/api/payments/subscription/initiate", json={"type": "ONE_MONTH"})
    assert r.status_code == 200, r.text
    payment_id = r.json()["payment_id"]

    r = post_callback(client, {"payment_id": payment_id, "status": "SUCCESS", "transaction_id": "TX9"})
    assert r.status_code == 200, r.text
    assert r.json()["duplicate"] is False
    assert r.json()["payment"]["status"] == "SUCCESS"

    r = post_callback(client, {"payment_id": payment_id, "status": "SUCCESS"})
    assert r.status_code == 200
    assert r.json()["duplicate"] is True

    assert client.get("/api/auth/me").json()["subscription_plan"] == "BASIC"

    r = client.get(f"/api/payments/{payment_id}")
    assert r.status_code == 200
    assert r.json()["transaction_id"] == "TX9"
    assert len(client.get("/api/payments/my").json()["payments"]) == 1

    r = post_callback(client, {"payment_id": "PAY_NOPE", "status": "SUCCESS"})
    assert r.status_code == 404

    r = client.post("/api/payments/subscription/initiate", json={"type": "ONE_YEAR"})
    assert r.status_code == 409


def test_callback_without_valid_signature_is_rejected(client, db_session, user, post_callback):
    out = initiate_subscription_payment(db_session, user.id, "ONE_MONTH")
    payload = {"payment_id": out["payment_id"], "status": "SUCCESS"}

    r = client.post("/api/payments/callback", json=payload)
    assert r.status_code == 401
    assert r.json()["code"] == "UNAUTHORIZED"

    r = post_callback(client, payload, signature="0" * 64)
    assert r.status_code == 401

    r = post_callback(client, payload, path="/api/payments/callback/async", signature="forged")
    assert r.status_code == 401

    db_session.expire_all()
    payment = get_payment_by_payment_id(db_session, out["payment_id"])
    assert payment.status == "PENDING"
    assert db_session.get(SubscriptionEntity, payment.subscription_id).status == "PENDING"
    assert db_session.get(UserEntity, user.id).subscription_status == "INACTIVE"


def test_callback_keeps_undeclared_gateway_fields(client, db_session, user, post_callback):
    out = initiate_subscription_payment(db_session, user.id, "ONE_MONTH")

    r = post_callback(
        client,
        {
            "payment_id": out["payment_id"],
            "status": "SUCCESS",
            "card_last4": "4242",
            "risk": {"score": 12},
        },
    )
    assert r.status_code == 200, r.text

    db_session.expire_all()
    stored = get_payment_by_payment_id(db_session, out["payment_id"]).gateway_response
    assert stored["card_last4"] == "4242"
    assert stored["risk"] == {"score": 12}
    assert stored["status"] == "SUCCESS"


def test_booking_payment_flow_over_http(client, make_slot, post_callback):
    slot = make_slot(total_spots=2, price=20)
    r = client.post(
        "/api/bookings",
        json={"gym_id": slot.gym_id, "slot_id": slot.id, "booking_date": "2025-01-01"},
    )
    booking = r.json()
    assert booking["status"] == "PENDING_PAYMENT"

    r = client.post("/api/payments/booking/initiate", json={"booking_id": booking["id"]})
    assert r.status_code == 200, r.text
    payment_id = r.json()["payment_id"]

    r = post_callback(client, {"payment_id": payment_id, "status": "SUCCESS"})
    assert r.status_code == 200

    assert client.get(f"/api/bookings/{booking['id']}").json()["status"] == "CONFIRMED"

    r = client.post("/api/payments/booking/initiate", json={"booking_id": booking["id"]})
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_TRANSITION"


def test_async_callback_is_queued(client, monkeypatch, post_callback):
    import api.payments as payments_api

    sent = []
    monkeypatch.setattr(payments_api, "publish_payment_callback", lambda cb: sent.append(cb))

    r = post_callback(
        client,
        {"payment_id": "PAY_1", "status": "SUCCESS", "acquirer": "demo"},
        path="/api/payments/callback/async",
    )
    assert r.status_code == 202, r.text
    assert r.json() == {"status": "queued", "payment_id": "PAY_1"}
    assert sent[0]["payment_id"] == "PAY_1"
    assert sent[0]["status"] == "SUCCESS"
    assert sent[0]["acquirer"] == "demo"


def test_async_callback_broker_down_returns_503(client, monkeypatch, post_callback):
    import api.payments as payments_api

    def boom(cb):
        raise ConnectionError("broker unreachable")

    monkeypatch.setattr(payments_api, "publish_payment_callback", boom)

    r = post_callback(client, {"payment_id": "PAY_1", "status": "SUCCESS"}, path="/api/payments/callback/async")
    assert r.status_code == 503


def test_cleanup_continues_after_item_failure(db_session, make_user):
    from sqlalchemy import text

    broken = initiate_subscription_payment(db_session, make_user().id, "ONE_MONTH")
    healthy = initiate_subscription_payment(db_session, make_user().id, "ONE_MONTH")

    old = utcnow() - timedelta(hours=2)
    for out in (broken, healthy):
        get_payment_by_payment_id(db_session, out["payment_id"]).created_at = old
    db_session.commit()

    db_session.execute(
        text(
            "CREATE TRIGGER reject_broken_payment BEFORE UPDATE OF status ON payments "
            f"WHEN OLD.payment_id = '{broken['payment_id']}' "
            "BEGIN SELECT RAISE(ABORT, 'rejected'); END"
        )
    )
    db_session.commit()

    assert cleanup_pending_payments(db_session) == 1

    db_session.expire_all()
    assert get_payment_by_payment_id(db_session, broken["payment_id"]).status == "PENDING"
    assert get_payment_by_payment_id(db_session, healthy["payment_id"]).status == "FAILED"


def test_admin_cleanup_endpoint(client, db_session, user):
    out = initiate_subscription_payment(db_session, user.id, "ONE_MONTH")
    row = get_payment_by_payment_id(db_session, out["payment_id"])
    row.created_at = utcnow() - timedelta(days=1)
    db_session.commit()

    r = client.post("/api/admin/sweeps/cleanup-payments")
    assert r.status_code == 200
    assert r.json() == {"processed": 1}
    assert db_session.get(UserEntity, user.id).subscription_status == "INACTIVE"
