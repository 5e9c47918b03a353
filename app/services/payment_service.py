from __future__ import annotations

import hashlib
import hmac
import logging
from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

from sqlalchemy.orm import Session

from core.base_classes import utcnow
from core.exceptions import (
    AlreadyActiveError,
    InvalidTransitionError,
    NotFoundError,
    SlotFullError,
)
from core.settings import settings
from models.enums import (
    TERMINAL_PAYMENT_STATUSES,
    BookingStatus,
    PaymentStatus,
    PaymentType,
)
from models.orm_payment import PaymentEntity
from models.orm_subscription import SubscriptionEntity
from services.booking_service import confirm_paid_booking, get_booking
from services.subscription_service import abandon_pending, apply_activation, create_subscription

logger = logging.getLogger(__name__)


def _generate_payment_id() -> str:
    return "PAY_" + uuid4().hex[:16].upper()


def gateway_response(payment: PaymentEntity) -> dict[str, Any]:
    # stand-in for a real gateway session; the client follows redirect_url
    return {
        "payment_id": payment.payment_id,
        "amount": payment.amount,
        "currency": settings.payment_currency,
        "redirect_url": f"{settings.payment_redirect_url}?paymentId={payment.payment_id}",
        "status": payment.status,
    }


def sign_callback(body: bytes) -> str:
    return hmac.new(settings.payment_callback_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_callback_signature(body: bytes, signature: str | None) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(sign_callback(body).encode("utf-8"), signature.strip().lower().encode("utf-8"))


def list_user_payments(db: Session, user_id: int) -> list[PaymentEntity]:
    return (
        db.query(PaymentEntity)
        .filter(PaymentEntity.user_id == user_id)
        .order_by(PaymentEntity.created_at.desc(), PaymentEntity.id.desc())
        .all()
    )


def get_payment_by_payment_id(db: Session, payment_id: str) -> PaymentEntity | None:
    return db.query(PaymentEntity).filter(PaymentEntity.payment_id == payment_id).first()


def initiate_subscription_payment(db: Session, user_id: int, sub_type: str) -> dict[str, Any]:
    try:
        sub = create_subscription(db, user_id, sub_type, commit=False)

        payment = PaymentEntity(
            user_id=user_id,
            subscription_id=sub.id,
            payment_id=_generate_payment_id(),
            amount=sub.amount,
            type=PaymentType.SUBSCRIPTION.value,
            status=PaymentStatus.PENDING.value,
        )
        db.add(payment)
        db.commit()
        db.refresh(payment)
    except Exception:
        db.rollback()
        raise

    logger.info("Initiated subscription payment %s for user %s", payment.payment_id, user_id)
    return gateway_response(payment)


def initiate_booking_payment(db: Session, user_id: int, booking_id: int) -> dict[str, Any]:
    try:
        booking = get_booking(db, booking_id, user_id=user_id)
        if booking.status != BookingStatus.PENDING_PAYMENT.value:
            raise InvalidTransitionError("booking does not require payment")

        payment = (
            db.query(PaymentEntity)
            .filter(
                PaymentEntity.booking_id == booking.id,
                PaymentEntity.status == PaymentStatus.PENDING.value,
            )
            .first()
        )
        if payment:
            logger.info("Reusing pending payment %s for booking %s", payment.payment_id, booking.id)
            return gateway_response(payment)

        payment = PaymentEntity(
            user_id=user_id,
            booking_id=booking.id,
            payment_id=_generate_payment_id(),
            amount=booking.price,
            type=PaymentType.BOOKING.value,
            status=PaymentStatus.PENDING.value,
        )
        db.add(payment)
        db.commit()
        db.refresh(payment)
    except Exception:
        db.rollback()
        raise

    logger.info("Initiated booking payment %s for booking %s", payment.payment_id, booking_id)
    return gateway_response(payment)


def _apply_success(db: Session, payment: PaymentEntity) -> None:
    if payment.type == PaymentType.SUBSCRIPTION.value:
        sub = (
            db.query(SubscriptionEntity)
            .filter(SubscriptionEntity.id == payment.subscription_id)
            .with_for_update()
            .first()
        )
        if not sub:
            raise NotFoundError("Subscription not found")
        try:
            apply_activation(db, sub, payment.payment_id)
        except (AlreadyActiveError, InvalidTransitionError) as e:
            logger.warning("Payment %s cannot activate subscription %s: %s", payment.payment_id, sub.id, e)
            abandon_pending(db, sub)
            payment.status = PaymentStatus.REFUNDED.value

    elif payment.type == PaymentType.BOOKING.value:
        booking = get_booking(db, payment.booking_id, lock=True)
        try:
            confirm_paid_booking(db, booking)
        except (SlotFullError, InvalidTransitionError) as e:
            logger.warning("Payment %s cannot confirm booking %s: %s", payment.payment_id, booking.id, e)
            payment.status = PaymentStatus.REFUNDED.value


def process_callback(
    db: Session,
    payment_id: str,
    status: str,
    transaction_id: str | None = None,
    payment_method: str | None = None,
    raw: dict[str, Any] | None = None,
) -> tuple[PaymentEntity, bool]:
    """
    Reconcile one gateway callback.

    Returns the payment and whether the callback was a duplicate. Callbacks
    for a payment already in a terminal state only refresh the recorded
    gateway metadata; activation and confirmation happen once.
    """
    outcome = (status or "").upper()

    try:
        payment = (
            db.query(PaymentEntity)
            .filter(PaymentEntity.payment_id == payment_id)
            .with_for_update()
            .first()
        )
        if not payment:
            raise NotFoundError("Payment not found")

        if transaction_id is not None:
            payment.transaction_id = transaction_id
        if payment_method is not None:
            payment.payment_method = payment_method
        payment.gateway_response = raw or {
            "payment_id": payment_id,
            "status": status,
            "transaction_id": transaction_id,
            "payment_method": payment_method,
        }

        duplicate = payment.status in TERMINAL_PAYMENT_STATUSES
        if duplicate:
            if outcome == PaymentStatus.SUCCESS.value and payment.status != PaymentStatus.SUCCESS.value:
                logger.warning(
                    "Late SUCCESS for payment %s already %s, needs manual resolution",
                    payment_id, payment.status,
                )
            else:
                logger.info("Duplicate callback for payment %s (%s)", payment_id, payment.status)
        elif outcome == PaymentStatus.SUCCESS.value:
            payment.status = PaymentStatus.SUCCESS.value
            _apply_success(db, payment)
        else:
            payment.status = PaymentStatus.FAILED.value

        db.commit()
        db.refresh(payment)
    except Exception:
        db.rollback()
        raise

    if not duplicate:
        logger.info("Processed callback for payment %s: %s -> %s", payment_id, outcome, payment.status)
    return payment, duplicate


def cleanup_pending_payments(db: Session, cutoff: datetime | None = None) -> int:
    cutoff = cutoff or utcnow() - timedelta(minutes=settings.payment_timeout_minutes)

    stale_ids = [
        row.id
        for row in db.query(PaymentEntity.id)
        .filter(
            PaymentEntity.status == PaymentStatus.PENDING.value,
            PaymentEntity.created_at < cutoff,
        )
        .all()
    ]
    db.commit()

    failed = 0
    for pk in stale_ids:
        try:
            payment = (
                db.query(PaymentEntity)
                .filter(
                    PaymentEntity.id == pk,
                    PaymentEntity.status == PaymentStatus.PENDING.value,
                )
                .with_for_update(skip_locked=True)
                .first()
            )
            if not payment:
                db.commit()
                continue

            payment.status = PaymentStatus.FAILED.value
            db.commit()
            failed += 1
            logger.debug("Marked payment %s as failed due to timeout", pk)
        except Exception:
            db.rollback()
            logger.exception("Failed to time out payment %s", pk)

    logger.info("Timed out %d of %d pending payments older than %s", failed, len(stale_ids), cutoff.isoformat())
    return failed
