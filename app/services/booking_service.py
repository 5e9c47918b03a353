from __future__ import annotations

import hmac
import logging
from datetime import date
from uuid import uuid4

from sqlalchemy.orm import Session

from core.base_classes import utcnow
from core.exceptions import InvalidTransitionError, NotFoundError, SlotFullError
from core.settings import settings
from models.enums import BookingStatus
from models.orm_booking import BookingEntity
from models.orm_time_slot import TimeSlotEntity
from services.auth_service import find_user
from services.availability_service import confirmed_count, resolve_slot
from services.subscription_service import has_active_subscription

logger = logging.getLogger(__name__)

BOOKING_TRANSITIONS: dict[str, frozenset[str]] = {
    BookingStatus.PENDING_PAYMENT.value: frozenset(
        {BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value}
    ),
    BookingStatus.CONFIRMED.value: frozenset(
        {BookingStatus.CANCELLED.value, BookingStatus.COMPLETED.value}
    ),
    BookingStatus.CANCELLED.value: frozenset(),
    BookingStatus.COMPLETED.value: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in BOOKING_TRANSITIONS.get(current, frozenset())


def _move(booking: BookingEntity, target: str) -> None:
    if not can_transition(booking.status, target):
        raise InvalidTransitionError(f"Booking cannot move from {booking.status} to {target}")
    booking.status = target


def _generate_qr_code() -> str:
    return str(uuid4())


def _lock_slot(db: Session, time_slot_id: int) -> TimeSlotEntity:
    return (
        db.query(TimeSlotEntity)
        .filter(TimeSlotEntity.id == time_slot_id)
        .with_for_update()
        .one()
    )


def get_booking(
    db: Session,
    booking_id: int,
    *,
    user_id: int | None = None,
    lock: bool = False,
) -> BookingEntity:
    q = db.query(BookingEntity).filter(BookingEntity.id == booking_id)
    if lock:
        q = q.with_for_update()
    booking = q.first()
    if not booking or (user_id is not None and booking.user_id != user_id):
        raise NotFoundError("Booking not found")
    return booking


def list_user_bookings(db: Session, user_id: int, limit: int = 100) -> list[BookingEntity]:
    return (
        db.query(BookingEntity)
        .filter(BookingEntity.user_id == user_id)
        .order_by(BookingEntity.created_at.desc(), BookingEntity.id.desc())
        .limit(limit)
        .all()
    )


def create_booking(
    db: Session,
    user_id: int,
    gym_id: int,
    time_slot_id: int,
    booking_date: date,
    *,
    requires_payment: bool | None = None,
) -> BookingEntity:
    try:
        if not find_user(db, user_id):
            raise NotFoundError("User not found")
        resolve_slot(db, gym_id, time_slot_id)

        # held until commit, so concurrent requests for this slot queue up here
        slot = _lock_slot(db, time_slot_id)
        if confirmed_count(db, slot.id, booking_date) >= slot.total_spots:
            raise SlotFullError("Time slot is fully booked")

        if requires_payment is None:
            requires_payment = settings.booking_requires_payment and (slot.price or 0) > 0

        if has_active_subscription(db, user_id) or not requires_payment:
            status = BookingStatus.CONFIRMED.value
        else:
            status = BookingStatus.PENDING_PAYMENT.value

        booking = BookingEntity(
            user_id=user_id,
            gym_id=gym_id,
            time_slot_id=slot.id,
            booking_date=booking_date,
            status=status,
            qr_code=_generate_qr_code(),
            price=slot.price,
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Created booking %s for user %s slot %s on %s: %s",
        booking.id, user_id, time_slot_id, booking_date, booking.status,
    )
    return booking


def confirm_paid_booking(db: Session, booking: BookingEntity) -> None:
    """
    PENDING_PAYMENT -> CONFIRMED after a successful payment. Does not commit.

    Capacity is checked again because pending bookings do not hold a spot.
    """
    if booking.status != BookingStatus.PENDING_PAYMENT.value:
        raise InvalidTransitionError(f"Booking {booking.id} is {booking.status}, not awaiting payment")

    slot = _lock_slot(db, booking.time_slot_id)
    if confirmed_count(db, slot.id, booking.booking_date) >= slot.total_spots:
        raise SlotFullError("Time slot is fully booked")

    _move(booking, BookingStatus.CONFIRMED.value)
    logger.info("Confirmed booking %s after payment", booking.id)


def cancel_booking(db: Session, booking_id: int, user_id: int | None = None) -> BookingEntity:
    try:
        booking = get_booking(db, booking_id, user_id=user_id, lock=True)
        if booking.check_in_time is not None:
            raise InvalidTransitionError("already checked in")
        _move(booking, BookingStatus.CANCELLED.value)
        db.commit()
        db.refresh(booking)
    except Exception:
        db.rollback()
        raise

    logger.info("Cancelled booking %s", booking_id)
    return booking


def check_in(db: Session, booking_id: int, qr_code: str, user_id: int | None = None) -> BookingEntity:
    try:
        booking = get_booking(db, booking_id, user_id=user_id, lock=True)
        if booking.status != BookingStatus.CONFIRMED.value:
            raise InvalidTransitionError("booking not confirmed")
        if booking.check_in_time is not None:
            raise InvalidTransitionError("already checked in")
        if not hmac.compare_digest(booking.qr_code.encode("utf-8"), (qr_code or "").encode("utf-8")):
            raise InvalidTransitionError("invalid credential")

        booking.check_in_time = utcnow()
        db.commit()
        db.refresh(booking)
    except Exception:
        db.rollback()
        raise

    logger.info("Booking %s checked in", booking_id)
    return booking


def check_out(db: Session, booking_id: int, user_id: int | None = None) -> BookingEntity:
    try:
        booking = get_booking(db, booking_id, user_id=user_id, lock=True)
        if booking.status != BookingStatus.CONFIRMED.value:
            raise InvalidTransitionError("booking not confirmed")
        if booking.check_in_time is None:
            raise InvalidTransitionError("not checked in")

        booking.check_out_time = utcnow()
        _move(booking, BookingStatus.COMPLETED.value)
        db.commit()
        db.refresh(booking)
    except Exception:
        db.rollback()
        raise

    logger.info("Booking %s checked out", booking_id)
    return booking
