from dataclasses import dataclass
from datetime import date

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from models.enums import BookingStatus
from models.orm_booking import BookingEntity
from models.orm_time_slot import TimeSlotEntity
from services.gym_service import find_gym, find_time_slot, list_time_slots


@dataclass(frozen=True)
class SlotAvailability:
    slot: TimeSlotEntity
    confirmed: int

    @property
    def available_spots(self) -> int:
        return max(0, self.slot.total_spots - self.confirmed)


def confirmed_count(db: Session, time_slot_id: int, booking_date: date) -> int:
    n = (
        db.query(func.count(BookingEntity.id))
        .filter(
            BookingEntity.time_slot_id == time_slot_id,
            BookingEntity.booking_date == booking_date,
            BookingEntity.status == BookingStatus.CONFIRMED.value,
        )
        .scalar()
    )
    return int(n or 0)


def resolve_slot(db: Session, gym_id: int, time_slot_id: int) -> TimeSlotEntity:
    if not find_gym(db, gym_id):
        raise NotFoundError("Gym not found")

    slot = find_time_slot(db, time_slot_id)
    if not slot or slot.gym_id != gym_id:
        raise NotFoundError("Time slot not found")
    return slot


def remaining_capacity(db: Session, gym_id: int, time_slot_id: int, booking_date: date) -> int:
    slot = resolve_slot(db, gym_id, time_slot_id)
    return SlotAvailability(slot, confirmed_count(db, slot.id, booking_date)).available_spots


def get_available_slots(db: Session, gym_id: int, booking_date: date) -> list[SlotAvailability]:
    if not find_gym(db, gym_id):
        raise NotFoundError("Gym not found")

    return [
        SlotAvailability(slot, confirmed_count(db, slot.id, booking_date))
        for slot in list_time_slots(db, gym_id)
    ]
