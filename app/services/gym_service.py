from datetime import time

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError, ValidationError
from models.orm_gym import GymEntity
from models.orm_time_slot import TimeSlotEntity


def find_gym(db: Session, gym_id: int) -> GymEntity | None:
    return db.query(GymEntity).filter(GymEntity.id == gym_id).first()


def find_time_slot(db: Session, time_slot_id: int) -> TimeSlotEntity | None:
    return db.query(TimeSlotEntity).filter(TimeSlotEntity.id == time_slot_id).first()


def get_gym(db: Session, gym_id: int) -> GymEntity:
    gym = find_gym(db, gym_id)
    if not gym:
        raise NotFoundError("Gym not found")
    return gym


def list_gyms(db: Session, city: str | None = None, limit: int = 100) -> list[GymEntity]:
    q = db.query(GymEntity).filter(GymEntity.is_active.is_(True))
    if city:
        q = q.filter(GymEntity.city == city)
    return q.order_by(GymEntity.name).limit(limit).all()


def list_time_slots(db: Session, gym_id: int) -> list[TimeSlotEntity]:
    return (
        db.query(TimeSlotEntity)
        .filter(TimeSlotEntity.gym_id == gym_id)
        .order_by(TimeSlotEntity.start_time)
        .all()
    )


def create_gym(
    db: Session,
    *,
    name: str,
    address: str,
    city: str | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
    description: str | None = None,
) -> GymEntity:
    gym = GymEntity(
        name=name,
        address=address,
        city=city,
        latitude=latitude,
        longitude=longitude,
        description=description,
        is_active=True,
    )
    db.add(gym)
    db.commit()
    db.refresh(gym)
    return gym


def create_time_slot(
    db: Session,
    gym_id: int,
    *,
    start_time: time,
    end_time: time,
    total_spots: int,
    price: float,
) -> TimeSlotEntity:
    get_gym(db, gym_id)
    if start_time >= end_time:
        raise ValidationError("start_time must be before end_time")

    slot = TimeSlotEntity(
        gym_id=gym_id,
        start_time=start_time,
        end_time=end_time,
        total_spots=total_spots,
        price=price,
    )
    db.add(slot)
    db.commit()
    db.refresh(slot)
    return slot
