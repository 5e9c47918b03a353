from datetime import date as date_type

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.deps import get_db
from schemas.gyms import AvailableSlotOut, AvailableSlotsOut, GymListOut, GymOut
from services.availability_service import get_available_slots
from services.gym_service import get_gym, list_gyms

router = APIRouter(prefix="/gyms", tags=["Gyms"])


@router.get("", response_model=GymListOut)
def gyms(city: str | None = None, db: Session = Depends(get_db)):
    return GymListOut(gyms=list_gyms(db, city=city))


@router.get("/{gym_id}", response_model=GymOut)
def read_gym(gym_id: int, db: Session = Depends(get_db)):
    return get_gym(db, gym_id)


@router.get("/{gym_id}/slots", response_model=AvailableSlotsOut)
def available_slots(
    gym_id: int,
    date: date_type = Query(...),
    db: Session = Depends(get_db),
):
    slots = [
        AvailableSlotOut(
            id=a.slot.id,
            gym_id=a.slot.gym_id,
            start_time=a.slot.start_time,
            end_time=a.slot.end_time,
            total_spots=a.slot.total_spots,
            price=a.slot.price,
            available_spots=a.available_spots,
        )
        for a in get_available_slots(db, gym_id, date)
    ]
    return AvailableSlotsOut(gym_id=gym_id, date=date.isoformat(), slots=slots)
