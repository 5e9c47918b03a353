from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user
from models.orm_user import UserEntity
from schemas.bookings import BookingListOut, BookingOut, CheckInIn, CreateBookingIn
from services.booking_service import (
    cancel_booking,
    check_in,
    check_out,
    create_booking,
    get_booking,
    list_user_bookings,
)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("", response_model=BookingOut, status_code=201)
def create(data: CreateBookingIn, user: UserEntity = Depends(get_current_user), db: Session = Depends(get_db)):
    return create_booking(db, user.id, data.gym_id, data.slot_id, data.booking_date)


@router.get("/my", response_model=BookingListOut)
def my_bookings(user: UserEntity = Depends(get_current_user), db: Session = Depends(get_db)):
    return BookingListOut(bookings=list_user_bookings(db, user.id))


@router.get("/{booking_id}", response_model=BookingOut)
def read_booking(booking_id: int, user: UserEntity = Depends(get_current_user), db: Session = Depends(get_db)):
    return get_booking(db, booking_id, user_id=user.id)


@router.post("/{booking_id}/cancel", response_model=BookingOut)
def cancel(booking_id: int, user: UserEntity = Depends(get_current_user), db: Session = Depends(get_db)):
    return cancel_booking(db, booking_id, user_id=user.id)


@router.post("/{booking_id}/check-in", response_model=BookingOut)
def do_check_in(
    booking_id: int,
    data: CheckInIn,
    user: UserEntity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return check_in(db, booking_id, data.qr_code, user_id=user.id)


@router.post("/{booking_id}/check-out", response_model=BookingOut)
def do_check_out(booking_id: int, user: UserEntity = Depends(get_current_user), db: Session = Depends(get_db)):
    return check_out(db, booking_id, user_id=user.id)
