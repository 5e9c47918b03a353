from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class CreateBookingIn(BaseModel):
    gym_id: int
    slot_id: int
    booking_date: date


class CheckInIn(BaseModel):
    qr_code: str = Field(min_length=1)


class BookingOut(BaseModel):
    id: int
    user_id: int
    gym_id: int
    time_slot_id: int
    booking_date: date
    status: str
    qr_code: str
    check_in_time: Optional[datetime]
    check_out_time: Optional[datetime]
    price: float
    created_at: datetime

    class Config:
        from_attributes = True


class BookingListOut(BaseModel):
    bookings: List[BookingOut]
