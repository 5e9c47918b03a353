from datetime import time
from typing import List, Optional

from pydantic import BaseModel, Field


class GymIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    address: str = Field(min_length=1, max_length=500)
    city: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    description: Optional[str] = None


class GymOut(BaseModel):
    id: int
    name: str
    address: str
    city: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    description: Optional[str]
    is_active: bool

    class Config:
        from_attributes = True


class GymListOut(BaseModel):
    gyms: List[GymOut]


class TimeSlotIn(BaseModel):
    start_time: time
    end_time: time
    total_spots: int = Field(gt=0)
    price: float = Field(default=0, ge=0)


class TimeSlotOut(BaseModel):
    id: int
    gym_id: int
    start_time: time
    end_time: time
    total_spots: int
    price: float

    class Config:
        from_attributes = True


class AvailableSlotOut(TimeSlotOut):
    available_spots: int


class AvailableSlotsOut(BaseModel):
    gym_id: int
    date: str
    slots: List[AvailableSlotOut]
