from sqlalchemy import Boolean, Column, Float, String, Text
from sqlalchemy.orm import relationship

from db.base import Base
from core.base_classes import BaseEntity


class GymEntity(Base, BaseEntity):
    __tablename__ = "gyms"

    name = Column(String, nullable=False)
    address = Column(String, nullable=False)
    city = Column(String, nullable=True, index=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    time_slots = relationship(
        "TimeSlotEntity",
        back_populates="gym",
        cascade="all, delete-orphan",
        order_by="TimeSlotEntity.start_time",
    )
