from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, Numeric, Time
from sqlalchemy.orm import relationship

from db.base import Base
from core.base_classes import BaseEntity


class TimeSlotEntity(Base, BaseEntity):
    __tablename__ = "time_slots"

    gym_id = Column(
        Integer,
        ForeignKey("gyms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    total_spots = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)

    gym = relationship("GymEntity", back_populates="time_slots")

    __table_args__ = (
        CheckConstraint("total_spots >= 0", name="ck_time_slots_total_spots"),
    )
