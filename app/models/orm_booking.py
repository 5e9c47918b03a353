from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import relationship

from db.base import Base
from core.base_classes import BaseEntity
from models.enums import BookingStatus


class BookingEntity(Base, BaseEntity):
    __tablename__ = "bookings"

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    gym_id = Column(
        Integer,
        ForeignKey("gyms.id", ondelete="CASCADE"),
        nullable=False,
    )
    time_slot_id = Column(
        Integer,
        ForeignKey("time_slots.id", ondelete="CASCADE"),
        nullable=False,
    )

    booking_date = Column(Date, nullable=False)
    status = Column(String, nullable=False, default=BookingStatus.PENDING_PAYMENT.value)
    qr_code = Column(String, nullable=False, unique=True)

    check_in_time = Column(DateTime, nullable=True)
    check_out_time = Column(DateTime, nullable=True)

    price = Column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)

    user = relationship("UserEntity", back_populates="bookings")
    gym = relationship("GymEntity")
    time_slot = relationship("TimeSlotEntity")
    payments = relationship("PaymentEntity", back_populates="booking")

    __table_args__ = (
        Index("ix_bookings_slot_date_status", "time_slot_id", "booking_date", "status"),
    )
