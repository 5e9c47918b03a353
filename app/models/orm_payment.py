from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, JSON, Numeric, String
from sqlalchemy.orm import relationship

from db.base import Base
from core.base_classes import BaseEntity, UpdatedAtMixin
from models.enums import PaymentStatus


class PaymentEntity(Base, BaseEntity, UpdatedAtMixin):
    __tablename__ = "payments"

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    booking_id = Column(
        Integer,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    subscription_id = Column(
        Integer,
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    # correlation key of gateway callbacks
    payment_id = Column(String, nullable=False, unique=True, index=True)

    amount = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    type = Column(String, nullable=False)
    status = Column(String, nullable=False, default=PaymentStatus.PENDING.value)

    payment_method = Column(String, nullable=True)
    transaction_id = Column(String, nullable=True)
    gateway_response = Column(JSON, nullable=True)

    user = relationship("UserEntity", back_populates="payments")
    booking = relationship("BookingEntity", back_populates="payments")
    subscription = relationship("SubscriptionEntity", back_populates="payments")

    __table_args__ = (
        CheckConstraint(
            "(booking_id IS NULL) <> (subscription_id IS NULL)",
            name="ck_payments_single_target",
        ),
    )
