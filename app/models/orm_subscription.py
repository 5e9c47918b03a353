from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import relationship

from db.base import Base
from core.base_classes import BaseEntity
from models.enums import SubscriptionStatus


class SubscriptionEntity(Base, BaseEntity):
    __tablename__ = "subscriptions"

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    type = Column(String, nullable=False)
    status = Column(String, nullable=False, default=SubscriptionStatus.PENDING.value)

    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)

    amount = Column(Numeric(10, 2, asdecimal=False), nullable=False)

    payment_id = Column(String, nullable=True)
    payment_status = Column(String, nullable=True)

    user = relationship("UserEntity", back_populates="subscriptions")
    payments = relationship("PaymentEntity", back_populates="subscription")

    __table_args__ = (
        Index("ix_subscriptions_status_end_date", "status", "end_date"),
    )
