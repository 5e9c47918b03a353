from sqlalchemy import Boolean, Column, String
from sqlalchemy.orm import relationship

from db.base import Base
from core.base_classes import BaseEntity
from models.enums import UserSubscriptionStatus


class UserEntity(Base, BaseEntity):
    __tablename__ = "users"

    username = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    contact_number = Column(String, nullable=True)

    is_admin = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # projection of the user's subscriptions, written by subscription_service only
    subscription_status = Column(
        String,
        nullable=False,
        default=UserSubscriptionStatus.INACTIVE.value,
    )
    subscription_plan = Column(String, nullable=True)

    bookings = relationship(
        "BookingEntity",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    subscriptions = relationship(
        "SubscriptionEntity",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    payments = relationship(
        "PaymentEntity",
        back_populates="user",
        cascade="all, delete-orphan",
    )
