from models.orm_user import UserEntity
from models.orm_gym import GymEntity
from models.orm_time_slot import TimeSlotEntity
from models.orm_booking import BookingEntity
from models.orm_subscription import SubscriptionEntity
from models.orm_payment import PaymentEntity

__all__ = [
    "UserEntity",
    "GymEntity",
    "TimeSlotEntity",
    "BookingEntity",
    "SubscriptionEntity",
    "PaymentEntity",
]
