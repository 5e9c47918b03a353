from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel

SubscriptionTypeCode = Literal["ONE_MONTH", "SIX_MONTHS", "ONE_YEAR"]


class PlanOut(BaseModel):
    type: SubscriptionTypeCode
    name: str
    price: float
    duration: str
    plan: str


class PlansOut(BaseModel):
    plans: List[PlanOut]


class CreateSubscriptionIn(BaseModel):
    type: SubscriptionTypeCode


class SubscriptionOut(BaseModel):
    id: int
    user_id: int
    type: str
    status: str
    start_date: datetime
    end_date: datetime
    amount: float
    payment_id: Optional[str]
    payment_status: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class SubscriptionListOut(BaseModel):
    subscriptions: List[SubscriptionOut]


class SubscriptionStatusOut(BaseModel):
    user_id: int
    has_active_subscription: bool
    subscription_status: str
    subscription_plan: Optional[str]


class ActivateSubscriptionIn(BaseModel):
    payment_id: str
