from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from schemas.subscriptions import SubscriptionTypeCode


class SubscriptionPaymentIn(BaseModel):
    type: SubscriptionTypeCode


class BookingPaymentIn(BaseModel):
    booking_id: int


class PaymentInitOut(BaseModel):
    payment_id: str
    amount: float
    currency: str
    redirect_url: str
    status: str


class PaymentCallbackIn(BaseModel):
    payment_id: str = Field(min_length=1)
    status: str = Field(min_length=1)
    transaction_id: Optional[str] = None
    payment_method: Optional[str] = None

    class Config:
        extra = "allow"


class PaymentOut(BaseModel):
    id: int
    user_id: int
    booking_id: Optional[int]
    subscription_id: Optional[int]
    payment_id: str
    amount: float
    type: str
    status: str
    payment_method: Optional[str]
    transaction_id: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PaymentCallbackOut(BaseModel):
    payment: PaymentOut
    duplicate: bool


class PaymentListOut(BaseModel):
    payments: List[PaymentOut]


class SweepOut(BaseModel):
    processed: int
