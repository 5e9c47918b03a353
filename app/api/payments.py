from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from api.deps import get_db, get_current_user, verify_gateway_signature
from models.orm_user import UserEntity
from schemas.payments import (
    BookingPaymentIn,
    PaymentCallbackIn,
    PaymentCallbackOut,
    PaymentInitOut,
    PaymentListOut,
    PaymentOut,
    SubscriptionPaymentIn,
)
from services.payment_service import (
    get_payment_by_payment_id,
    initiate_booking_payment,
    initiate_subscription_payment,
    list_user_payments,
    process_callback,
)
from services.rabbitmq import publish_payment_callback

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.get("/my", response_model=PaymentListOut)
def my_payments(user: UserEntity = Depends(get_current_user), db: Session = Depends(get_db)):
    return PaymentListOut(payments=list_user_payments(db, user.id))


@router.post("/subscription/initiate", response_model=PaymentInitOut)
def initiate_subscription(
    data: SubscriptionPaymentIn,
    user: UserEntity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return initiate_subscription_payment(db, user.id, data.type)


@router.post("/booking/initiate", response_model=PaymentInitOut)
def initiate_booking(
    data: BookingPaymentIn,
    user: UserEntity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return initiate_booking_payment(db, user.id, data.booking_id)


@router.post(
    "/callback",
    response_model=PaymentCallbackOut,
    dependencies=[Depends(verify_gateway_signature)],
)
def callback(data: PaymentCallbackIn, db: Session = Depends(get_db)):
    payment, duplicate = process_callback(
        db,
        data.payment_id,
        data.status,
        transaction_id=data.transaction_id,
        payment_method=data.payment_method,
        raw=data.model_dump(),
    )
    return PaymentCallbackOut(payment=PaymentOut.model_validate(payment), duplicate=duplicate)


@router.post("/callback/async", status_code=202, dependencies=[Depends(verify_gateway_signature)])
def callback_async(data: PaymentCallbackIn):
    try:
        publish_payment_callback(data.model_dump())
    except Exception as e:
        raise HTTPException(status_code=503, detail=f"Failed to queue callback: {e}")
    return {"status": "queued", "payment_id": data.payment_id}


@router.get("/{payment_id}", response_model=PaymentOut)
def read_payment(payment_id: str, user: UserEntity = Depends(get_current_user), db: Session = Depends(get_db)):
    payment = get_payment_by_payment_id(db, payment_id)
    if not payment or (payment.user_id != user.id and not user.is_admin):
        raise NotFoundError("Payment not found")
    return payment
