from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.deps import get_db, require_admin
from models.orm_user import UserEntity
from schemas.gyms import GymIn, GymOut, TimeSlotIn, TimeSlotOut
from schemas.payments import SweepOut
from schemas.subscriptions import ActivateSubscriptionIn, SubscriptionOut
from services.gym_service import create_gym, create_time_slot
from services.payment_service import cleanup_pending_payments
from services.subscription_service import activate_subscription, expire_sweep


router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/gyms", response_model=GymOut, status_code=201)
def admin_create_gym(data: GymIn, db: Session = Depends(get_db), _: UserEntity = Depends(require_admin)):
    return create_gym(db, **data.model_dump())


@router.post("/gyms/{gym_id}/slots", response_model=TimeSlotOut, status_code=201)
def admin_create_slot(
    gym_id: int,
    data: TimeSlotIn,
    db: Session = Depends(get_db),
    _: UserEntity = Depends(require_admin),
):
    return create_time_slot(db, gym_id, **data.model_dump())


@router.post("/subscriptions/{subscription_id}/activate", response_model=SubscriptionOut)
def admin_activate_subscription(
    subscription_id: int,
    data: ActivateSubscriptionIn,
    db: Session = Depends(get_db),
    _: UserEntity = Depends(require_admin),
):
    return activate_subscription(db, subscription_id, data.payment_id)


@router.post("/sweeps/expire-subscriptions", response_model=SweepOut)
def admin_expire_subscriptions(db: Session = Depends(get_db), _: UserEntity = Depends(require_admin)):
    return SweepOut(processed=expire_sweep(db))


@router.post("/sweeps/cleanup-payments", response_model=SweepOut)
def admin_cleanup_payments(db: Session = Depends(get_db), _: UserEntity = Depends(require_admin)):
    return SweepOut(processed=cleanup_pending_payments(db))
