from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from api.deps import get_db, get_current_user
from models.orm_user import UserEntity
from schemas.subscriptions import (
    CreateSubscriptionIn,
    PlanOut,
    PlansOut,
    SubscriptionListOut,
    SubscriptionOut,
    SubscriptionStatusOut,
)
from services.subscription_service import (
    Plan,
    cancel_subscription,
    create_subscription,
    get_active_subscription,
    list_plans,
    list_user_subscriptions,
)

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])


def _plan_out(p: Plan) -> PlanOut:
    return PlanOut(type=p.type, name=p.name, price=p.price, duration=p.duration, plan=p.user_plan)


@router.get("/plans", response_model=PlansOut)
def plans():
    return PlansOut(plans=[_plan_out(p) for p in list_plans()])


@router.get("/my", response_model=SubscriptionListOut)
def my_subscriptions(user: UserEntity = Depends(get_current_user), db: Session = Depends(get_db)):
    return SubscriptionListOut(subscriptions=list_user_subscriptions(db, user.id))


@router.get("/active", response_model=SubscriptionOut)
def active(user: UserEntity = Depends(get_current_user), db: Session = Depends(get_db)):
    sub = get_active_subscription(db, user.id)
    if not sub:
        raise NotFoundError("No active subscription")
    return sub


@router.get("/status", response_model=SubscriptionStatusOut)
def subscription_status(user: UserEntity = Depends(get_current_user), db: Session = Depends(get_db)):
    return SubscriptionStatusOut(
        user_id=user.id,
        has_active_subscription=get_active_subscription(db, user.id) is not None,
        subscription_status=user.subscription_status,
        subscription_plan=user.subscription_plan,
    )


@router.post("/create", response_model=SubscriptionOut, status_code=201)
def create(data: CreateSubscriptionIn, user: UserEntity = Depends(get_current_user), db: Session = Depends(get_db)):
    return create_subscription(db, user.id, data.type)


@router.post("/{subscription_id}/cancel", response_model=SubscriptionOut)
def cancel(subscription_id: int, user: UserEntity = Depends(get_current_user), db: Session = Depends(get_db)):
    return cancel_subscription(db, subscription_id, user_id=user.id)
