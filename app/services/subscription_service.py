from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from core.base_classes import utcnow
from core.exceptions import AlreadyActiveError, InvalidTransitionError, NotFoundError, ValidationError
from models.enums import (
    PaymentStatus,
    SubscriptionPlan,
    SubscriptionStatus,
    SubscriptionType,
    UserSubscriptionStatus,
)
from models.orm_subscription import SubscriptionEntity
from models.orm_user import UserEntity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Plan:
    type: str
    name: str
    price: float
    months: int
    user_plan: str
    duration: str


PLANS: dict[str, Plan] = {
    SubscriptionType.ONE_MONTH.value: Plan(
        SubscriptionType.ONE_MONTH.value, "1 Month Plan", 29.99, 1, SubscriptionPlan.BASIC.value, "1 Month"
    ),
    SubscriptionType.SIX_MONTHS.value: Plan(
        SubscriptionType.SIX_MONTHS.value, "6 Months Plan", 149.99, 6, SubscriptionPlan.PREMIUM.value, "6 Months"
    ),
    SubscriptionType.ONE_YEAR.value: Plan(
        SubscriptionType.ONE_YEAR.value, "1 Year Plan", 249.99, 12, SubscriptionPlan.ELITE.value, "12 Months"
    ),
}

SUBSCRIPTION_TRANSITIONS: dict[str, frozenset[str]] = {
    SubscriptionStatus.PENDING.value: frozenset(
        {SubscriptionStatus.ACTIVE.value, SubscriptionStatus.CANCELLED.value}
    ),
    SubscriptionStatus.ACTIVE.value: frozenset(
        {SubscriptionStatus.EXPIRED.value, SubscriptionStatus.CANCELLED.value}
    ),
    SubscriptionStatus.EXPIRED.value: frozenset(),
    SubscriptionStatus.CANCELLED.value: frozenset(),
}


def _now_utc() -> datetime:
    return utcnow()


def add_months(dt: datetime, months: int) -> datetime:
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def get_plan(sub_type: str | SubscriptionType) -> Plan:
    key = sub_type.value if isinstance(sub_type, SubscriptionType) else str(sub_type)
    plan = PLANS.get(key)
    if not plan:
        raise ValidationError(f"Invalid subscription type: {key}")
    return plan


def list_plans() -> list[Plan]:
    return list(PLANS.values())


def can_transition(current: str, target: str) -> bool:
    return target in SUBSCRIPTION_TRANSITIONS.get(current, frozenset())


def _move(sub: SubscriptionEntity, target: str) -> None:
    if not can_transition(sub.status, target):
        raise InvalidTransitionError(f"Subscription cannot move from {sub.status} to {target}")
    sub.status = target


def get_active_subscription(
    db: Session,
    user_id: int,
    *,
    now: datetime | None = None,
    exclude_id: int | None = None,
) -> SubscriptionEntity | None:
    now = now or _now_utc()
    q = db.query(SubscriptionEntity).filter(
        SubscriptionEntity.user_id == user_id,
        SubscriptionEntity.status == SubscriptionStatus.ACTIVE.value,
        SubscriptionEntity.end_date > now,
    )
    if exclude_id is not None:
        q = q.filter(SubscriptionEntity.id != exclude_id)
    return q.order_by(SubscriptionEntity.end_date.desc()).first()


def has_active_subscription(db: Session, user_id: int) -> bool:
    return get_active_subscription(db, user_id) is not None


def list_user_subscriptions(db: Session, user_id: int) -> list[SubscriptionEntity]:
    return (
        db.query(SubscriptionEntity)
        .filter(SubscriptionEntity.user_id == user_id)
        .order_by(SubscriptionEntity.created_at.desc(), SubscriptionEntity.id.desc())
        .all()
    )


def _lock_user(db: Session, user_id: int) -> UserEntity:
    user = db.query(UserEntity).filter(UserEntity.id == user_id).with_for_update().first()
    if not user:
        raise NotFoundError("User not found")
    return user


def _get_subscription(db: Session, subscription_id: int, *, lock: bool = False) -> SubscriptionEntity:
    q = db.query(SubscriptionEntity).filter(SubscriptionEntity.id == subscription_id)
    if lock:
        q = q.with_for_update()
    sub = q.first()
    if not sub:
        raise NotFoundError("Subscription not found")
    return sub


def _sync_user_after_exit(
    db: Session,
    user: UserEntity,
    sub: SubscriptionEntity,
    fallback: UserSubscriptionStatus,
    now: datetime | None = None,
) -> None:
    remaining = get_active_subscription(db, user.id, now=now, exclude_id=sub.id)
    if remaining:
        user.subscription_status = UserSubscriptionStatus.ACTIVE.value
        user.subscription_plan = PLANS[remaining.type].user_plan
    else:
        user.subscription_status = fallback.value


def create_subscription(
    db: Session,
    user_id: int,
    sub_type: str | SubscriptionType,
    *,
    commit: bool = True,
) -> SubscriptionEntity:
    plan = get_plan(sub_type)

    try:
        _lock_user(db, user_id)
        if has_active_subscription(db, user_id):
            raise AlreadyActiveError("User already has an active subscription")

        now = _now_utc()
        sub = SubscriptionEntity(
            user_id=user_id,
            type=plan.type,
            status=SubscriptionStatus.PENDING.value,
            start_date=now,
            end_date=add_months(now, plan.months),
            amount=plan.price,
            created_at=now,
        )
        db.add(sub)
        db.flush()

        if commit:
            db.commit()
            db.refresh(sub)
    except Exception:
        db.rollback()
        raise

    logger.info("Created %s subscription %s for user %s", plan.type, sub.id, user_id)
    return sub


def apply_activation(db: Session, sub: SubscriptionEntity, payment_id: str) -> bool:
    """
    Move a PENDING subscription to ACTIVE and project it onto the user.

    Does not commit. Returns False when the subscription is already active,
    in which case nothing is touched. A pending subscription whose period
    has already ended is rejected.
    """
    if sub.status == SubscriptionStatus.ACTIVE.value:
        logger.warning("Subscription %s is already active, activation skipped", sub.id)
        return False
    if not can_transition(sub.status, SubscriptionStatus.ACTIVE.value):
        raise InvalidTransitionError(f"Subscription {sub.id} is {sub.status} and cannot be activated")
    if sub.end_date <= _now_utc():
        raise InvalidTransitionError(f"Subscription {sub.id} period already ended")

    user = _lock_user(db, sub.user_id)
    if get_active_subscription(db, user.id, exclude_id=sub.id):
        raise AlreadyActiveError("User already has an active subscription")

    _move(sub, SubscriptionStatus.ACTIVE.value)
    sub.payment_id = payment_id
    sub.payment_status = PaymentStatus.SUCCESS.value

    user.subscription_status = UserSubscriptionStatus.ACTIVE.value
    user.subscription_plan = PLANS[sub.type].user_plan

    logger.info("Activated subscription %s for user %s (plan %s)", sub.id, user.id, user.subscription_plan)
    return True


def activate_subscription(db: Session, subscription_id: int, payment_id: str) -> SubscriptionEntity:
    try:
        sub = _get_subscription(db, subscription_id, lock=True)
        apply_activation(db, sub, payment_id)
        db.commit()
        db.refresh(sub)
    except Exception:
        db.rollback()
        raise
    return sub


def abandon_pending(db: Session, sub: SubscriptionEntity) -> None:
    """Cancel a PENDING subscription whose payment can no longer activate it. Does not commit."""
    if sub.status == SubscriptionStatus.PENDING.value:
        _move(sub, SubscriptionStatus.CANCELLED.value)
        logger.info("Abandoned pending subscription %s", sub.id)


def cancel_subscription(db: Session, subscription_id: int, user_id: int | None = None) -> SubscriptionEntity:
    try:
        sub = _get_subscription(db, subscription_id, lock=True)
        if user_id is not None and sub.user_id != user_id:
            raise NotFoundError("Subscription not found")

        user = _lock_user(db, sub.user_id)
        _move(sub, SubscriptionStatus.CANCELLED.value)
        _sync_user_after_exit(db, user, sub, UserSubscriptionStatus.INACTIVE)

        db.commit()
        db.refresh(sub)
    except Exception:
        db.rollback()
        raise

    logger.info("Cancelled subscription %s", subscription_id)
    return sub


def expire_sweep(db: Session, now: datetime | None = None) -> int:
    now = now or _now_utc()

    due_ids = [
        row.id
        for row in db.query(SubscriptionEntity.id)
        .filter(
            SubscriptionEntity.status == SubscriptionStatus.ACTIVE.value,
            SubscriptionEntity.end_date <= now,
        )
        .all()
    ]
    db.commit()
    logger.info("Found %d subscriptions to expire", len(due_ids))

    expired = 0
    for sub_id in due_ids:
        try:
            sub = (
                db.query(SubscriptionEntity)
                .filter(
                    SubscriptionEntity.id == sub_id,
                    SubscriptionEntity.status == SubscriptionStatus.ACTIVE.value,
                    SubscriptionEntity.end_date <= now,
                )
                .with_for_update(skip_locked=True)
                .first()
            )
            if not sub:
                db.commit()
                continue

            user = _lock_user(db, sub.user_id)
            _move(sub, SubscriptionStatus.EXPIRED.value)
            _sync_user_after_exit(db, user, sub, UserSubscriptionStatus.EXPIRED, now=now)
            db.commit()
            expired += 1
            logger.info("Expired subscription %s for user %s", sub_id, user.id)
        except Exception:
            db.rollback()
            logger.exception("Failed to expire subscription %s", sub_id)

    return expired
