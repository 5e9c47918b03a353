import logging

from db.session import SessionLocal
from services.subscription_service import expire_sweep

logger = logging.getLogger(__name__)


def expire_subscriptions_job() -> int:
    db = SessionLocal()
    try:
        return expire_sweep(db)
    except Exception:
        logger.exception("Subscription expiry sweep failed, retrying on next run")
        return 0
    finally:
        db.close()
