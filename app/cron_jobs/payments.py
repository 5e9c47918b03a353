import logging

from db.session import SessionLocal
from services.payment_service import cleanup_pending_payments

logger = logging.getLogger(__name__)


def cleanup_pending_payments_job() -> int:
    db = SessionLocal()
    try:
        return cleanup_pending_payments(db)
    except Exception:
        logger.exception("Pending payment cleanup failed, retrying on next run")
        return 0
    finally:
        db.close()
