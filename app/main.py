import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

import models  # noqa: F401
from api.router import api_router
from core.exceptions import DomainError
from core.logging_config import setup_logging
from core.settings import settings
from cron_jobs.payments import cleanup_pending_payments_job
from cron_jobs.subscriptions import expire_subscriptions_job
from db.base import Base
from db.session import engine

APP_TITLE = "Gym Booking API"

setup_logging()
logger = logging.getLogger(__name__)


def build_scheduler() -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        func=expire_subscriptions_job,
        trigger="interval",
        minutes=settings.expiry_sweep_interval_minutes,
        next_run_time=datetime.now(timezone.utc),
        id="expire_subscriptions",
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        func=cleanup_pending_payments_job,
        trigger="interval",
        minutes=settings.payment_cleanup_interval_minutes,
        id="cleanup_pending_payments",
        max_instances=1,
        coalesce=True,
    )
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = build_scheduler()
        scheduler.start()
        logger.info("Background jobs scheduled")
    app.state.scheduler = scheduler

    yield

    if scheduler:
        scheduler.shutdown(wait=False)


app = FastAPI(title=APP_TITLE, debug=settings.app_debug, lifespan=lifespan)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(api_router, prefix="/api")


@app.get("/health")
def health():
    return {"status": "ok"}
