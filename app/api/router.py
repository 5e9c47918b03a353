from fastapi import APIRouter

from api.auth import router as auth_router
from api.gyms import router as gyms_router
from api.bookings import router as bookings_router
from api.subscriptions import router as subscriptions_router
from api.payments import router as payments_router
from api.admin import router as admin_router

api_router = APIRouter()
api_router.include_router(auth_router)
api_router.include_router(gyms_router)
api_router.include_router(bookings_router)
api_router.include_router(subscriptions_router)
api_router.include_router(payments_router)
api_router.include_router(admin_router)
