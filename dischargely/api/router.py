from fastapi import APIRouter

from dischargely.api.v1 import (
    auth,
    billing,
    feedback,
    referrals,
    summaries,
    users,
)

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(referrals.router)
api_router.include_router(summaries.router)
api_router.include_router(billing.router)
api_router.include_router(feedback.router)
