"""Central API router aggregating all domain routers."""

from fastapi import APIRouter

from cashback.auth.router import router as auth_router
from cashback.health.router import router as health_router
from cashback.referral.router import router as referral_router
from cashback.user.router import router as user_router
from cashback.wallet.router import router as wallet_router

api_router = APIRouter()

api_router.include_router(health_router)
api_router.include_router(auth_router)
api_router.include_router(user_router)
api_router.include_router(wallet_router)
api_router.include_router(referral_router)
