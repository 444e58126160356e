"""API v1 routes."""

from fastapi import APIRouter

from app.api.v1 import health, reports, sync

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(sync.router, prefix="/sync", tags=["sync"])
router.include_router(reports.router, prefix="/reports", tags=["reports"])
