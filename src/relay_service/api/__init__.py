from fastapi import APIRouter

from .routes import admin, events, health

router = APIRouter()
router.include_router(health.router)
router.include_router(events.router, prefix="/v1/events")
router.include_router(admin.router, prefix="/v1/admin")
