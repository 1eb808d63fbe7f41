"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from fleet_backend.app.api.v1.endpoints import (
    driver_duty, driver_operations, progress, admin, notifications
)

router = APIRouter()

# Driver duty lifecycle
router.include_router(driver_duty.router)
router.include_router(driver_operations.router)

# Shared reads and the parent view
router.include_router(progress.router)
router.include_router(progress.parent_router)

# Admin supervision
router.include_router(admin.router)

# Notifications
router.include_router(notifications.router)
