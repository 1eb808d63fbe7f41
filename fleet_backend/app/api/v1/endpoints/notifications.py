"""
Notification API Endpoints.
"""

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from fleet_backend.app.db.session import get_db
from fleet_backend.app.core.exceptions import NotFoundError
from fleet_backend.app.core.guards import Actor, require_role
from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.services.notification_service import NotificationService
from fleet_backend.app.schemas.notification import NotificationResponse

router = APIRouter(prefix="/notifications", tags=["Notifications"])

require_member = require_role([UserRole.ADMIN, UserRole.DRIVER, UserRole.PARENT])


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    """List current user's notifications, including audience broadcasts."""
    return await NotificationService.list_for_user(
        db, actor.user_id, actor.role, actor.company_id, unread_only=unread_only, limit=limit
    )


@router.patch("/{notification_id}/read")
async def mark_notification_read(
    notification_id: int = Path(...),
    actor: Actor = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    """Mark a specific notification as read."""
    success = await NotificationService.mark_read(db, notification_id, actor.user_id)
    if not success:
        raise NotFoundError("Notification", notification_id)

    await db.commit()
    return {"status": "success"}
