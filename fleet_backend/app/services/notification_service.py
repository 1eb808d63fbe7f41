"""
Notification Service.

Writes notification rows for the push collaborator and serves the
recipient's inbox.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, or_, and_
from typing import Optional, List

from fleet_backend.app.core.clock import utcnow
from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.models.notification import (
    SystemNotification, NotificationType, SenderRole, RecipientRole
)
from fleet_backend.app.models.student import Student, ParentChildLink


class NotificationService:

    @staticmethod
    async def create_system_notification(
        db: AsyncSession,
        company_id: Optional[int],
        sender_id: int,
        sender_role: SenderRole,
        recipient_role: RecipientRole,
        title: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
        recipient_id: Optional[int] = None,
        route_id: Optional[int] = None,
    ) -> SystemNotification:
        """Create a single notification."""
        notif = SystemNotification(
            company_id=company_id,
            sender_id=sender_id,
            sender_role=sender_role,
            recipient_role=recipient_role,
            recipient_id=recipient_id,
            route_id=route_id,
            title=title,
            message=message,
            type=type,
        )
        db.add(notif)
        await db.flush()  # Caller commits
        return notif

    @staticmethod
    async def list_for_user(
        db: AsyncSession,
        user_id: int,
        role: UserRole,
        company_id: int,
        unread_only: bool = False,
        limit: int = 50,
    ) -> List[SystemNotification]:
        """
        Inbox of a user: direct notifications plus the audiences they belong to.

        Parents also receive ``route_parents`` notifications of every route a
        linked child rides.
        """
        audience = [SystemNotification.recipient_id == user_id]

        if role == UserRole.PARENT:
            child_routes = (
                select(Student.route_id)
                .join(ParentChildLink, ParentChildLink.student_id == Student.id)
                .where(ParentChildLink.parent_id == user_id, Student.route_id.is_not(None))
            )
            audience.append(and_(
                SystemNotification.recipient_role == RecipientRole.ALL_PARENTS,
                SystemNotification.company_id == company_id,
            ))
            audience.append(and_(
                SystemNotification.recipient_role == RecipientRole.ROUTE_PARENTS,
                SystemNotification.route_id.in_(child_routes),
            ))
        elif role == UserRole.DRIVER:
            audience.append(and_(
                SystemNotification.recipient_role == RecipientRole.ALL_DRIVERS,
                SystemNotification.company_id == company_id,
            ))

        query = select(SystemNotification).where(or_(*audience))
        if unread_only:
            query = query.where(SystemNotification.is_read == False)

        query = query.order_by(SystemNotification.created_at.desc(), SystemNotification.id.desc()).limit(limit)
        result = await db.execute(query)
        return result.scalars().all()

    @staticmethod
    async def mark_read(db: AsyncSession, notification_id: int, user_id: int) -> bool:
        """Mark a direct notification as read."""
        stmt = update(SystemNotification).where(
            SystemNotification.id == notification_id,
            SystemNotification.recipient_id == user_id
        ).values(
            is_read=True,
            read_at=utcnow()
        )
        result = await db.execute(stmt)
        return result.rowcount > 0
