"""
System Notification Database Model.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base
import enum


class NotificationType(str, enum.Enum):
    DELAY = "delay"
    EMERGENCY = "emergency"
    INFO = "info"
    ROUTE_CHANGE = "route_change"


class SenderRole(str, enum.Enum):
    ADMIN = "admin"
    DRIVER = "driver"
    SYSTEM = "system"


class RecipientRole(str, enum.Enum):
    PARENT = "parent"
    DRIVER = "driver"
    ALL_PARENTS = "all_parents"
    ALL_DRIVERS = "all_drivers"
    ROUTE_PARENTS = "route_parents"


class SystemNotification(Base):
    """
    In-App Notification.

    Either addressed to one recipient (``recipient_id``) or to an audience
    (all parents, all drivers, parents of one route). Delivery is handled by
    the push collaborator reading this table.
    """
    __tablename__ = "system_notifications"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    company_id = Column(Integer, ForeignKey('companies.id'), nullable=True, index=True)

    # Sender
    sender_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    sender_role = Column(Enum(SenderRole), nullable=False)

    # Audience
    recipient_role = Column(Enum(RecipientRole), nullable=False)
    recipient_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)
    route_id = Column(Integer, ForeignKey('routes.id'), nullable=True, index=True)

    # Content
    type = Column(Enum(NotificationType), default=NotificationType.INFO, nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)

    # State
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<SystemNotification(id={self.id}, recipient={self.recipient_id}, title='{self.title}')>"
