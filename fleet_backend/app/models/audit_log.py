"""
Audit Log Database Model.

Tracks duty transitions and ownership transfers of fleet resources.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - DRIVER_CHECKED_IN / DRIVER_CHECKED_OUT / DUTY_STATUS_CHANGED
    - BUS_BOUND / BUS_RELEASED / ROUTE_BOUND / ROUTE_RELEASED
    - ROUTE_ACTIVATED / ROUTE_DEACTIVATED
    - SHIFT_REPORT_CREATED / ROUTE_STOPS_RESET
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    company_id = Column(Integer, index=True, nullable=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_role = Column(String(50), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Which driver the action concerned
    target_user_id = Column(Integer, index=True, nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_id}, target={self.target_user_id})>"
