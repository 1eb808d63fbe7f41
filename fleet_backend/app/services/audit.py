"""
Audit logging service for duty transitions and resource ownership changes.

Entries are added to the caller's session; the caller commits them together
with the change they describe.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from fleet_backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    DRIVER_CHECKED_IN = "DRIVER_CHECKED_IN"
    DRIVER_CHECKED_OUT = "DRIVER_CHECKED_OUT"
    DUTY_STATUS_CHANGED = "DUTY_STATUS_CHANGED"

    BUS_BOUND = "BUS_BOUND"
    BUS_RELEASED = "BUS_RELEASED"
    ROUTE_BOUND = "ROUTE_BOUND"
    ROUTE_RELEASED = "ROUTE_RELEASED"

    ROUTE_ACTIVATED = "ROUTE_ACTIVATED"
    ROUTE_DEACTIVATED = "ROUTE_DEACTIVATED"

    SHIFT_REPORT_CREATED = "SHIFT_REPORT_CREATED"
    ROUTE_STOPS_RESET = "ROUTE_STOPS_RESET"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_role: Optional[str] = None,
    target_user_id: Optional[int] = None,
    company_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Record an audit event.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action (None for system)
        actor_role: Role of the actor at the time of the action
        target_user_id: Driver the action concerned
        company_id: Tenant scope
        metadata: Additional context as JSON

    Returns:
        Pending AuditLog instance
    """
    audit_log = AuditLog(
        company_id=company_id,
        actor_id=actor_id,
        actor_role=actor_role,
        action=action,
        target_user_id=target_user_id,
        meta_data=metadata,
    )

    db.add(audit_log)
    await db.flush()

    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    company_id: int,
    target_user_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve a company's audit trail, most recent first.
    """
    query = select(AuditLog).where(AuditLog.company_id == company_id).order_by(desc(AuditLog.timestamp))

    if target_user_id:
        query = query.where(AuditLog.target_user_id == target_user_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
