"""
Admin schemas: forced duty changes and the audit trail.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List


class AuditLogResponse(BaseModel):
    """Schema for audit log entry."""
    id: int
    actor_id: Optional[int]
    actor_role: Optional[str]
    action: str
    target_user_id: Optional[int]
    meta_data: Optional[dict]
    timestamp: datetime

    class Config:
        from_attributes = True


class AuditTrailResponse(BaseModel):
    """Schema for audit trail response."""
    logs: List[AuditLogResponse]
    total: int
