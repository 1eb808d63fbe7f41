"""
School visit and attendance schemas.
"""

from pydantic import BaseModel
from datetime import date, datetime
from typing import Optional

from fleet_backend.app.models.fleet_enums import AttendanceStatus


class SchoolArrivalRequest(BaseModel):
    school_id: int
    notes: Optional[str] = None


class SchoolVisitResponse(BaseModel):
    id: int
    driver_id: int
    school_id: int
    route_id: int
    visit_date: date
    arrived_at: Optional[datetime] = None
    departed_at: Optional[datetime] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class AttendanceRequest(BaseModel):
    student_id: int
    status: AttendanceStatus
    notes: Optional[str] = None


class AttendanceResponse(BaseModel):
    id: int
    student_id: int
    driver_id: int
    route_id: int
    attendance_date: date
    status: AttendanceStatus
    notes: Optional[str] = None

    class Config:
        from_attributes = True
