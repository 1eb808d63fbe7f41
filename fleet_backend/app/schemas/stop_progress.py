"""
Stop completion and stop progress schemas.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional


class StopCompleteRequest(BaseModel):
    route_stop_id: int
    route_id: int
    stop_sequence: Optional[int] = Field(None, ge=0)  # informational, the route order wins


class StopResetRequest(BaseModel):
    route_id: int


class StopCompletionResponse(BaseModel):
    id: int
    route_stop_id: int
    route_id: int
    bus_id: Optional[int] = None
    driver_id: Optional[int] = None
    stop_sequence: int
    completion_date: date
    arrived_at: datetime
    departed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StopCompleteResponse(BaseModel):
    """``created`` is false when the stop was already completed today."""
    completion: StopCompletionResponse
    created: bool
    notifications_sent: int
    notifications_failed: int

    class Config:
        from_attributes = True


class StopResetResponse(BaseModel):
    route_id: int
    removed: int


class StopProgressResponse(BaseModel):
    """How far the bus is from a student's stop today."""
    student_id: int
    route_id: Optional[int] = None
    stop_id: Optional[int] = None
    has_route: bool
    has_stop: bool
    stop_name: Optional[str] = None
    stop_address: Optional[str] = None
    stop_sequence: Optional[int] = None  # 1-based
    total_stops: int
    completed_stops: int
    stops_away: Optional[int] = None
    has_arrived: bool
    last_completed_stop_id: Optional[int] = None
