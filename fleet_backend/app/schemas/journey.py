"""
Bus journey schemas.
"""

from pydantic import BaseModel
from datetime import date, datetime
from typing import Optional

from fleet_backend.app.models.fleet_enums import JourneyEventType


class JourneyStartRequest(BaseModel):
    homebase_address: Optional[str] = None


class JourneyEventRequest(BaseModel):
    """Checkpoint on today's journey of the driver's bus."""
    event_type: JourneyEventType
    school_id: Optional[int] = None  # stamped on arrive_school


class JourneyResponse(BaseModel):
    id: int
    bus_id: int
    driver_id: Optional[int] = None
    route_id: Optional[int] = None
    school_id: Optional[int] = None
    journey_date: date
    depart_homebase_at: Optional[datetime] = None
    arrive_school_at: Optional[datetime] = None
    depart_school_at: Optional[datetime] = None
    arrive_homebase_at: Optional[datetime] = None
    homebase_address: Optional[str] = None
    total_duration_minutes: Optional[int] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class BusSummary(BaseModel):
    id: int
    bus_number: str


class NamedSummary(BaseModel):
    id: int
    name: str


class JourneyReportRow(BaseModel):
    """Journey enriched with bus, driver, route and school summaries."""
    journey: JourneyResponse
    bus: Optional[BusSummary] = None
    driver: Optional[NamedSummary] = None
    route: Optional[NamedSummary] = None
    school: Optional[NamedSummary] = None
