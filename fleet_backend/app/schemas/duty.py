"""
Duty lifecycle schemas: check-in, duty status and the step outcome.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, Dict

from fleet_backend.app.models.fleet_enums import FuelLevel
from fleet_backend.app.schemas.bus import BusResponse, RouteResponse
from fleet_backend.app.schemas.journey import JourneyResponse
from fleet_backend.app.schemas.shift_report import ShiftReportResponse


class CheckInRequest(BaseModel):
    """
    Check-in form. ``driver_id`` selects which driver record goes on duty,
    which on a shared device may differ from the signed-in user.
    """
    driver_id: int
    bus_id: int
    route_id: int
    fuel_level: str = Field(..., description="Empty, 1/4, 1/2, 3/4 or Full")
    interior_clean: Optional[bool] = None
    exterior_clean: Optional[bool] = None


class DutyStatusUpdate(BaseModel):
    is_on_duty: bool


class DriverDutyResponse(BaseModel):
    """Duty state of a driver."""
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_id: Optional[int] = None
    is_on_duty: bool
    duty_start_time: Optional[datetime] = None
    assigned_route_id: Optional[int] = None
    last_check_in_fuel_level: Optional[FuelLevel] = None
    last_check_in_interior_clean: Optional[bool] = None
    last_check_in_exterior_clean: Optional[bool] = None
    last_check_in_time: Optional[datetime] = None

    class Config:
        from_attributes = True


class DutyOutcomeResponse(BaseModel):
    """
    Outcome of a duty transition.

    ``secondary`` maps each step to ok / failed / skipped; ``errors`` holds
    the message of every failed (or explained skipped) step.
    """
    driver: DriverDutyResponse
    primary: str
    secondary: Dict[str, str] = {}
    errors: Dict[str, str] = {}
    bus: Optional[BusResponse] = None
    journey: Optional[JourneyResponse] = None
    shift_report: Optional[ShiftReportResponse] = None

    class Config:
        from_attributes = True


class OnDutyDriverResponse(BaseModel):
    driver: DriverDutyResponse
    bus: Optional[BusResponse] = None
    route: Optional[RouteResponse] = None

    class Config:
        from_attributes = True
