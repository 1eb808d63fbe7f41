"""
Driver shift report schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from fleet_backend.app.models.fleet_enums import FuelLevel


class ShiftReportResponse(BaseModel):
    id: int
    driver_id: int
    driver_name: str
    bus_id: Optional[int] = None
    bus_number: Optional[str] = None
    route_id: Optional[int] = None
    route_name: Optional[str] = None
    shift_start_time: datetime
    shift_end_time: datetime
    total_duration_minutes: int
    starting_fuel_level: Optional[FuelLevel] = None
    ending_fuel_level: Optional[FuelLevel] = None
    starting_mileage: Optional[int] = None
    ending_mileage: Optional[int] = None
    miles_driven: Optional[int] = None
    schools_visited: int
    students_picked_up: int
    students_dropped_off: int
    issues_reported: int
    interior_clean_start: Optional[bool] = None
    exterior_clean_start: Optional[bool] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
