"""
Bus and route schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from fleet_backend.app.models.fleet_enums import BusStatus, FuelLevel


class BusResponse(BaseModel):
    """Bus as seen by drivers and admins."""
    id: int
    bus_number: str
    capacity: Optional[int] = None
    license_plate: Optional[str] = None
    driver_id: Optional[int] = None
    current_route_id: Optional[int] = None
    status: BusStatus
    fuel_level: Optional[FuelLevel] = None
    mileage: Optional[int] = None
    current_latitude: Optional[float] = None
    current_longitude: Optional[float] = None
    last_updated: Optional[datetime] = None

    class Config:
        from_attributes = True


class RouteResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    driver_id: Optional[int] = None
    is_active: bool
    estimated_duration: Optional[int] = None  # minutes

    class Config:
        from_attributes = True
