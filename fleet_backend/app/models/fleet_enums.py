"""
Fleet and duty related enumerations.
"""

import enum


class BusStatus(str, enum.Enum):
    """Bus status enumeration."""
    IDLE = "idle"  # Parked or between runs
    ON_ROUTE = "on_route"  # Driver checked in and running the route
    MAINTENANCE = "maintenance"  # Not eligible for assignment
    EMERGENCY = "emergency"
    INACTIVE = "inactive"  # Retired, not eligible for assignment


INELIGIBLE_BUS_STATUSES = (BusStatus.MAINTENANCE, BusStatus.INACTIVE)


class FuelLevel(str, enum.Enum):
    """Fuel gauge reading captured at check-in."""
    EMPTY = "Empty"
    QUARTER = "1/4"
    HALF = "1/2"
    THREE_QUARTERS = "3/4"
    FULL = "Full"


class JourneyEventType(str, enum.Enum):
    """Journey checkpoint events, in their usual order."""
    DEPART_HOMEBASE = "depart_homebase"
    ARRIVE_SCHOOL = "arrive_school"
    DEPART_SCHOOL = "depart_school"
    ARRIVE_HOMEBASE = "arrive_homebase"


class AttendanceStatus(str, enum.Enum):
    """Daily rider attendance mark."""
    PRESENT = "present"
    ABSENT = "absent"
