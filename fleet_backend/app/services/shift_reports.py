"""
Shift report synthesis.

Builds the immutable end-of-duty summary of a driver from the duty state,
the bound bus, today's school visits and today's attendance.
"""

import logging
import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, List
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.core.clock import utcnow, as_utc, minutes_between
from fleet_backend.app.core.config import settings
from fleet_backend.app.models.driver_shift_report import DriverShiftReport
from fleet_backend.app.models.user import User
from fleet_backend.app.services import resource_store
from fleet_backend.app.services.attendance import count_present_today
from fleet_backend.app.services.audit import log_event, AuditAction
from fleet_backend.app.services.school_visits import count_today_visits

logger = logging.getLogger("fleet.shift_reports")


async def synthesize_shift_report(
    db: AsyncSession,
    driver: User,
    now: Optional[datetime] = None,
    actor_id: Optional[int] = None,
    actor_role: Optional[str] = None,
) -> DriverShiftReport:
    """
    Create the shift report closing the driver's current duty cycle. Commits.

    The caller guarantees the driver is on duty with a recorded start time.
    """
    now = now or utcnow()
    shift_start = as_utc(driver.duty_start_time)

    bus = await resource_store.get_bus_by_driver_id(db, driver.id)
    route = None
    if driver.assigned_route_id:
        route = await resource_store.get_route_by_id(db, driver.assigned_route_id, driver.company_id)

    present = await count_present_today(db, driver.id, driver.assigned_route_id)
    mileage = bus.mileage if bus else None
    bus_status = bus.status.value if bus else "unassigned"

    report = DriverShiftReport(
        company_id=driver.company_id,
        driver_id=driver.id,
        driver_name=driver.full_name or driver.email,
        bus_id=bus.id if bus else None,
        bus_number=bus.bus_number if bus else None,
        route_id=route.id if route else None,
        route_name=route.name if route else None,
        shift_start_time=shift_start,
        shift_end_time=now,
        total_duration_minutes=max(0, math.floor(minutes_between(shift_start, now))),
        starting_fuel_level=driver.last_check_in_fuel_level,
        ending_fuel_level=bus.fuel_level if bus else None,
        starting_mileage=mileage,
        ending_mileage=mileage,
        miles_driven=0 if mileage is not None else None,
        schools_visited=await count_today_visits(db, driver.id),
        students_picked_up=present,
        students_dropped_off=present,
        issues_reported=0,
        interior_clean_start=driver.last_check_in_interior_clean,
        exterior_clean_start=driver.last_check_in_exterior_clean,
        notes=f"Shift completed. Bus status: {bus_status}",
    )
    db.add(report)
    await db.flush()

    await log_event(
        db,
        action=AuditAction.SHIFT_REPORT_CREATED,
        actor_id=actor_id,
        actor_role=actor_role,
        target_user_id=driver.id,
        company_id=driver.company_id,
        metadata={"report_id": report.id, "minutes": report.total_duration_minutes},
    )
    await db.commit()
    await db.refresh(report)

    logger.info("Shift report %s created for driver %s", report.id, report.driver_id)
    return report


def _day_bounds(start_date: Optional[date], end_date: Optional[date]):
    tz = ZoneInfo(settings.service_timezone)
    start = datetime.combine(start_date, time.min, tzinfo=tz).astimezone(timezone.utc) if start_date else None
    end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=tz).astimezone(timezone.utc) if end_date else None
    return start, end


async def list_shift_reports(
    db: AsyncSession,
    company_id: int,
    driver_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = 50,
) -> List[DriverShiftReport]:
    """Shift reports of a company, newest first, by driver and service date range."""
    query = select(DriverShiftReport).where(DriverShiftReport.company_id == company_id)

    if driver_id is not None:
        query = query.where(DriverShiftReport.driver_id == driver_id)

    start, end = _day_bounds(start_date, end_date)
    if start is not None:
        query = query.where(DriverShiftReport.shift_end_time >= start)
    if end is not None:
        query = query.where(DriverShiftReport.shift_end_time < end)

    query = query.order_by(DriverShiftReport.shift_end_time.desc(), DriverShiftReport.id.desc()).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()
