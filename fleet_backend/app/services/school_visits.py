"""
School visit log.

Arrival and departure of a driver at the schools of the assigned route,
one visit per (driver, school, route) per service day.
"""

from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.core.clock import utcnow, service_today
from fleet_backend.app.core.exceptions import NotFoundError, ValidationError
from fleet_backend.app.models.school import School
from fleet_backend.app.models.school_visit import SchoolVisit
from fleet_backend.app.models.user import User


async def _get_today_visit(db: AsyncSession, driver_id: int, school_id: int, route_id: int) -> Optional[SchoolVisit]:
    result = await db.execute(
        select(SchoolVisit)
        .where(
            SchoolVisit.driver_id == driver_id,
            SchoolVisit.school_id == school_id,
            SchoolVisit.route_id == route_id,
            SchoolVisit.visit_date == service_today(),
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def record_school_arrival(db: AsyncSession, driver: User, school_id: int, notes: str = None) -> SchoolVisit:
    """
    Record arrival at a school for today, creating or re-stamping the visit.

    Raises:
        ValidationError: driver has no assigned route
        NotFoundError: school not in the driver's company
    """
    if not driver.assigned_route_id:
        raise ValidationError("No route assigned. Please check in first.")

    driver_id, company_id, route_id = driver.id, driver.company_id, driver.assigned_route_id
    result = await db.execute(
        select(School).where(School.id == school_id, School.company_id == company_id)
    )
    if not result.scalar_one_or_none():
        raise NotFoundError("School", school_id)

    visit = await _get_today_visit(db, driver_id, school_id, route_id)
    if visit is None:
        visit = SchoolVisit(
            company_id=company_id,
            driver_id=driver_id,
            school_id=school_id,
            route_id=route_id,
            visit_date=service_today(),
            arrived_at=utcnow(),
            notes=notes,
        )
        db.add(visit)
        try:
            await db.commit()
        except IntegrityError:
            # Recorded concurrently; re-stamp the winner
            await db.rollback()
            visit = await _get_today_visit(db, driver_id, school_id, route_id)
            if visit is None:
                raise
        else:
            await db.refresh(visit)
            return visit

    visit.arrived_at = utcnow()
    if notes:
        visit.notes = notes

    await db.commit()
    await db.refresh(visit)
    return visit


async def record_school_departure(db: AsyncSession, driver_id: int, visit_id: int) -> SchoolVisit:
    """
    Stamp departure on one of the driver's visits.

    Raises:
        NotFoundError: visit missing or recorded by another driver
    """
    result = await db.execute(
        select(SchoolVisit).where(SchoolVisit.id == visit_id, SchoolVisit.driver_id == driver_id)
    )
    visit = result.scalar_one_or_none()
    if not visit:
        raise NotFoundError("School visit", visit_id)

    visit.departed_at = utcnow()
    await db.commit()
    await db.refresh(visit)
    return visit


async def list_today_visits(db: AsyncSession, driver_id: int) -> List[SchoolVisit]:
    result = await db.execute(
        select(SchoolVisit)
        .where(SchoolVisit.driver_id == driver_id, SchoolVisit.visit_date == service_today())
        .order_by(SchoolVisit.arrived_at, SchoolVisit.id)
    )
    return result.scalars().all()


async def count_today_visits(db: AsyncSession, driver_id: int) -> int:
    result = await db.execute(
        select(func.count(SchoolVisit.id)).where(
            SchoolVisit.driver_id == driver_id,
            SchoolVisit.visit_date == service_today(),
        )
    )
    return result.scalar() or 0
