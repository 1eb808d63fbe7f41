"""
Company-scoped read accessors for fleet resources.

``get_*`` returns the row or None; ``require_*`` raises NotFoundError so a
resource outside the caller's company is indistinguishable from a missing one.
"""

from typing import Optional, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.core.exceptions import NotFoundError
from fleet_backend.app.models.bus import Bus
from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.models.route import Route, RouteStop
from fleet_backend.app.models.student import Student, ParentChildLink
from fleet_backend.app.models.user import User


async def get_user(db: AsyncSession, user_id: int, company_id: Optional[int] = None) -> Optional[User]:
    query = select(User).where(User.id == user_id)
    if company_id is not None:
        query = query.where(User.company_id == company_id)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def require_driver(db: AsyncSession, driver_id: int, company_id: int) -> User:
    driver = await get_user(db, driver_id, company_id)
    if not driver or driver.role != UserRole.DRIVER:
        raise NotFoundError("Driver", driver_id)
    return driver


async def get_bus_by_id(db: AsyncSession, bus_id: int, company_id: Optional[int] = None) -> Optional[Bus]:
    query = select(Bus).where(Bus.id == bus_id)
    if company_id is not None:
        query = query.where(Bus.company_id == company_id)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def require_bus(db: AsyncSession, bus_id: int, company_id: int) -> Bus:
    bus = await get_bus_by_id(db, bus_id, company_id)
    if not bus:
        raise NotFoundError("Bus", bus_id)
    return bus


async def get_bus_by_driver_id(db: AsyncSession, driver_id: int) -> Optional[Bus]:
    """The bus currently bound to a driver (exclusivity keeps this at most one)."""
    result = await db.execute(
        select(Bus).where(Bus.driver_id == driver_id).order_by(Bus.id).limit(1)
    )
    return result.scalar_one_or_none()


async def get_buses(db: AsyncSession, company_id: int) -> List[Bus]:
    result = await db.execute(
        select(Bus).where(Bus.company_id == company_id).order_by(Bus.bus_number)
    )
    return result.scalars().all()


async def get_route_by_id(db: AsyncSession, route_id: int, company_id: Optional[int] = None) -> Optional[Route]:
    query = select(Route).where(Route.id == route_id)
    if company_id is not None:
        query = query.where(Route.company_id == company_id)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def require_route(db: AsyncSession, route_id: int, company_id: int) -> Route:
    route = await get_route_by_id(db, route_id, company_id)
    if not route:
        raise NotFoundError("Route", route_id)
    return route


async def get_active_routes(db: AsyncSession, company_id: int) -> List[Route]:
    result = await db.execute(
        select(Route).where(Route.company_id == company_id, Route.is_active == True).order_by(Route.name)
    )
    return result.scalars().all()


async def get_stops_by_route_id(db: AsyncSession, route_id: int) -> List[RouteStop]:
    """Stops of a route in driving order."""
    result = await db.execute(
        select(RouteStop).where(RouteStop.route_id == route_id).order_by(RouteStop.order, RouteStop.id)
    )
    return result.scalars().all()


async def get_route_stop_by_id(db: AsyncSession, route_stop_id: int) -> Optional[RouteStop]:
    result = await db.execute(select(RouteStop).where(RouteStop.id == route_stop_id))
    return result.scalar_one_or_none()


async def get_students_by_stop_id(db: AsyncSession, route_stop_id: int) -> List[Student]:
    result = await db.execute(
        select(Student).where(Student.stop_id == route_stop_id, Student.is_active == True).order_by(Student.id)
    )
    return result.scalars().all()


async def get_linked_parents_by_student_id(db: AsyncSession, student_id: int) -> List[User]:
    result = await db.execute(
        select(User)
        .join(ParentChildLink, ParentChildLink.parent_id == User.id)
        .where(ParentChildLink.student_id == student_id, User.role == UserRole.PARENT)
        .order_by(User.id)
    )
    return result.scalars().all()


async def get_linked_student(db: AsyncSession, parent_id: int, student_id: int) -> Optional[Student]:
    result = await db.execute(
        select(Student)
        .join(ParentChildLink, ParentChildLink.student_id == Student.id)
        .where(ParentChildLink.parent_id == parent_id, Student.id == student_id)
    )
    return result.scalar_one_or_none()


async def get_on_duty_drivers(db: AsyncSession, company_id: int) -> List[User]:
    result = await db.execute(
        select(User)
        .where(
            User.role == UserRole.DRIVER,
            User.is_on_duty == True,
            User.company_id == company_id,
        )
        .order_by(User.last_name, User.first_name)
    )
    return result.scalars().all()
