"""
Assignment manager.

Keeps "one driver <-> one bus" and "one driver <-> one route" exclusive,
independently of duty status. Functions flush their writes; the caller
commits (or rolls back) the unit they belong to.
"""

import logging
from typing import Optional

from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.core.exceptions import ConflictError, NotFoundError
from fleet_backend.app.models.bus import Bus
from fleet_backend.app.models.fleet_enums import BusStatus, INELIGIBLE_BUS_STATUSES
from fleet_backend.app.models.route import Route
from fleet_backend.app.services.audit import log_event, AuditAction
from fleet_backend.app.services.resource_locks import bus_lock

logger = logging.getLogger("fleet.assignment_manager")


async def bind_driver_to_bus(
    db: AsyncSession,
    driver_id: int,
    bus_id: int,
    actor_id: Optional[int] = None,
    actor_role: Optional[str] = None,
) -> Bus:
    """
    Bind a driver to a bus.

    Every other bus held by the driver is released to ``idle`` first. The
    target bus is then claimed with a conditional UPDATE that only matches
    when the bus is free or already held by this driver. Bus status is
    left untouched.

    Raises:
        NotFoundError: bus does not exist
        ConflictError: bus held by another driver, or out of service
    """
    async with bus_lock(bus_id):
        bus = await db.get(Bus, bus_id, populate_existing=True)
        if not bus:
            raise NotFoundError("Bus", bus_id)

        if bus.status in INELIGIBLE_BUS_STATUSES:
            raise ConflictError(
                f"Bus #{bus.bus_number} is {bus.status.value} and cannot be assigned",
                details={"bus_id": bus_id, "status": bus.status.value}
            )

        released = await db.execute(
            update(Bus)
            .where(Bus.driver_id == driver_id, Bus.id != bus_id)
            .values(driver_id=None, status=BusStatus.IDLE)
            .execution_options(synchronize_session=False)
        )

        # Compare-and-swap: free or already ours
        claimed = await db.execute(
            update(Bus)
            .where(
                Bus.id == bus_id,
                or_(Bus.driver_id.is_(None), Bus.driver_id == driver_id),
            )
            .values(driver_id=driver_id)
            .execution_options(synchronize_session=False)
        )

        if claimed.rowcount == 0:
            raise ConflictError(
                f"Bus #{bus.bus_number} is already assigned to another driver",
                details={"bus_id": bus_id, "driver_id": bus.driver_id}
            )

        await log_event(
            db,
            action=AuditAction.BUS_BOUND,
            actor_id=actor_id,
            actor_role=actor_role,
            target_user_id=driver_id,
            company_id=bus.company_id,
            metadata={"bus_id": bus_id, "released_buses": released.rowcount},
        )

        await db.flush()
        bus = await db.get(Bus, bus_id, populate_existing=True)

    logger.info("Driver %s bound to bus %s", driver_id, bus_id)
    return bus


async def unbind_driver_from_bus(
    db: AsyncSession,
    driver_id: int,
    actor_id: Optional[int] = None,
    actor_role: Optional[str] = None,
    company_id: Optional[int] = None,
) -> int:
    """
    Release every bus held by the driver to ``idle``.

    A driver holding no bus is a successful no-op.

    Returns:
        Number of buses released
    """
    result = await db.execute(
        update(Bus)
        .where(Bus.driver_id == driver_id)
        .values(driver_id=None, status=BusStatus.IDLE)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount:
        await log_event(
            db,
            action=AuditAction.BUS_RELEASED,
            actor_id=actor_id,
            actor_role=actor_role,
            target_user_id=driver_id,
            company_id=company_id,
            metadata={"released_buses": result.rowcount},
        )
        logger.info("Released %s bus(es) held by driver %s", result.rowcount, driver_id)

    return result.rowcount


async def bind_driver_to_route(
    db: AsyncSession,
    driver_id: int,
    route_id: int,
    actor_id: Optional[int] = None,
    actor_role: Optional[str] = None,
) -> Route:
    """
    Bind a driver to a route, releasing any other route the driver held.

    A route held by a different driver is taken over; the previous holder is
    recorded in the audit entry.

    Raises:
        NotFoundError: route does not exist
    """
    route = await db.get(Route, route_id, populate_existing=True)
    if not route:
        raise NotFoundError("Route", route_id)

    await db.execute(
        update(Route)
        .where(Route.driver_id == driver_id, Route.id != route_id)
        .values(driver_id=None)
        .execution_options(synchronize_session=False)
    )

    previous_driver_id = route.driver_id
    if previous_driver_id is not None and previous_driver_id != driver_id:
        logger.warning(
            "Route %s taken over by driver %s from driver %s",
            route_id, driver_id, previous_driver_id
        )

    route.driver_id = driver_id

    await log_event(
        db,
        action=AuditAction.ROUTE_BOUND,
        actor_id=actor_id,
        actor_role=actor_role,
        target_user_id=driver_id,
        company_id=route.company_id,
        metadata={"route_id": route_id, "previous_driver_id": previous_driver_id},
    )

    await db.flush()
    return route


async def unbind_driver_from_route(
    db: AsyncSession,
    driver_id: int,
    actor_id: Optional[int] = None,
    actor_role: Optional[str] = None,
    company_id: Optional[int] = None,
) -> int:
    """Release every route held by the driver. Returns the number released."""
    result = await db.execute(
        update(Route)
        .where(Route.driver_id == driver_id)
        .values(driver_id=None)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount:
        await log_event(
            db,
            action=AuditAction.ROUTE_RELEASED,
            actor_id=actor_id,
            actor_role=actor_role,
            target_user_id=driver_id,
            company_id=company_id,
            metadata={"released_routes": result.rowcount},
        )

    return result.rowcount


async def get_bus_holder_id(db: AsyncSession, bus_id: int) -> Optional[int]:
    """Current driver of a bus, read fresh from the store."""
    result = await db.execute(select(Bus.driver_id).where(Bus.id == bus_id))
    return result.scalar_one_or_none()
