"""
Duty lifecycle controller.

Turns check-in / check-out into consistent assignments, journey records and
a shift report. The duty flip is the primary effect and either succeeds or
aborts the request. Everything around it runs as an ordered chain of
independent steps, each committed on its own; a failing step is rolled back,
logged and reported in the outcome while the chain continues.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.core.clock import utcnow
from fleet_backend.app.core.exceptions import (
    AppException, ConflictError, NotFoundError, UnauthorizedError, ValidationError
)
from fleet_backend.app.core.guards import Actor, AdminActor, DriverActor
from fleet_backend.app.models.bus import Bus
from fleet_backend.app.models.bus_journey import BusJourney
from fleet_backend.app.models.driver_shift_report import DriverShiftReport
from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.models.fleet_enums import BusStatus, FuelLevel, INELIGIBLE_BUS_STATUSES
from fleet_backend.app.models.route import Route
from fleet_backend.app.models.user import User
from fleet_backend.app.services import assignment_manager, journey_tracker, resource_store
from fleet_backend.app.services.audit import log_event, AuditAction
from fleet_backend.app.services.resource_locks import driver_lock
from fleet_backend.app.services.shift_reports import synthesize_shift_report

logger = logging.getLogger("fleet.duty_lifecycle")

STEP_OK = "ok"
STEP_FAILED = "failed"
STEP_SKIPPED = "skipped"


@dataclass
class DutyOutcome:
    """Result of a duty transition: the primary effect plus every secondary step."""
    driver: User
    primary: str = STEP_OK
    secondary: Dict[str, str] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    bus: Optional[Bus] = None
    journey: Optional[BusJourney] = None
    shift_report: Optional[DriverShiftReport] = None

    @property
    def failed_steps(self) -> List[str]:
        return [name for name, state in self.secondary.items() if state == STEP_FAILED]


class _StepChain:
    """Runs best-effort steps in order, recording each into a shared record."""

    def __init__(self, db: AsyncSession, driver_id: int):
        self.db = db
        self.driver_id = driver_id
        self.secondary: Dict[str, str] = {}
        self.errors: Dict[str, str] = {}

    async def run(self, name: str, step: Callable[[], Awaitable[Any]]) -> Any:
        try:
            result = await step()
            await self.db.commit()
        except Exception as exc:
            await self.db.rollback()
            self.secondary[name] = STEP_FAILED
            self.errors[name] = exc.message if isinstance(exc, AppException) else (str(exc) or exc.__class__.__name__)
            logger.exception("Duty step %s failed for driver %s", name, self.driver_id)
            return None

        self.secondary[name] = STEP_OK
        logger.info("Duty step %s completed for driver %s", name, self.driver_id)
        return result

    def skip(self, name: str, reason: Optional[str] = None):
        self.secondary[name] = STEP_SKIPPED
        if reason:
            self.errors[name] = reason


def _coerce_fuel_level(fuel_level) -> FuelLevel:
    if isinstance(fuel_level, FuelLevel):
        return fuel_level
    try:
        return FuelLevel(fuel_level)
    except ValueError:
        raise ValidationError(
            f"Invalid fuel level: {fuel_level}",
            details={"allowed": [level.value for level in FuelLevel]}
        )


async def _load_driver(db: AsyncSession, driver_id: int, company_id: int) -> User:
    result = await db.execute(
        select(User)
        .where(User.id == driver_id, User.company_id == company_id)
        .execution_options(populate_existing=True)
    )
    driver = result.scalar_one_or_none()
    if not driver:
        raise NotFoundError("Driver", driver_id)
    if driver.role != UserRole.DRIVER:
        raise ValidationError(f"User {driver_id} is not a driver")
    return driver


async def _reload(db: AsyncSession, model, ident: Optional[int]):
    if ident is None:
        return None
    return await db.get(model, ident, populate_existing=True)


async def check_in(
    db: AsyncSession,
    actor: Actor,
    driver_id: int,
    bus_id: int,
    route_id: int,
    fuel_level,
    interior_clean: bool,
    exterior_clean: bool,
) -> DutyOutcome:
    """
    Put a driver on duty with a bus and a route.

    Drivers may check in any driver of their company (shared kiosk devices);
    admins may check in any driver of their company.

    Primary path, aborting on error: field validation, driver / bus / route
    lookup, bus eligibility, then the snapshot and duty flip. Secondary
    steps: bind_route, release_previous_holder, bind_bus, update_bus,
    start_journey.

    Raises:
        ValidationError: missing or invalid fields, target is not a driver
        NotFoundError: driver, bus or route outside the caller's company
        ConflictError: bus out of service or held by an on-duty driver
    """
    if not isinstance(actor, (DriverActor, AdminActor)):
        raise UnauthorizedError("Only drivers and admins can check drivers in")

    if interior_clean is None or exterior_clean is None:
        raise ValidationError("Interior and exterior inspection results are required")
    fuel = _coerce_fuel_level(fuel_level)

    company_id = actor.company_id
    actor_id, actor_role = actor.user_id, actor.role.value

    async with driver_lock(driver_id):
        driver = await _load_driver(db, driver_id, company_id)
        bus = await resource_store.require_bus(db, bus_id, company_id)
        route = await resource_store.require_route(db, route_id, company_id)

        if not route.is_active:
            raise ValidationError(f"Route {route.name} is not active")

        if bus.status in INELIGIBLE_BUS_STATUSES:
            raise ConflictError(
                f"Bus #{bus.bus_number} is {bus.status.value} and cannot be checked in",
                details={"bus_id": bus_id, "status": bus.status.value}
            )

        previous_holder_id = None
        if bus.driver_id is not None and bus.driver_id != driver_id:
            holder = await resource_store.get_user(db, bus.driver_id)
            if holder and holder.is_on_duty:
                raise ConflictError(
                    f"Bus #{bus.bus_number} is already assigned to an on-duty driver",
                    details={"bus_id": bus_id, "driver_id": holder.id}
                )
            previous_holder_id = bus.driver_id

        now = utcnow()
        driver.last_check_in_fuel_level = fuel
        driver.last_check_in_interior_clean = interior_clean
        driver.last_check_in_exterior_clean = exterior_clean
        driver.last_check_in_time = now
        driver.is_on_duty = True
        driver.duty_start_time = now
        driver.assigned_route_id = route_id

        await log_event(
            db,
            action=AuditAction.DRIVER_CHECKED_IN,
            actor_id=actor_id,
            actor_role=actor_role,
            target_user_id=driver_id,
            company_id=company_id,
            metadata={"bus_id": bus_id, "route_id": route_id, "fuel_level": fuel.value},
        )
        await db.commit()
        logger.info("Driver %s checked in (bus %s, route %s)", driver_id, bus_id, route_id)

        chain = _StepChain(db, driver_id)

        await chain.run(
            "bind_route",
            lambda: assignment_manager.bind_driver_to_route(db, driver_id, route_id, actor_id, actor_role),
        )

        if previous_holder_id is not None:
            await chain.run(
                "release_previous_holder",
                lambda: assignment_manager.unbind_driver_from_bus(
                    db, previous_holder_id, actor_id, actor_role, company_id
                ),
            )
        else:
            chain.skip("release_previous_holder")

        bound = await chain.run(
            "bind_bus",
            lambda: assignment_manager.bind_driver_to_bus(db, driver_id, bus_id, actor_id, actor_role),
        )

        journey_id = None
        if bound is None:
            chain.skip("update_bus", "Bus binding failed")
            chain.skip("start_journey", "Bus binding failed")
        else:
            await chain.run("update_bus", lambda: _put_bus_on_route(db, bus_id, route_id, fuel))
            journey = await chain.run(
                "start_journey",
                lambda: journey_tracker.start_journey(db, bus_id, driver_id, route_id, company_id),
            )
            journey_id = journey.id if journey else None

        return DutyOutcome(
            driver=await _reload(db, User, driver_id),
            secondary=chain.secondary,
            errors=chain.errors,
            bus=await _reload(db, Bus, bus_id),
            journey=await _reload(db, BusJourney, journey_id),
        )


async def _put_bus_on_route(db: AsyncSession, bus_id: int, route_id: int, fuel: FuelLevel) -> None:
    await db.execute(
        update(Bus)
        .where(Bus.id == bus_id)
        .values(fuel_level=fuel, status=BusStatus.ON_ROUTE, current_route_id=route_id)
        .execution_options(synchronize_session=False)
    )


async def _clear_snapshot(db: AsyncSession, driver_id: int) -> None:
    await db.execute(
        update(User)
        .where(User.id == driver_id)
        .values(
            last_check_in_fuel_level=None,
            last_check_in_interior_clean=None,
            last_check_in_exterior_clean=None,
            last_check_in_time=None,
            assigned_route_id=None,
        )
        .execution_options(synchronize_session=False)
    )


def _authorize_duty_change(actor: Actor, driver_id: int):
    if isinstance(actor, AdminActor):
        return
    if isinstance(actor, DriverActor):
        if actor.user_id != driver_id:
            raise UnauthorizedError("Drivers can only change their own duty status")
        return
    raise UnauthorizedError("Only drivers and admins can change duty status")


async def set_duty_status(db: AsyncSession, actor: Actor, driver_id: int, on_duty: bool) -> DutyOutcome:
    """
    Flip a driver's duty status.

    Going on duty only stamps the start time; a full check-in goes through
    ``check_in``. Going off duty is the check-out chain: shift_report (only
    when a duty cycle is open), close_journey, unbind_bus, unbind_route,
    clear_snapshot, and finally the duty flip, which always runs.

    Raises:
        UnauthorizedError: a driver acting on another driver's status
        NotFoundError: driver outside the caller's company
        ConflictError: another duty change of this driver is in progress
    """
    _authorize_duty_change(actor, driver_id)

    company_id = actor.company_id
    actor_id, actor_role = actor.user_id, actor.role.value

    async with driver_lock(driver_id):
        driver = await _load_driver(db, driver_id, company_id)

        if on_duty:
            if not driver.is_on_duty:
                driver.is_on_duty = True
                driver.duty_start_time = utcnow()
                await log_event(
                    db,
                    action=AuditAction.DUTY_STATUS_CHANGED,
                    actor_id=actor_id,
                    actor_role=actor_role,
                    target_user_id=driver_id,
                    company_id=company_id,
                    metadata={"is_on_duty": True},
                )
                await db.commit()
            return DutyOutcome(driver=await _reload(db, User, driver_id))

        # Read under the driver lock so a concurrent second check-out finds it closed
        cycle_open = bool(driver.is_on_duty and driver.duty_start_time is not None)
        held_bus = await resource_store.get_bus_by_driver_id(db, driver_id)
        bus_id = held_bus.id if held_bus else None

        chain = _StepChain(db, driver_id)
        now = utcnow()

        report_id = None
        if cycle_open:
            report = await chain.run(
                "shift_report",
                lambda: _synthesize_for(db, driver_id, now, actor_id, actor_role),
            )
            report_id = report.id if report else None
        else:
            chain.skip("shift_report")

        if bus_id is not None:
            await chain.run(
                "close_journey",
                lambda: journey_tracker.close_journey(db, bus_id, sender_id=driver_id),
            )
        else:
            chain.skip("close_journey")

        await chain.run(
            "unbind_bus",
            lambda: assignment_manager.unbind_driver_from_bus(db, driver_id, actor_id, actor_role, company_id),
        )
        await chain.run(
            "unbind_route",
            lambda: assignment_manager.unbind_driver_from_route(db, driver_id, actor_id, actor_role, company_id),
        )
        await chain.run("clear_snapshot", lambda: _clear_snapshot(db, driver_id))

        driver = await _reload(db, User, driver_id)
        driver.is_on_duty = False
        driver.duty_start_time = None
        await log_event(
            db,
            action=AuditAction.DRIVER_CHECKED_OUT if cycle_open else AuditAction.DUTY_STATUS_CHANGED,
            actor_id=actor_id,
            actor_role=actor_role,
            target_user_id=driver_id,
            company_id=company_id,
            metadata={"is_on_duty": False, "failed_steps": [
                name for name, state in chain.secondary.items() if state == STEP_FAILED
            ]},
        )
        await db.commit()
        logger.info("Driver %s is off duty", driver_id)

        return DutyOutcome(
            driver=await _reload(db, User, driver_id),
            secondary=chain.secondary,
            errors=chain.errors,
            bus=await _reload(db, Bus, bus_id),
            shift_report=await _reload(db, DriverShiftReport, report_id),
        )


async def _synthesize_for(db: AsyncSession, driver_id: int, now, actor_id: int, actor_role: str) -> DriverShiftReport:
    driver = await _reload(db, User, driver_id)
    return await synthesize_shift_report(db, driver, now, actor_id, actor_role)


async def _set_route_state(db: AsyncSession, actor: DriverActor, status: BusStatus, action: str) -> Bus:
    driver = await _load_driver(db, actor.user_id, actor.company_id)
    bus = await resource_store.get_bus_by_driver_id(db, driver.id)
    if not bus:
        raise NotFoundError("Bus assigned to driver", driver.id)

    if bus.status in INELIGIBLE_BUS_STATUSES:
        raise ConflictError(
            f"Bus #{bus.bus_number} is {bus.status.value}",
            details={"bus_id": bus.id, "status": bus.status.value}
        )

    bus.status = status
    if status == BusStatus.ON_ROUTE and driver.assigned_route_id:
        bus.current_route_id = driver.assigned_route_id
    bus_id = bus.id

    await log_event(
        db,
        action=action,
        actor_id=actor.user_id,
        actor_role=actor.role.value,
        target_user_id=driver.id,
        company_id=actor.company_id,
        metadata={"bus_id": bus_id, "status": status.value},
    )
    await db.commit()
    return await _reload(db, Bus, bus_id)


async def activate_route(db: AsyncSession, actor: DriverActor) -> Bus:
    """Resume the route: the driver's bus goes ``on_route``."""
    return await _set_route_state(db, actor, BusStatus.ON_ROUTE, AuditAction.ROUTE_ACTIVATED)


async def deactivate_route(db: AsyncSession, actor: DriverActor) -> Bus:
    """Pause the route: the driver's bus goes ``idle``."""
    return await _set_route_state(db, actor, BusStatus.IDLE, AuditAction.ROUTE_DEACTIVATED)


async def available_buses(db: AsyncSession, actor: Actor) -> List[Bus]:
    """
    Buses a driver may check in with: in service and either free, held by
    the caller, or held by a driver who is off duty.
    """
    result = await db.execute(
        select(Bus)
        .outerjoin(User, User.id == Bus.driver_id)
        .where(
            Bus.company_id == actor.company_id,
            Bus.status.not_in(INELIGIBLE_BUS_STATUSES),
            or_(
                Bus.driver_id.is_(None),
                Bus.driver_id == actor.user_id,
                User.is_on_duty == False,
            ),
        )
        .order_by(Bus.bus_number)
    )
    return result.scalars().all()


async def available_routes(db: AsyncSession, actor: Actor) -> List[Route]:
    return await resource_store.get_active_routes(db, actor.company_id)


async def on_duty_drivers(db: AsyncSession, actor: AdminActor) -> List[dict]:
    """On-duty drivers of the admin's company with their bus and route."""
    drivers = await resource_store.get_on_duty_drivers(db, actor.company_id)

    rows = []
    for driver in drivers:
        bus = await resource_store.get_bus_by_driver_id(db, driver.id)
        route = None
        if driver.assigned_route_id:
            route = await resource_store.get_route_by_id(db, driver.assigned_route_id, actor.company_id)
        rows.append({"driver": driver, "bus": bus, "route": route})
    return rows
