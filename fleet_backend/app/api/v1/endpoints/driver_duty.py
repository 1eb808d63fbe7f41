"""
Driver duty API endpoints.

Check-in, check-out, route pause/resume and the pickers of the check-in form.
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.db.session import get_db
from fleet_backend.app.core.exceptions import NotFoundError
from fleet_backend.app.core.guards import DriverActor, require_driver
from fleet_backend.app.schemas.bus import BusResponse, RouteResponse
from fleet_backend.app.schemas.duty import CheckInRequest, DutyStatusUpdate, DutyOutcomeResponse
from fleet_backend.app.services import duty_lifecycle, resource_store

router = APIRouter(prefix="/driver", tags=["Driver - Duty"])


@router.post("/check-in", response_model=DutyOutcomeResponse)
async def check_in(
    request: CheckInRequest,
    actor: DriverActor = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """
    Put a driver on duty with a bus and a route.

    The duty flip either succeeds or the request fails. Assignment, bus
    update and journey start are reported per step in ``secondary``.
    """
    outcome = await duty_lifecycle.check_in(
        db,
        actor,
        driver_id=request.driver_id,
        bus_id=request.bus_id,
        route_id=request.route_id,
        fuel_level=request.fuel_level,
        interior_clean=request.interior_clean,
        exterior_clean=request.exterior_clean,
    )
    return DutyOutcomeResponse.model_validate(outcome)


@router.patch("/duty-status", response_model=DutyOutcomeResponse)
async def update_duty_status(
    request: DutyStatusUpdate,
    actor: DriverActor = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """
    Change the caller's own duty status.

    Going off duty writes the shift report, closes today's journey and
    releases bus and route. The caller always ends up off duty.
    """
    outcome = await duty_lifecycle.set_duty_status(db, actor, actor.user_id, request.is_on_duty)
    return DutyOutcomeResponse.model_validate(outcome)


@router.post("/activate-route", response_model=BusResponse)
async def activate_route(
    actor: DriverActor = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """Resume the route without a new inspection."""
    return await duty_lifecycle.activate_route(db, actor)


@router.post("/deactivate-route", response_model=BusResponse)
async def deactivate_route(
    actor: DriverActor = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """Pause the route; the bus stays assigned."""
    return await duty_lifecycle.deactivate_route(db, actor)


@router.get("/available-buses", response_model=List[BusResponse])
async def list_available_buses(
    actor: DriverActor = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    return await duty_lifecycle.available_buses(db, actor)


@router.get("/available-routes", response_model=List[RouteResponse])
async def list_available_routes(
    actor: DriverActor = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    return await duty_lifecycle.available_routes(db, actor)


@router.get("/my-bus", response_model=BusResponse)
async def get_my_bus(
    actor: DriverActor = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """Bus currently assigned to the caller."""
    bus = await resource_store.get_bus_by_driver_id(db, actor.user_id)
    if not bus:
        raise NotFoundError("Bus assigned to driver", actor.user_id)
    return bus
