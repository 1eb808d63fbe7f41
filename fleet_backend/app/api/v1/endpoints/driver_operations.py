"""
Driver run operations API endpoints.

Journey checkpoints, stop completions, school visits and attendance, all
against the bus and route the driver checked in with.
"""

from typing import List

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.db.session import get_db
from fleet_backend.app.core.exceptions import ValidationError
from fleet_backend.app.core.guards import Actor, DriverActor, require_driver, require_staff
from fleet_backend.app.models.bus import Bus
from fleet_backend.app.models.user import User
from fleet_backend.app.schemas.journey import JourneyStartRequest, JourneyEventRequest, JourneyResponse
from fleet_backend.app.schemas.school_visit import (
    SchoolArrivalRequest, SchoolVisitResponse, AttendanceRequest, AttendanceResponse
)
from fleet_backend.app.schemas.stop_progress import (
    StopCompleteRequest, StopCompleteResponse, StopResetRequest, StopResetResponse
)
from fleet_backend.app.services import (
    attendance, journey_tracker, resource_store, school_visits, stop_progress
)

router = APIRouter(prefix="/driver", tags=["Driver - Operations"])


async def _driver_and_bus(db: AsyncSession, actor: DriverActor) -> tuple[User, Bus]:
    driver = await resource_store.require_driver(db, actor.user_id, actor.company_id)
    bus = await resource_store.get_bus_by_driver_id(db, driver.id)
    if not bus:
        raise ValidationError("No bus assigned. Please check in first.")
    return driver, bus


@router.post("/journey/start", response_model=JourneyResponse)
async def start_journey(
    request: JourneyStartRequest,
    actor: DriverActor = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """Start today's journey of the driver's bus (returns it if already started)."""
    driver, bus = await _driver_and_bus(db, actor)
    return await journey_tracker.start_journey(
        db,
        bus_id=bus.id,
        driver_id=driver.id,
        route_id=driver.assigned_route_id,
        company_id=actor.company_id,
        homebase_address=request.homebase_address,
    )


@router.post("/journey/event", response_model=JourneyResponse)
async def record_journey_event(
    request: JourneyEventRequest,
    actor: DriverActor = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """Stamp a checkpoint on today's journey. 404 until the journey is started."""
    _, bus = await _driver_and_bus(db, actor)
    return await journey_tracker.record_event(
        db, bus.id, request.event_type, school_id=request.school_id, sender_id=actor.user_id
    )


@router.post("/stops/complete", response_model=StopCompleteResponse)
async def complete_stop(
    request: StopCompleteRequest,
    actor: DriverActor = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """
    Mark a stop reached today and notify the guardians of its riders.

    Resubmitting a stop already completed today returns the existing
    completion with ``created`` false.
    """
    driver, bus = await _driver_and_bus(db, actor)
    result = await stop_progress.mark_stop_completed(
        db,
        route_stop_id=request.route_stop_id,
        route_id=request.route_id,
        driver_id=driver.id,
        bus_id=bus.id,
        company_id=actor.company_id,
        stop_sequence=request.stop_sequence,
    )
    return StopCompleteResponse.model_validate(result)


@router.post("/stops/reset", response_model=StopResetResponse)
async def reset_stops(
    request: StopResetRequest,
    actor: Actor = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    """Clear today's completions of a route before a second run."""
    removed = await stop_progress.reset_route_stops(
        db, request.route_id, actor.company_id, actor.user_id, actor.role.value
    )
    return StopResetResponse(route_id=request.route_id, removed=removed)


@router.post("/school-visits/arrival", response_model=SchoolVisitResponse)
async def record_school_arrival(
    request: SchoolArrivalRequest,
    actor: DriverActor = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    driver = await resource_store.require_driver(db, actor.user_id, actor.company_id)
    return await school_visits.record_school_arrival(db, driver, request.school_id, request.notes)


@router.post("/school-visits/{visit_id}/departure", response_model=SchoolVisitResponse)
async def record_school_departure(
    visit_id: int = Path(..., description="School visit ID"),
    actor: DriverActor = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    return await school_visits.record_school_departure(db, actor.user_id, visit_id)


@router.get("/school-visits", response_model=List[SchoolVisitResponse])
async def list_school_visits(
    actor: DriverActor = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """Today's school visits of the caller."""
    return await school_visits.list_today_visits(db, actor.user_id)


@router.post("/attendance", response_model=AttendanceResponse)
async def mark_attendance(
    request: AttendanceRequest,
    actor: DriverActor = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """Mark a rider present or absent for today's run."""
    driver = await resource_store.require_driver(db, actor.user_id, actor.company_id)
    return await attendance.mark_student_attendance(
        db, driver, request.student_id, request.status, request.notes
    )
