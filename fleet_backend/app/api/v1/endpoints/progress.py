"""
Shared read endpoints: stop completions, today's journey, shift reports and
the parent's stop progress view.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.db.session import get_db
from fleet_backend.app.core.exceptions import NotFoundError
from fleet_backend.app.core.guards import (
    Actor, DriverActor, ParentActor, require_parent, require_staff
)
from fleet_backend.app.schemas.journey import JourneyResponse
from fleet_backend.app.schemas.shift_report import ShiftReportResponse
from fleet_backend.app.schemas.stop_progress import StopCompletionResponse, StopProgressResponse
from fleet_backend.app.services import journey_tracker, resource_store, shift_reports, stop_progress

router = APIRouter(tags=["Progress"])
parent_router = APIRouter(prefix="/parent", tags=["Parent"])


@router.get("/routes/{route_id}/completed-stops", response_model=List[StopCompletionResponse])
async def list_completed_stops(
    route_id: int = Path(..., description="Route ID"),
    actor: Actor = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    """Today's stop completions of a route, in stop order."""
    await resource_store.require_route(db, route_id, actor.company_id)
    return await stop_progress.get_today_completed_stops(db, route_id)


@router.get("/journeys/today/{bus_id}", response_model=JourneyResponse)
async def get_today_journey(
    bus_id: int = Path(..., description="Bus ID"),
    actor: Actor = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    await resource_store.require_bus(db, bus_id, actor.company_id)
    journey = await journey_tracker.get_today_journey(db, bus_id)
    if not journey:
        raise NotFoundError("Journey for today", bus_id)
    return journey


@router.get("/shift-reports", response_model=List[ShiftReportResponse])
async def list_shift_reports(
    driver_id: Optional[int] = Query(None, description="Admins only: filter by driver"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    """Drivers see their own reports, admins see the company's."""
    if isinstance(actor, DriverActor):
        driver_id = actor.user_id

    return await shift_reports.list_shift_reports(
        db, actor.company_id, driver_id=driver_id, start_date=start_date, end_date=end_date, limit=limit
    )


@parent_router.get("/stop-progress/{student_id}", response_model=StopProgressResponse)
async def get_stop_progress(
    student_id: int = Path(..., description="Student ID"),
    actor: ParentActor = Depends(require_parent),
    db: AsyncSession = Depends(get_db)
):
    """How many stops the bus still has before the child's stop."""
    return await stop_progress.get_stop_progress(db, actor.user_id, student_id)
