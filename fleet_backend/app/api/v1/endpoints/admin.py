"""
Admin API Endpoints.

Company administrators supervise drivers: force check-out, on-duty
dashboard, journey reports, shift reports and the audit trail.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.db.session import get_db
from fleet_backend.app.core.guards import AdminActor, require_admin
from fleet_backend.app.schemas.admin import AuditTrailResponse, AuditLogResponse
from fleet_backend.app.schemas.duty import DutyStatusUpdate, DutyOutcomeResponse, OnDutyDriverResponse
from fleet_backend.app.schemas.journey import JourneyReportRow
from fleet_backend.app.schemas.shift_report import ShiftReportResponse
from fleet_backend.app.services import duty_lifecycle, journey_tracker, resource_store, shift_reports
from fleet_backend.app.services.audit import get_audit_trail

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.patch("/drivers/{driver_id}/duty-status", response_model=DutyOutcomeResponse)
async def set_driver_duty_status(
    request: DutyStatusUpdate,
    driver_id: int = Path(..., description="Driver ID"),
    admin: AdminActor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Change any driver's duty status (admin-only).

    Used to force a driver off duty who forgot to check out; runs the full
    check-out chain.
    """
    outcome = await duty_lifecycle.set_duty_status(db, admin, driver_id, request.is_on_duty)
    return DutyOutcomeResponse.model_validate(outcome)


@router.get("/on-duty-drivers", response_model=List[OnDutyDriverResponse])
async def list_on_duty_drivers(
    admin: AdminActor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """On-duty drivers of the company with their bus and route."""
    return await duty_lifecycle.on_duty_drivers(db, admin)


@router.get("/reports/journeys", response_model=List[JourneyReportRow])
async def journey_report(
    start_date: Optional[date] = Query(None, description="Defaults to the last 7 days"),
    end_date: Optional[date] = Query(None, description="Defaults to today"),
    admin: AdminActor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await journey_tracker.list_company_journeys(db, admin.company_id, start_date, end_date)


@router.get("/reports/journeys/bus/{bus_id}", response_model=List[JourneyReportRow])
async def bus_journey_history(
    bus_id: int = Path(..., description="Bus ID"),
    limit: Optional[int] = Query(None, ge=1, le=365),
    admin: AdminActor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await resource_store.require_bus(db, bus_id, admin.company_id)
    return await journey_tracker.list_bus_journeys(db, admin.company_id, bus_id, limit)


@router.get("/shift-reports/{driver_id}", response_model=List[ShiftReportResponse])
async def driver_shift_reports(
    driver_id: int = Path(..., description="Driver ID"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    admin: AdminActor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await resource_store.require_driver(db, driver_id, admin.company_id)
    return await shift_reports.list_shift_reports(
        db, admin.company_id, driver_id=driver_id, start_date=start_date, end_date=end_date, limit=limit
    )


@router.get("/audit-logs", response_model=AuditTrailResponse)
async def get_audit_logs(
    target_user_id: Optional[int] = Query(None, description="Filter by driver"),
    action: Optional[str] = Query(None, description="Filter by action type"),
    limit: int = Query(100, ge=1, le=500),
    admin: AdminActor = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Company audit trail (admin-only), most recent first.
    """
    logs = await get_audit_trail(
        db=db,
        company_id=admin.company_id,
        target_user_id=target_user_id,
        action=action,
        limit=limit
    )

    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs)
    )
