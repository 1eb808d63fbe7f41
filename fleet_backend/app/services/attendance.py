"""
Student attendance log.

Drivers mark riders of their assigned route present or absent, once per
(student, route) per service day; a later mark replaces the earlier one.
"""

from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.core.clock import service_today
from fleet_backend.app.core.exceptions import NotFoundError, ValidationError
from fleet_backend.app.models.fleet_enums import AttendanceStatus
from fleet_backend.app.models.student import Student
from fleet_backend.app.models.student_attendance import StudentAttendance
from fleet_backend.app.models.user import User


async def _get_today_mark(db: AsyncSession, student_id: int, route_id: int) -> Optional[StudentAttendance]:
    result = await db.execute(
        select(StudentAttendance)
        .where(
            StudentAttendance.student_id == student_id,
            StudentAttendance.route_id == route_id,
            StudentAttendance.attendance_date == service_today(),
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def mark_student_attendance(
    db: AsyncSession,
    driver: User,
    student_id: int,
    status: AttendanceStatus,
    notes: Optional[str] = None,
) -> StudentAttendance:
    """
    Upsert today's attendance mark of a student on the driver's route.

    Raises:
        ValidationError: driver has no assigned route
        NotFoundError: student not in the driver's company
    """
    if not driver.assigned_route_id:
        raise ValidationError("No route assigned. Please check in first.")

    route_id = driver.assigned_route_id
    driver_id, company_id = driver.id, driver.company_id
    result = await db.execute(
        select(Student).where(Student.id == student_id, Student.company_id == company_id)
    )
    if not result.scalar_one_or_none():
        raise NotFoundError("Student", student_id)

    mark = await _get_today_mark(db, student_id, route_id)
    if mark is None:
        mark = StudentAttendance(
            company_id=company_id,
            student_id=student_id,
            driver_id=driver_id,
            route_id=route_id,
            attendance_date=service_today(),
            status=status,
            notes=notes,
        )
        db.add(mark)
        try:
            await db.commit()
        except IntegrityError:
            # Marked concurrently; fall through to update the winner
            await db.rollback()
            mark = await _get_today_mark(db, student_id, route_id)
            if mark is None:
                raise
        else:
            await db.refresh(mark)
            return mark

    mark.status = status
    mark.driver_id = driver_id
    if notes is not None:
        mark.notes = notes
    await db.commit()
    await db.refresh(mark)
    return mark


async def count_present_today(db: AsyncSession, driver_id: int, route_id: Optional[int]) -> int:
    """Riders the driver marked present today on the route."""
    if route_id is None:
        return 0
    result = await db.execute(
        select(func.count(StudentAttendance.id)).where(
            StudentAttendance.driver_id == driver_id,
            StudentAttendance.route_id == route_id,
            StudentAttendance.attendance_date == service_today(),
            StudentAttendance.status == AttendanceStatus.PRESENT,
        )
    )
    return result.scalar() or 0
