"""
Stop progress tracker.

Records a bus reaching a route stop (once per stop per service day), tells
guardians of the riders at that stop, and answers "how many stops away is
the bus" for a parent.
"""

import logging
from dataclasses import dataclass
from typing import Optional, List, Sequence

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.core.clock import utcnow, service_today
from fleet_backend.app.core.exceptions import NotFoundError, UnauthorizedError
from fleet_backend.app.models.notification import NotificationType, SenderRole, RecipientRole
from fleet_backend.app.models.route import RouteStop
from fleet_backend.app.models.route_stop_completion import RouteStopCompletion
from fleet_backend.app.services import resource_store
from fleet_backend.app.services.audit import log_event, AuditAction
from fleet_backend.app.services.notification_service import NotificationService

logger = logging.getLogger("fleet.stop_progress")

STOP_ARRIVAL_TITLE = "Bus Arrived at Stop"


@dataclass
class StopMarkResult:
    completion: RouteStopCompletion
    created: bool
    notifications_sent: int = 0
    notifications_failed: int = 0


async def _get_today_completion(db: AsyncSession, route_stop_id: int) -> Optional[RouteStopCompletion]:
    result = await db.execute(
        select(RouteStopCompletion).where(
            RouteStopCompletion.route_stop_id == route_stop_id,
            RouteStopCompletion.completion_date == service_today(),
        )
    )
    return result.scalar_one_or_none()


async def mark_stop_completed(
    db: AsyncSession,
    route_stop_id: int,
    route_id: int,
    driver_id: int,
    bus_id: Optional[int],
    company_id: int,
    stop_sequence: Optional[int] = None,
) -> StopMarkResult:
    """
    Record today's completion of a stop and notify guardians.

    A stop already completed today is returned as is and nobody is notified
    again. Notification failures are logged and counted; the completion
    stays committed.

    The completion is ordered by the stop's position on the route; a
    client-reported ``stop_sequence`` that disagrees is logged and ignored.

    Raises:
        NotFoundError: route not in company, or stop not on the route
    """
    await resource_store.require_route(db, route_id, company_id)

    stop = await resource_store.get_route_stop_by_id(db, route_stop_id)
    if not stop or stop.route_id != route_id:
        raise NotFoundError("Route stop", route_stop_id)
    stop_address = stop.address
    if stop_sequence is not None and stop_sequence != stop.order:
        logger.warning(
            "Stop %s reported as sequence %s but is number %s on route %s",
            route_stop_id, stop_sequence, stop.order, route_id
        )
    stop_sequence = stop.order

    existing = await _get_today_completion(db, route_stop_id)
    if existing:
        return StopMarkResult(completion=existing, created=False)

    completion = RouteStopCompletion(
        company_id=company_id,
        route_stop_id=route_stop_id,
        route_id=route_id,
        bus_id=bus_id,
        driver_id=driver_id,
        stop_sequence=stop_sequence,
        completion_date=service_today(),
        arrived_at=utcnow(),
    )
    db.add(completion)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        existing = await _get_today_completion(db, route_stop_id)
        if existing is None:
            raise
        return StopMarkResult(completion=existing, created=False)

    await db.refresh(completion)
    logger.info("Stop %s of route %s completed by driver %s", route_stop_id, route_id, driver_id)

    result = StopMarkResult(completion=completion, created=True)

    students = await resource_store.get_students_by_stop_id(db, route_stop_id)
    recipients = []
    for student in students:
        for parent in await resource_store.get_linked_parents_by_student_id(db, student.id):
            recipients.append((parent.id, student.first_name))

    for parent_id, first_name in recipients:
        try:
            await NotificationService.create_system_notification(
                db,
                company_id=company_id,
                sender_id=driver_id,
                sender_role=SenderRole.DRIVER,
                recipient_role=RecipientRole.PARENT,
                recipient_id=parent_id,
                route_id=route_id,
                title=STOP_ARRIVAL_TITLE,
                message=f"The bus has arrived at {stop_address} for {first_name}",
                type=NotificationType.INFO,
            )
            await db.commit()
            result.notifications_sent += 1
        except Exception:
            await db.rollback()
            result.notifications_failed += 1
            logger.exception("Stop arrival notification to parent %s failed", parent_id)

    if result.notifications_failed:
        await db.refresh(completion)

    return result


async def get_today_completed_stops(db: AsyncSession, route_id: int) -> List[RouteStopCompletion]:
    result = await db.execute(
        select(RouteStopCompletion)
        .where(
            RouteStopCompletion.route_id == route_id,
            RouteStopCompletion.completion_date == service_today(),
        )
        .order_by(RouteStopCompletion.stop_sequence, RouteStopCompletion.id)
    )
    return result.scalars().all()


async def get_last_completed_stop(db: AsyncSession, route_id: int) -> Optional[RouteStopCompletion]:
    result = await db.execute(
        select(RouteStopCompletion)
        .where(
            RouteStopCompletion.route_id == route_id,
            RouteStopCompletion.completion_date == service_today(),
        )
        .order_by(RouteStopCompletion.stop_sequence.desc(), RouteStopCompletion.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def reset_route_stops(
    db: AsyncSession,
    route_id: int,
    company_id: int,
    actor_id: Optional[int] = None,
    actor_role: Optional[str] = None,
) -> int:
    """
    Delete today's completions of a route so a new run can start. Commits.

    Returns:
        Number of completions removed
    """
    await resource_store.require_route(db, route_id, company_id)

    result = await db.execute(
        delete(RouteStopCompletion)
        .where(
            RouteStopCompletion.route_id == route_id,
            RouteStopCompletion.completion_date == service_today(),
        )
        .execution_options(synchronize_session=False)
    )

    await log_event(
        db,
        action=AuditAction.ROUTE_STOPS_RESET,
        actor_id=actor_id,
        actor_role=actor_role,
        company_id=company_id,
        metadata={"route_id": route_id, "removed": result.rowcount},
    )
    await db.commit()

    logger.info("Reset %s stop completion(s) of route %s", result.rowcount, route_id)
    return result.rowcount


def compute_stops_away(
    route_stops: Sequence[RouteStop],
    completions: Sequence[RouteStopCompletion],
    student_stop_id: int,
) -> Optional[int]:
    """
    Stops still to be served before the bus reaches the student's stop.

    ``route_stops`` must be in driving order. Returns 0 once the student's
    stop is completed, None when the stop is not on the route.
    """
    stop_ids = [stop.id for stop in route_stops]
    if student_stop_id not in stop_ids:
        return None

    completed_ids = {completion.route_stop_id for completion in completions}
    if student_stop_id in completed_ids:
        return 0

    student_index = stop_ids.index(student_stop_id)
    completed_indexes = [i for i, stop_id in enumerate(stop_ids) if stop_id in completed_ids]
    last_completed_index = max(completed_indexes) if completed_indexes else -1

    return max(0, student_index - last_completed_index - 1)


async def get_stop_progress(db: AsyncSession, parent_id: int, student_id: int) -> dict:
    """
    Progress of the bus towards a linked student's stop.

    Raises:
        UnauthorizedError: parent is not linked to the student
    """
    student = await resource_store.get_linked_student(db, parent_id, student_id)
    if not student:
        raise UnauthorizedError("You are not linked to this student")

    progress = {
        "student_id": student.id,
        "route_id": student.route_id,
        "stop_id": student.stop_id,
        "has_route": student.route_id is not None,
        "has_stop": False,
        "stop_name": None,
        "stop_address": None,
        "stop_sequence": None,
        "total_stops": 0,
        "completed_stops": 0,
        "stops_away": None,
        "has_arrived": False,
        "last_completed_stop_id": None,
    }
    if student.route_id is None:
        return progress

    stops = await resource_store.get_stops_by_route_id(db, student.route_id)
    completions = await get_today_completed_stops(db, student.route_id)
    last = await get_last_completed_stop(db, student.route_id)

    progress["total_stops"] = len(stops)
    progress["completed_stops"] = len(completions)
    progress["last_completed_stop_id"] = last.route_stop_id if last else None

    stop_ids = [stop.id for stop in stops]
    if student.stop_id is None or student.stop_id not in stop_ids:
        return progress

    student_stop = stops[stop_ids.index(student.stop_id)]
    progress["has_stop"] = True
    progress["stop_name"] = student_stop.name
    progress["stop_address"] = student_stop.address
    progress["stop_sequence"] = stop_ids.index(student.stop_id) + 1
    progress["stops_away"] = compute_stops_away(stops, completions, student.stop_id)
    progress["has_arrived"] = student.stop_id in {c.route_stop_id for c in completions}
    return progress
