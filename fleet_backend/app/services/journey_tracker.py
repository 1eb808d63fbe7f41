"""
Journey tracker.

One BusJourney per bus per service day, advanced by four checkpoint events.
Events are stamped in whatever order they arrive.
"""

import logging
from datetime import date, timedelta
from typing import Optional, List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.core.clock import utcnow, service_today, minutes_between
from fleet_backend.app.core.config import settings
from fleet_backend.app.core.exceptions import NotFoundError
from fleet_backend.app.models.bus import Bus
from fleet_backend.app.models.bus_journey import BusJourney
from fleet_backend.app.models.fleet_enums import JourneyEventType
from fleet_backend.app.models.notification import NotificationType, SenderRole, RecipientRole
from fleet_backend.app.models.route import Route
from fleet_backend.app.models.school import School
from fleet_backend.app.models.user import User
from fleet_backend.app.services.notification_service import NotificationService

logger = logging.getLogger("fleet.journey_tracker")

_EVENT_FIELDS = {
    JourneyEventType.DEPART_HOMEBASE: "depart_homebase_at",
    JourneyEventType.ARRIVE_SCHOOL: "arrive_school_at",
    JourneyEventType.DEPART_SCHOOL: "depart_school_at",
    JourneyEventType.ARRIVE_HOMEBASE: "arrive_homebase_at",
}

_SCHOOL_EVENT_TITLES = {
    JourneyEventType.ARRIVE_SCHOOL: "arrived at school",
    JourneyEventType.DEPART_SCHOOL: "departed school",
}


async def get_today_journey(db: AsyncSession, bus_id: int) -> Optional[BusJourney]:
    result = await db.execute(
        select(BusJourney)
        .where(BusJourney.bus_id == bus_id, BusJourney.journey_date == service_today())
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def start_journey(
    db: AsyncSession,
    bus_id: int,
    driver_id: int,
    route_id: Optional[int],
    company_id: int,
    homebase_address: Optional[str] = None,
) -> BusJourney:
    """
    Start today's journey for a bus.

    Idempotent: an existing journey for (bus, today) is returned unchanged.
    A concurrent insert losing on the unique constraint returns the winner's
    row. Commits.
    """
    existing = await get_today_journey(db, bus_id)
    if existing:
        return existing

    journey = BusJourney(
        company_id=company_id,
        bus_id=bus_id,
        driver_id=driver_id,
        route_id=route_id,
        journey_date=service_today(),
        depart_homebase_at=utcnow(),
        homebase_address=homebase_address,
    )
    db.add(journey)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        winner = await get_today_journey(db, bus_id)
        if winner is None:
            raise
        return winner

    await db.refresh(journey)
    logger.info("Journey %s started for bus %s", journey.id, bus_id)
    return journey


async def record_event(
    db: AsyncSession,
    bus_id: int,
    event_type: JourneyEventType,
    school_id: Optional[int] = None,
    sender_id: Optional[int] = None,
) -> BusJourney:
    """
    Stamp a checkpoint on today's journey of a bus. Commits.

    ``arrive_homebase`` also derives ``total_duration_minutes`` when the
    departure was recorded. School arrival and departure notify the parents
    of the journey's route.

    Raises:
        NotFoundError: no journey started today for this bus, or the school
            is not in the journey's company
    """
    journey = await get_today_journey(db, bus_id)
    if not journey:
        raise NotFoundError("Journey for today", bus_id)

    if event_type == JourneyEventType.ARRIVE_SCHOOL and school_id is not None:
        result = await db.execute(
            select(School.id).where(School.id == school_id, School.company_id == journey.company_id)
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundError("School", school_id)

    now = utcnow()
    setattr(journey, _EVENT_FIELDS[event_type], now)

    if event_type == JourneyEventType.ARRIVE_SCHOOL and school_id is not None:
        journey.school_id = school_id

    if event_type == JourneyEventType.ARRIVE_HOMEBASE and journey.depart_homebase_at:
        journey.total_duration_minutes = round(minutes_between(journey.depart_homebase_at, now))

    if event_type in _SCHOOL_EVENT_TITLES and journey.route_id:
        bus = await db.get(Bus, bus_id)
        await NotificationService.create_system_notification(
            db,
            company_id=journey.company_id,
            sender_id=sender_id or journey.driver_id,
            sender_role=SenderRole.DRIVER,
            recipient_role=RecipientRole.ROUTE_PARENTS,
            route_id=journey.route_id,
            title=f"Bus {_SCHOOL_EVENT_TITLES[event_type]}",
            message=f"Bus #{bus.bus_number} {_SCHOOL_EVENT_TITLES[event_type]}",
            type=NotificationType.INFO,
        )

    await db.commit()
    await db.refresh(journey)

    logger.info("Journey %s: %s recorded for bus %s", journey.id, event_type.value, bus_id)
    return journey


async def close_journey(db: AsyncSession, bus_id: int, sender_id: Optional[int] = None) -> Optional[BusJourney]:
    """
    Record ``arrive_homebase`` on today's journey if it is still open.

    Returns the closed journey, or None when there was nothing to close.
    """
    journey = await get_today_journey(db, bus_id)
    if not journey or journey.arrive_homebase_at is not None:
        return None
    return await record_event(db, bus_id, JourneyEventType.ARRIVE_HOMEBASE, sender_id=sender_id)


async def list_company_journeys(
    db: AsyncSession,
    company_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[dict]:
    """
    Journeys of a company between two service dates (inclusive), newest first,
    each enriched with bus, driver, route and school summaries.

    Defaults to the last ``journey_report_default_days`` days.
    """
    end_date = end_date or service_today()
    start_date = start_date or end_date - timedelta(days=settings.journey_report_default_days - 1)

    result = await db.execute(
        select(BusJourney)
        .where(
            BusJourney.company_id == company_id,
            BusJourney.journey_date >= start_date,
            BusJourney.journey_date <= end_date,
        )
        .order_by(BusJourney.journey_date.desc(), BusJourney.id.desc())
    )
    return await _enrich(db, company_id, result.scalars().all())


async def list_bus_journeys(
    db: AsyncSession,
    company_id: int,
    bus_id: int,
    limit: Optional[int] = None,
) -> List[dict]:
    """Journey history of one bus, newest first."""
    result = await db.execute(
        select(BusJourney)
        .where(BusJourney.company_id == company_id, BusJourney.bus_id == bus_id)
        .order_by(BusJourney.journey_date.desc(), BusJourney.id.desc())
        .limit(limit or settings.journey_history_default_limit)
    )
    return await _enrich(db, company_id, result.scalars().all())


async def _enrich(db: AsyncSession, company_id: int, journeys: List[BusJourney]) -> List[dict]:
    bus_ids = {j.bus_id for j in journeys}
    driver_ids = {j.driver_id for j in journeys if j.driver_id}
    route_ids = {j.route_id for j in journeys if j.route_id}
    school_ids = {j.school_id for j in journeys if j.school_id}

    buses = await _by_id(db, Bus, bus_ids, company_id)
    drivers = await _by_id(db, User, driver_ids, company_id)
    routes = await _by_id(db, Route, route_ids, company_id)
    schools = await _by_id(db, School, school_ids, company_id)

    rows = []
    for journey in journeys:
        bus = buses.get(journey.bus_id)
        driver = drivers.get(journey.driver_id)
        route = routes.get(journey.route_id)
        school = schools.get(journey.school_id)
        rows.append({
            "journey": journey,
            "bus": {"id": bus.id, "bus_number": bus.bus_number} if bus else None,
            "driver": {"id": driver.id, "name": driver.full_name} if driver else None,
            "route": {"id": route.id, "name": route.name} if route else None,
            "school": {"id": school.id, "name": school.name} if school else None,
        })
    return rows


async def _by_id(db: AsyncSession, model, ids: set, company_id: int) -> dict:
    if not ids:
        return {}
    result = await db.execute(
        select(model).where(model.id.in_(ids), model.company_id == company_id)
    )
    return {row.id: row for row in result.scalars().all()}
