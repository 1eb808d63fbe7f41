"""
Journey tracker tests.
"""

from datetime import timedelta

import pytest
from sqlalchemy import select, func

from fleet_backend.app.core.clock import utcnow, service_today
from fleet_backend.app.core.exceptions import NotFoundError
from fleet_backend.app.models.bus_journey import BusJourney
from fleet_backend.app.models.fleet_enums import JourneyEventType
from fleet_backend.app.models.notification import SystemNotification, RecipientRole
from fleet_backend.app.services import journey_tracker


async def _start(db_session, fleet, **kwargs):
    return await journey_tracker.start_journey(
        db_session,
        bus_id=fleet.bus.id,
        driver_id=fleet.driver.id,
        route_id=fleet.route.id,
        company_id=fleet.company.id,
        **kwargs
    )


@pytest.mark.asyncio
async def test_start_journey_is_idempotent(db_session, fleet):
    first = await _start(db_session, fleet, homebase_address="Depot 1")
    second = await _start(db_session, fleet, homebase_address="Somewhere else")

    assert first.id == second.id
    assert second.homebase_address == "Depot 1"
    assert first.depart_homebase_at is not None
    assert first.journey_date == service_today()

    count = await db_session.execute(select(func.count(BusJourney.id)))
    assert count.scalar() == 1


@pytest.mark.asyncio
async def test_event_without_journey_not_found(db_session, fleet):
    with pytest.raises(NotFoundError):
        await journey_tracker.record_event(db_session, fleet.bus.id, JourneyEventType.ARRIVE_SCHOOL)


@pytest.mark.asyncio
async def test_events_accepted_out_of_order(db_session, fleet):
    await _start(db_session, fleet)

    journey = await journey_tracker.record_event(db_session, fleet.bus.id, JourneyEventType.DEPART_SCHOOL)
    assert journey.depart_school_at is not None
    assert journey.arrive_school_at is None

    journey = await journey_tracker.record_event(
        db_session, fleet.bus.id, JourneyEventType.ARRIVE_SCHOOL, school_id=fleet.school.id
    )
    assert journey.arrive_school_at is not None
    assert journey.school_id == fleet.school.id


@pytest.mark.asyncio
async def test_arrive_homebase_computes_duration(db_session, fleet):
    journey = await _start(db_session, fleet)
    journey.depart_homebase_at = utcnow() - timedelta(minutes=95)
    await db_session.commit()

    closed = await journey_tracker.record_event(db_session, fleet.bus.id, JourneyEventType.ARRIVE_HOMEBASE)

    assert closed.arrive_homebase_at is not None
    assert closed.total_duration_minutes in (95, 96)


@pytest.mark.asyncio
async def test_arrive_homebase_without_departure_leaves_duration_unset(db_session, fleet):
    journey = await _start(db_session, fleet)
    journey.depart_homebase_at = None
    await db_session.commit()

    closed = await journey_tracker.record_event(db_session, fleet.bus.id, JourneyEventType.ARRIVE_HOMEBASE)

    assert closed.arrive_homebase_at is not None
    assert closed.total_duration_minutes is None


@pytest.mark.asyncio
async def test_close_journey_only_once(db_session, fleet):
    await _start(db_session, fleet)

    assert await journey_tracker.close_journey(db_session, fleet.bus.id) is not None
    assert await journey_tracker.close_journey(db_session, fleet.bus2.id) is None
    assert await journey_tracker.close_journey(db_session, fleet.bus.id) is None


@pytest.mark.asyncio
async def test_school_events_notify_route_parents(db_session, fleet):
    await _start(db_session, fleet)

    await journey_tracker.record_event(db_session, fleet.bus.id, JourneyEventType.ARRIVE_SCHOOL)
    await journey_tracker.record_event(db_session, fleet.bus.id, JourneyEventType.DEPART_SCHOOL)

    result = await db_session.execute(select(SystemNotification).order_by(SystemNotification.id))
    notifications = result.scalars().all()

    assert len(notifications) == 2
    assert all(n.recipient_role == RecipientRole.ROUTE_PARENTS for n in notifications)
    assert all(n.route_id == fleet.route.id for n in notifications)
    assert "Bus #42 arrived at school" == notifications[0].message


@pytest.mark.asyncio
async def test_bus_history_and_company_report(db_session, fleet):
    journey = await _start(db_session, fleet)
    earlier = BusJourney(
        company_id=fleet.company.id,
        bus_id=fleet.bus.id,
        driver_id=fleet.driver.id,
        route_id=fleet.route.id,
        journey_date=service_today() - timedelta(days=30),
    )
    db_session.add(earlier)
    await db_session.commit()

    report = await journey_tracker.list_company_journeys(db_session, fleet.company.id)
    assert [row["journey"].id for row in report] == [journey.id]
    assert report[0]["bus"] == {"id": fleet.bus.id, "bus_number": "42"}
    assert report[0]["driver"]["name"] == "Dan Driver"
    assert report[0]["route"]["name"] == "Route R"

    history = await journey_tracker.list_bus_journeys(db_session, fleet.company.id, fleet.bus.id)
    assert [row["journey"].id for row in history] == [journey.id, earlier.id]

    other = await journey_tracker.list_bus_journeys(db_session, fleet.other_company.id, fleet.bus.id)
    assert other == []


@pytest.mark.asyncio
async def test_arrive_school_rejects_unknown_school(db_session, fleet):
    await _start(db_session, fleet)

    with pytest.raises(NotFoundError):
        await journey_tracker.record_event(
            db_session, fleet.bus.id, JourneyEventType.ARRIVE_SCHOOL, school_id=987654
        )


@pytest.mark.asyncio
async def test_arrive_school_rejects_school_of_other_company(db_session, fleet):
    journey = await _start(db_session, fleet)

    with pytest.raises(NotFoundError):
        await journey_tracker.record_event(
            db_session, fleet.bus.id, JourneyEventType.ARRIVE_SCHOOL, school_id=fleet.other_school.id
        )

    unchanged = await journey_tracker.get_today_journey(db_session, fleet.bus.id)
    assert unchanged.id == journey.id
    assert unchanged.school_id is None
    assert unchanged.arrive_school_at is None
