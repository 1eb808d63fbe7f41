"""
Driver run operations: journeys, stops, school visits, attendance, the
parent progress view and notifications.
"""

import pytest

from conftest import auth_headers, check_in_payload


async def _check_in(client, fleet, driver=None):
    driver = driver or fleet.driver
    response = await client.post(
        "/v1/driver/check-in",
        json=check_in_payload(fleet, driver=driver),
        headers=auth_headers(driver),
    )
    assert response.status_code == 200
    return response.json()


async def _complete(client, fleet, index, user=None):
    return await client.post(
        "/v1/driver/stops/complete",
        json={"route_stop_id": fleet.stops[index].id, "route_id": fleet.route.id, "stop_sequence": index + 1},
        headers=auth_headers(user or fleet.driver),
    )


@pytest.mark.asyncio
async def test_operations_require_assigned_bus(client, fleet):
    response = await _complete(client, fleet, 0)
    assert response.status_code == 400
    assert response.json()["message"] == "No bus assigned. Please check in first."

    response = await client.post("/v1/driver/journey/start", json={}, headers=auth_headers(fleet.driver))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_journey_endpoints(client, fleet):
    checked_in = await _check_in(client, fleet)

    response = await client.post(
        "/v1/driver/journey/start", json={"homebase_address": "Depot"}, headers=auth_headers(fleet.driver)
    )
    assert response.status_code == 200
    assert response.json()["id"] == checked_in["journey"]["id"]

    response = await client.post(
        "/v1/driver/journey/event",
        json={"event_type": "arrive_school", "school_id": fleet.school.id},
        headers=auth_headers(fleet.driver),
    )
    assert response.status_code == 200
    assert response.json()["arrive_school_at"] is not None
    assert response.json()["school_id"] == fleet.school.id

    response = await client.post(
        "/v1/driver/journey/event", json={"event_type": "teleport"}, headers=auth_headers(fleet.driver)
    )
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"

    for school_id in (987654, fleet.other_school.id):
        response = await client.post(
            "/v1/driver/journey/event",
            json={"event_type": "arrive_school", "school_id": school_id},
            headers=auth_headers(fleet.driver),
        )
        assert response.status_code == 404
        assert response.json()["error_code"] == "ERR_NOT_FOUND_001"

    response = await client.get(f"/v1/journeys/today/{fleet.bus.id}", headers=auth_headers(fleet.admin))
    assert response.status_code == 200
    assert response.json()["arrive_school_at"] is not None

    response = await client.get(f"/v1/journeys/today/{fleet.bus2.id}", headers=auth_headers(fleet.admin))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_stop_completion_and_reset(client, fleet):
    await _check_in(client, fleet)

    first = await _complete(client, fleet, 0)
    again = await _complete(client, fleet, 0)
    assert first.json()["created"] is True
    assert again.json()["created"] is False
    assert again.json()["completion"]["id"] == first.json()["completion"]["id"]
    assert again.json()["notifications_sent"] == 0

    response = await client.get(
        f"/v1/routes/{fleet.route.id}/completed-stops", headers=auth_headers(fleet.driver)
    )
    assert [c["route_stop_id"] for c in response.json()] == [fleet.stops[0].id]

    response = await client.post(
        "/v1/driver/stops/reset", json={"route_id": fleet.route.id}, headers=auth_headers(fleet.admin)
    )
    assert response.status_code == 200
    assert response.json() == {"route_id": fleet.route.id, "removed": 1}

    response = await client.get(
        f"/v1/routes/{fleet.route.id}/completed-stops", headers=auth_headers(fleet.driver)
    )
    assert response.json() == []


@pytest.mark.asyncio
async def test_parent_stop_progress(client, fleet):
    await _check_in(client, fleet)
    await _complete(client, fleet, 0)

    response = await client.get(f"/v1/parent/stop-progress/{fleet.leo.id}", headers=auth_headers(fleet.parent))
    assert response.status_code == 200
    body = response.json()
    assert body["stops_away"] == 1
    assert body["has_arrived"] is False
    assert body["stop_sequence"] == 3

    response = await client.get(f"/v1/parent/stop-progress/{fleet.leo.id}", headers=auth_headers(fleet.parent2))
    assert response.status_code == 403

    response = await client.get(f"/v1/parent/stop-progress/{fleet.leo.id}", headers=auth_headers(fleet.driver))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_school_visits(client, fleet):
    response = await client.post(
        "/v1/driver/school-visits/arrival", json={"school_id": fleet.school.id}, headers=auth_headers(fleet.driver)
    )
    assert response.status_code == 400

    await _check_in(client, fleet)

    response = await client.post(
        "/v1/driver/school-visits/arrival", json={"school_id": fleet.school.id}, headers=auth_headers(fleet.driver)
    )
    assert response.status_code == 200
    visit_id = response.json()["id"]

    # Re-stamping the same school keeps one visit
    response = await client.post(
        "/v1/driver/school-visits/arrival", json={"school_id": fleet.school.id}, headers=auth_headers(fleet.driver)
    )
    assert response.json()["id"] == visit_id

    response = await client.post(
        f"/v1/driver/school-visits/{visit_id}/departure", headers=auth_headers(fleet.driver2)
    )
    assert response.status_code == 404

    response = await client.post(
        f"/v1/driver/school-visits/{visit_id}/departure", headers=auth_headers(fleet.driver)
    )
    assert response.status_code == 200
    assert response.json()["departed_at"] is not None

    response = await client.get("/v1/driver/school-visits", headers=auth_headers(fleet.driver))
    assert [v["id"] for v in response.json()] == [visit_id]


@pytest.mark.asyncio
async def test_attendance_feeds_shift_report(client, fleet):
    await _check_in(client, fleet)

    for student, status in ((fleet.mia, "present"), (fleet.leo, "absent")):
        response = await client.post(
            "/v1/driver/attendance",
            json={"student_id": student.id, "status": status},
            headers=auth_headers(fleet.driver),
        )
        assert response.status_code == 200

    # Later mark replaces the earlier one
    response = await client.post(
        "/v1/driver/attendance",
        json={"student_id": fleet.leo.id, "status": "present", "notes": "late pickup"},
        headers=auth_headers(fleet.driver),
    )
    assert response.json()["status"] == "present"

    response = await client.patch(
        "/v1/driver/duty-status", json={"is_on_duty": False}, headers=auth_headers(fleet.driver)
    )
    report = response.json()["shift_report"]
    assert report["students_picked_up"] == 2
    assert report["students_dropped_off"] == 2
    assert report["schools_visited"] == 0


@pytest.mark.asyncio
async def test_shift_reports_scoped_to_caller(client, fleet):
    for driver in (fleet.driver, fleet.driver2):
        await client.post(
            "/v1/driver/check-in",
            json=check_in_payload(fleet, driver=driver, bus=fleet.bus if driver is fleet.driver else fleet.bus2),
            headers=auth_headers(driver),
        )
        await client.patch("/v1/driver/duty-status", json={"is_on_duty": False}, headers=auth_headers(driver))

    response = await client.get(
        "/v1/shift-reports", params={"driver_id": fleet.driver2.id}, headers=auth_headers(fleet.driver)
    )
    assert [r["driver_id"] for r in response.json()] == [fleet.driver.id]

    response = await client.get("/v1/shift-reports", headers=auth_headers(fleet.admin))
    assert {r["driver_id"] for r in response.json()} == {fleet.driver.id, fleet.driver2.id}


@pytest.mark.asyncio
async def test_parent_notifications_inbox(client, fleet):
    await _check_in(client, fleet)
    await _complete(client, fleet, 0)
    await client.post(
        "/v1/driver/journey/event", json={"event_type": "arrive_school"}, headers=auth_headers(fleet.driver)
    )

    response = await client.get("/v1/notifications", headers=auth_headers(fleet.parent))
    assert response.status_code == 200
    inbox = response.json()
    titles = sorted(n["title"] for n in inbox)
    assert titles == ["Bus Arrived at Stop", "Bus arrived at school"]

    direct = next(n for n in inbox if n["recipient_id"] == fleet.parent.id)
    response = await client.patch(f"/v1/notifications/{direct['id']}/read", headers=auth_headers(fleet.parent))
    assert response.status_code == 200

    response = await client.get(
        "/v1/notifications", params={"unread_only": True}, headers=auth_headers(fleet.parent)
    )
    assert [n["title"] for n in response.json()] == ["Bus arrived at school"]

    # Someone else's notification
    response = await client.patch(f"/v1/notifications/{direct['id']}/read", headers=auth_headers(fleet.parent2))
    assert response.status_code == 404
