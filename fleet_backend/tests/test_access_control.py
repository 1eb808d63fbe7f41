"""
Authentication and role tests, the admin supervision endpoints, and logging setup.
"""

import logging

import pytest
from sqlalchemy import select

from fleet_backend.app.core.jwt import create_access_token
from fleet_backend.app.core.observability import configure_logging
from fleet_backend.app.models.audit_log import AuditLog
from fleet_backend.app.models.bus import Bus
from fleet_backend.app.models.user import User
from fleet_backend.app.services import (
    assignment_manager, duty_lifecycle, journey_tracker, resource_locks, shift_reports, stop_progress
)
from fleet_backend.app.services.audit import AuditAction

from conftest import auth_headers, check_in_payload, fresh


@pytest.mark.asyncio
async def test_missing_token_rejected(client, fleet):
    response = await client.get("/v1/driver/my-bus")
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_invalid_token_rejected(client, fleet):
    response = await client.get("/v1/driver/my-bus", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401
    assert response.json()["error_code"] == "ERR_UNAUTHORIZED"


@pytest.mark.asyncio
async def test_unknown_user_rejected(client, fleet):
    token = create_access_token(data={"sub": "ghost@acme.test", "user_id": 9999, "role": "driver"})

    response = await client.get("/v1/driver/my-bus", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_inactive_user_loses_access_immediately(client, db_session, fleet):
    headers = auth_headers(fleet.driver)
    driver = await fresh(db_session, User, fleet.driver.id)
    driver.is_active = False
    await db_session.commit()

    response = await client.get("/v1/driver/my-bus", headers=headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_role_taken_from_store_not_token(client, fleet):
    """A parent holding a forged driver token is still a parent."""
    token = create_access_token(data={
        "sub": fleet.parent.email,
        "user_id": fleet.parent.id,
        "role": "driver",
        "company_id": fleet.company.id,
    })

    response = await client.post(
        "/v1/driver/check-in",
        json=check_in_payload(fleet),
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_PERM_001"


@pytest.mark.asyncio
async def test_parent_cannot_check_in(client, fleet):
    response = await client.post(
        "/v1/driver/check-in", json=check_in_payload(fleet), headers=auth_headers(fleet.parent)
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_driver_cannot_use_admin_endpoints(client, fleet):
    response = await client.patch(
        f"/v1/admin/drivers/{fleet.driver2.id}/duty-status",
        json={"is_on_duty": False},
        headers=auth_headers(fleet.driver),
    )
    assert response.status_code == 403

    response = await client.get("/v1/admin/on-duty-drivers", headers=auth_headers(fleet.driver))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_forces_driver_off_duty(client, db_session, fleet):
    await client.post("/v1/driver/check-in", json=check_in_payload(fleet), headers=auth_headers(fleet.driver))

    response = await client.get("/v1/admin/on-duty-drivers", headers=auth_headers(fleet.admin))
    assert response.status_code == 200
    rows = response.json()
    assert len(rows) == 1
    assert rows[0]["driver"]["id"] == fleet.driver.id
    assert rows[0]["bus"]["bus_number"] == "42"
    assert rows[0]["route"]["name"] == "Route R"

    response = await client.patch(
        f"/v1/admin/drivers/{fleet.driver.id}/duty-status",
        json={"is_on_duty": False},
        headers=auth_headers(fleet.admin),
    )
    assert response.status_code == 200
    assert response.json()["secondary"]["shift_report"] == "ok"

    assert (await fresh(db_session, User, fleet.driver.id)).is_on_duty is False
    assert (await fresh(db_session, Bus, fleet.bus.id)).driver_id is None

    result = await db_session.execute(
        select(AuditLog).where(AuditLog.action == AuditAction.DRIVER_CHECKED_OUT)
    )
    entry = result.scalar_one()
    assert entry.actor_id == fleet.admin.id
    assert entry.actor_role == "admin"
    assert entry.target_user_id == fleet.driver.id


@pytest.mark.asyncio
async def test_admin_cannot_reach_other_company_driver(client, fleet):
    response = await client.patch(
        f"/v1/admin/drivers/{fleet.outsider.id}/duty-status",
        json={"is_on_duty": False},
        headers=auth_headers(fleet.admin),
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_shift_reports_and_audit_trail(client, fleet):
    await client.post("/v1/driver/check-in", json=check_in_payload(fleet), headers=auth_headers(fleet.driver))
    await client.patch("/v1/driver/duty-status", json={"is_on_duty": False}, headers=auth_headers(fleet.driver))

    response = await client.get(f"/v1/admin/shift-reports/{fleet.driver.id}", headers=auth_headers(fleet.admin))
    assert response.status_code == 200
    assert len(response.json()) == 1
    assert response.json()[0]["driver_name"] == "Dan Driver"

    response = await client.get(f"/v1/admin/shift-reports/{fleet.driver2.id}", headers=auth_headers(fleet.admin))
    assert response.json() == []

    response = await client.get(
        "/v1/admin/audit-logs",
        params={"target_user_id": fleet.driver.id},
        headers=auth_headers(fleet.admin),
    )
    assert response.status_code == 200
    actions = {log["action"] for log in response.json()["logs"]}
    assert {
        AuditAction.DRIVER_CHECKED_IN,
        AuditAction.BUS_BOUND,
        AuditAction.ROUTE_BOUND,
        AuditAction.SHIFT_REPORT_CREATED,
        AuditAction.BUS_RELEASED,
        AuditAction.DRIVER_CHECKED_OUT,
    } <= actions


@pytest.mark.asyncio
async def test_admin_journey_reports(client, fleet):
    await client.post("/v1/driver/check-in", json=check_in_payload(fleet), headers=auth_headers(fleet.driver))

    response = await client.get("/v1/admin/reports/journeys", headers=auth_headers(fleet.admin))
    assert response.status_code == 200
    rows = response.json()
    assert len(rows) == 1
    assert rows[0]["bus"]["bus_number"] == "42"
    assert rows[0]["driver"]["name"] == "Dan Driver"

    response = await client.get(
        f"/v1/admin/reports/journeys/bus/{fleet.bus.id}", headers=auth_headers(fleet.admin)
    )
    assert len(response.json()) == 1

    response = await client.get(
        f"/v1/admin/reports/journeys/bus/{fleet.other_bus.id}", headers=auth_headers(fleet.admin)
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_health_and_root(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Correlation-ID"]

    response = await client.get("/")
    assert response.status_code == 200


def test_service_loggers_use_configured_namespace():
    configure_logging()

    for module in (assignment_manager, duty_lifecycle, journey_tracker, resource_locks, shift_reports, stop_progress):
        assert module.logger.name.startswith("fleet.")
        assert module.logger.isEnabledFor(logging.INFO)


@pytest.mark.asyncio
async def test_check_in_steps_are_logged(client, fleet, caplog):
    caplog.set_level(logging.INFO, logger="fleet")

    await client.post("/v1/driver/check-in", json=check_in_payload(fleet), headers=auth_headers(fleet.driver))

    steps = [r.getMessage() for r in caplog.records if r.name == "fleet.duty_lifecycle"]
    assert f"Duty step bind_bus completed for driver {fleet.driver.id}" in steps
    assert f"Duty step start_journey completed for driver {fleet.driver.id}" in steps
