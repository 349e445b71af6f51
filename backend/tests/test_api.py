"""
Tests for the admin API and the reporting loop.
"""
import asyncio

import pytest
from fastapi.testclient import TestClient

from monika_history.config import MonikaConfig, Settings
from monika_history.exceptions import StoreClosedError
from monika_history.main import create_app, reporting_loop
from monika_history.schemas import LogKind, ProbeResult, NotificationDeliveryResult, DeliveryStatus
from monika_history.services.record_store import open_store
from monika_history.services.reporter import ReportingJob, ReportOutcome


def seed(db_path):
    async def _seed():
        async with open_store(db_path) as store:
            await store.insert_request_log(ProbeResult(probe_id="1", status_code=200, response_time_ms=40))
            await store.insert_request_log(ProbeResult(probe_id="2", status_code=0, error_message="timeout"))
            await store.insert_notification_log(
                NotificationDeliveryResult(notification_channel_id="smtp", channel_type="smtp", status=DeliveryStatus.SUCCESS)
            )
            await store.mark_reported(LogKind.REQUEST, [1])

    asyncio.run(_seed())


@pytest.fixture
def client(db_path):
    settings = Settings(database_path=str(db_path))
    app = create_app(MonikaConfig(), settings, configure_logging=False)
    with TestClient(app) as client:
        yield client


def test_list_request_logs(db_path):
    seed(db_path)
    settings = Settings(database_path=str(db_path))

    with TestClient(create_app(MonikaConfig(), settings, configure_logging=False)) as client:
        response = client.get("/api/logs")

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert [(log["id"], log["reported"]) for log in body["logs"]] == [(1, True), (2, False)]


def test_list_unreported_and_notifications(db_path):
    seed(db_path)
    settings = Settings(database_path=str(db_path))

    with TestClient(create_app(MonikaConfig(), settings, configure_logging=False)) as client:
        unreported = client.get("/api/logs/unreported").json()
        notifications = client.get("/api/logs/notifications").json()

    assert unreported["total"] == 2
    assert [log["probe_id"] for log in unreported["requests"]] == ["2"]
    assert notifications["logs"][0]["status"] == "success"


def test_flush_via_api(client):
    response = client.delete("/api/logs")

    assert response.status_code == 200
    assert response.json() == {"status": "flushed"}
    assert client.get("/api/logs").json()["total"] == 0


def test_report_without_symon_is_conflict(client):
    response = client.post("/api/report")

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "SYMON_NOT_CONFIGURED"


def test_health_and_correlation_header(client):
    response = client.get("/api/status/health", headers={"X-Correlation-ID": "abc123"})

    assert response.json()["status"] == "healthy"
    assert response.json()["reporter"] is None
    assert response.headers["X-Correlation-ID"] == "abc123"


async def test_reporting_loop_keeps_running_after_errors():
    calls = []

    async def run():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return ReportOutcome.NO_OP

    task = asyncio.create_task(reporting_loop(ReportingJob(interval=0.01, run=run)))
    for _ in range(100):
        if len(calls) >= 3:
            break
        await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert len(calls) >= 3


async def test_reporting_loop_stops_when_store_is_closed():
    calls = []

    async def run():
        calls.append(1)
        raise StoreClosedError("History database is not open")

    await asyncio.wait_for(reporting_loop(ReportingJob(interval=0.01, run=run)), timeout=5)

    assert calls == [1]
