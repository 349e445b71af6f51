"""
Tests for the log writer and the unreported batch reader.
"""
from monika_history.schemas import LogKind, ProbeResult, NotificationDeliveryResult, DeliveryStatus
from monika_history.services.history import LogWriter, UnreportedBatchReader
from monika_history.services.record_store import RecordStore
from monika_history.services.reporter import build_report_payload, encode_payload, decode_payload


async def test_record_request_appends_one_row(store):
    writer = LogWriter(store)

    await writer.record_request(
        ProbeResult(probe_id="1", probe_name="home", probe_url="https://example.com", status_code=200, response_time_ms=87)
    )

    [entry] = await store.list_all_request_logs()
    assert (entry.probe_id, entry.status_code, entry.response_time_ms) == ("1", 200, 87)
    assert entry.error_message == ""


async def test_record_notification_appends_one_row(store):
    writer = LogWriter(store)

    await writer.record_notification(
        NotificationDeliveryResult(
            probe_id="1",
            notification_channel_id="hook-1",
            channel_type="webhook",
            status=DeliveryStatus.SUCCESS,
        )
    )

    [entry] = await store.list_all_notification_logs()
    assert entry.channel_type == "webhook"
    assert entry.status == DeliveryStatus.SUCCESS


async def test_writer_swallows_store_failures(db_path, logged_warnings):
    store = RecordStore(db_path)
    writer = LogWriter(store)  # never opened

    await writer.record_request(ProbeResult(probe_id="1", status_code=500))
    await writer.record_notification(
        NotificationDeliveryResult(notification_channel_id="smtp", channel_type="smtp", status=DeliveryStatus.FAILED)
    )

    warnings = logged_warnings()
    assert any("Cannot record request history for probe 1" in message for message in warnings)
    assert any("Cannot record notification history for channel smtp" in message for message in warnings)


async def test_reader_returns_only_unreported_rows(store):
    writer = LogWriter(store)
    for probe_id in ("1", "2"):
        await writer.record_request(ProbeResult(probe_id=probe_id, status_code=200, response_time_ms=10))
    await writer.record_notification(
        NotificationDeliveryResult(notification_channel_id="smtp", channel_type="smtp", status=DeliveryStatus.FAILED)
    )
    await store.mark_reported(LogKind.REQUEST, [1])

    batch = await UnreportedBatchReader(store).read()

    assert [entry.probe_id for entry in batch.requests] == ["2"]
    assert batch.notification_ids == [1]


async def test_report_payload_round_trip_drops_ids(store):
    writer = LogWriter(store)
    await writer.record_request(
        ProbeResult(probe_id="1", probe_name="home", probe_url="https://example.com", status_code=200, response_time_ms=120)
    )
    await writer.record_request(ProbeResult(probe_id="2", status_code=0, error_message="ECONNREFUSED"))
    await writer.record_notification(
        NotificationDeliveryResult(
            probe_id="2",
            alert_id="status-not-2xx",
            notification_channel_id="mail-1",
            channel_type="mailgun",
            status=DeliveryStatus.FAILED,
            message="401 unauthorized",
        )
    )
    batch = await UnreportedBatchReader(store).read()

    payload = build_report_payload("monika-1", "v1", batch)
    decoded = decode_payload(encode_payload(payload))

    assert decoded == payload
    assert decoded["monika_instance_id"] == "monika-1"
    assert decoded["config_version"] == "v1"
    assert decoded["data"] == batch.to_report_data()
    for row in decoded["data"]["requests"] + decoded["data"]["notifications"]:
        assert "id" not in row
        assert "reported" not in row

    first, second = decoded["data"]["requests"]
    assert first["probe_name"] == "home"
    assert first["response_time"] == 120
    assert first["created_at"].endswith("Z")
    assert second["response_time"] is None
    assert second["error_resp"] == "ECONNREFUSED"

    [notification] = decoded["data"]["notifications"]
    assert notification == {
        "created_at": notification["created_at"],
        "probe_id": "2",
        "alert_id": "status-not-2xx",
        "notification_id": "mail-1",
        "channel": "mailgun",
        "status": "failed",
        "message": "401 unauthorized",
    }
