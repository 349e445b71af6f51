"""
History logging for probe and notification layers, and the unreported batch reader.
"""
from loguru import logger

from monika_history.exceptions import StoreError
from monika_history.schemas import ProbeResult, NotificationDeliveryResult, UnreportedBatch
from monika_history.services.record_store import RecordStore


class LogWriter:
    """
    Best-effort history writer.

    Each call performs exactly one insert. Store failures are logged and
    never raised: losing a history row must not stop a probe or a
    notification from running.
    """

    def __init__(self, store: RecordStore):
        self.store = store

    async def record_request(self, result: ProbeResult):
        """Append a probe request result to the history."""
        try:
            log_id = await self.store.insert_request_log(result)
        except StoreError as e:
            logger.warning(f"Cannot record request history for probe {result.probe_id}: {e}")
            return
        logger.debug(f"Recorded request log {log_id} for probe {result.probe_id} ({result.status_code})")

    async def record_notification(self, result: NotificationDeliveryResult):
        """Append a notification delivery attempt to the history."""
        try:
            log_id = await self.store.insert_notification_log(result)
        except StoreError as e:
            logger.warning(
                f"Cannot record notification history for channel {result.notification_channel_id}: {e}"
            )
            return
        logger.debug(
            f"Recorded notification log {log_id} for channel {result.notification_channel_id} ({result.status.value})"
        )


class UnreportedBatchReader:
    """Pulls every unreported row from both tables as one batch."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def read(self) -> UnreportedBatch:
        batch = await self.store.list_unreported()
        if not batch.is_empty:
            logger.debug(
                f"Unreported batch: {len(batch.requests)} request(s), "
                f"{len(batch.notifications)} notification(s)"
            )
        return batch
