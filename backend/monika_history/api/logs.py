"""
History logs API routes.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Request
from loguru import logger

from monika_history.exceptions import StoreError, HandshakeError
from monika_history.services.record_store import RecordStore
from monika_history.services.reporter import SymonReporter
from monika_history.utils.errors import ErrorCode, raise_error

router = APIRouter(prefix="/api", tags=["logs"])


def get_store(request: Request) -> RecordStore:
    """Dependency returning the store opened by the app lifespan."""
    return request.app.state.store


def get_reporter(request: Request) -> Optional[SymonReporter]:
    """Dependency returning the Symon reporter, None when Symon is not configured."""
    return getattr(request.app.state, "reporter", None)


@router.get("/logs")
async def get_request_logs(store: RecordStore = Depends(get_store)):
    """All request history rows, reported or not."""
    try:
        logs = await store.list_all_request_logs()
    except StoreError as e:
        raise_error(ErrorCode.DATABASE_ERROR, f"Failed to read request logs: {e}", status_code=503)

    return {"logs": [log.model_dump(mode="json") for log in logs], "total": len(logs)}


@router.get("/logs/notifications")
async def get_notification_logs(store: RecordStore = Depends(get_store)):
    """All notification history rows, reported or not."""
    try:
        logs = await store.list_all_notification_logs()
    except StoreError as e:
        raise_error(ErrorCode.DATABASE_ERROR, f"Failed to read notification logs: {e}", status_code=503)

    return {"logs": [log.model_dump(mode="json") for log in logs], "total": len(logs)}


@router.get("/logs/unreported")
async def get_unreported_logs(store: RecordStore = Depends(get_store)):
    """Rows still waiting to be sent to Symon."""
    try:
        batch = await store.list_unreported()
    except StoreError as e:
        raise_error(ErrorCode.DATABASE_ERROR, f"Failed to read unreported logs: {e}", status_code=503)

    return {
        "requests": [log.model_dump(mode="json") for log in batch.requests],
        "notifications": [log.model_dump(mode="json") for log in batch.notifications],
        "total": len(batch.requests) + len(batch.notifications),
    }


@router.delete("/logs")
async def flush_logs(store: RecordStore = Depends(get_store)):
    """Destroy every history row in both tables."""
    try:
        await store.flush()
    except StoreError as e:
        raise_error(ErrorCode.DATABASE_ERROR, f"Failed to flush logs: {e}")

    logger.info("History flushed via admin API")
    return {"status": "flushed"}


@router.post("/report")
async def report_now(reporter: Optional[SymonReporter] = Depends(get_reporter)):
    """Run one Symon report cycle immediately."""
    if reporter is None:
        raise_error(ErrorCode.SYMON_NOT_CONFIGURED, "Symon is not configured", status_code=409, log=False)

    try:
        outcome = await reporter.report_once()
    except HandshakeError as e:
        raise_error(ErrorCode.HANDSHAKE_REQUIRED, str(e), status_code=409)
    except StoreError as e:
        raise_error(ErrorCode.DATABASE_ERROR, f"Failed to report logs: {e}", status_code=503)

    return {"outcome": outcome.value}
