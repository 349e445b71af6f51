"""
Symon reporter: handshake once, then upload unreported history in batches.
"""
import asyncio
import gzip
import json
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp
from loguru import logger

from monika_history.config import SymonConfig
from monika_history.constants import HTTP_CLIENT_TIMEOUT_SECONDS
from monika_history.exceptions import HandshakeError, StoreError, StoreClosedError
from monika_history.middleware.correlation import bind_correlation_id, new_correlation_id, correlation_id_var
from monika_history.schemas import LogKind, UnreportedBatch
from monika_history.services.history import UnreportedBatchReader
from monika_history.services.record_store import RecordStore


class ReporterState(str, Enum):
    """Lifecycle of a SymonReporter."""
    UNINITIALIZED = "uninitialized"
    HANDSHAKEN = "handshaken"
    REPORTING = "reporting"
    TERMINATED = "terminated"


class HandshakeOutcome(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ReportOutcome(str, Enum):
    """Result of one report cycle."""
    NO_OP = "no_op"      # nothing to send, no request made
    SUCCESS = "success"  # collector accepted the batch
    FAILED = "failed"    # nothing marked, rows go out again next cycle


@dataclass
class SymonResponse:
    """Body returned by Symon for handshake and report calls."""
    result: str = ""
    message: str = ""


@dataclass
class ReportingJob:
    """Scheduling hook handed to the process scheduler."""
    interval: float
    run: Callable[[], Awaitable[ReportOutcome]]
    name: str = "symon_report"


def build_report_payload(instance_id: str, config_version: str, batch: UnreportedBatch) -> Dict[str, Any]:
    """Report body. Local row ids are not part of it."""
    return {
        "monika_instance_id": instance_id,
        "config_version": config_version,
        "data": batch.to_report_data(),
    }


def encode_payload(payload: Dict[str, Any]) -> bytes:
    """JSON-encode and gzip a report body."""
    return gzip.compress(json.dumps(payload).encode("utf-8"))


def decode_payload(body: bytes) -> Dict[str, Any]:
    """Inverse of encode_payload."""
    return json.loads(gzip.decompress(body).decode("utf-8"))


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__


class SymonReporter:
    """
    Uploads history to Symon.

    States: UNINITIALIZED -> HANDSHAKEN -> REPORTING -> TERMINATED.
    Every network call is a single attempt; a failed cycle is simply
    retried by the next scheduled call to report_once.
    """

    def __init__(
        self,
        store: RecordStore,
        symon: SymonConfig,
        config_version: str,
        timeout: float = HTTP_CLIENT_TIMEOUT_SECONDS,
    ):
        self.store = store
        self.symon = symon
        self.config_version = config_version
        self.url = symon.url.rstrip("/")
        self.timeout = timeout
        self.reader = UnreportedBatchReader(store)
        self.state = ReporterState.UNINITIALIZED
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def close(self):
        """Close the HTTP session. The reporter cannot be used afterwards."""
        if self._session and not self._session.closed:
            await self._session.close()
        self.state = ReporterState.TERMINATED

    @property
    def _headers(self) -> Dict[str, str]:
        return {"x-api-key": self.symon.key}

    async def _read_reply(self, response: aiohttp.ClientResponse) -> SymonResponse:
        """Parse a {result, message} body, falling back to the raw text."""
        # Status is already read by the caller; a malformed body never changes the outcome
        text = await response.text(errors="replace")
        try:
            data = json.loads(text)
        except ValueError:
            data = None

        if isinstance(data, dict):
            return SymonResponse(result=str(data.get("result", "")), message=str(data.get("message", "")))
        return SymonResponse(message=text[:200])

    # =========================================================================
    # Handshake
    # =========================================================================

    async def handshake(self) -> HandshakeOutcome:
        """
        Announce this instance to Symon.

        Any 2xx response is ACCEPTED and enables reporting. Any other HTTP
        status is REJECTED. The history store is not touched.

        Raises:
            HandshakeError: If Symon cannot be reached or the reporter is closed
        """
        if self.state == ReporterState.TERMINATED:
            raise HandshakeError("Symon reporter is closed")

        body = {"instanceId": self.symon.id, "hostname": socket.gethostname()}
        try:
            async with self.session.post(f"{self.url}/handshake", json=body, headers=self._headers) as response:
                status = response.status
                reply = await self._read_reply(response)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise HandshakeError(f"Cannot reach Symon at {self.url}: {_describe(e)}") from e

        if 200 <= status < 300:
            if self.state == ReporterState.UNINITIALIZED:
                self.state = ReporterState.HANDSHAKEN
            logger.info(f"Handshake with Symon accepted for instance {self.symon.id}")
            return HandshakeOutcome.ACCEPTED

        logger.error(f"Symon rejected handshake (HTTP {status}): {reply.message or reply.result}")
        return HandshakeOutcome.REJECTED

    def _require_handshake(self):
        if self.state == ReporterState.TERMINATED:
            raise HandshakeError("Symon reporter is closed")
        if self.state == ReporterState.UNINITIALIZED:
            raise HandshakeError("Symon handshake has not been accepted yet")

    # =========================================================================
    # Reporting
    # =========================================================================

    def schedule_reporting(self, interval: Optional[float] = None) -> ReportingJob:
        """
        Describe the periodic report job for the process scheduler.

        Args:
            interval: Seconds between cycles, defaults to the Symon config interval

        Raises:
            HandshakeError: If the handshake has not been accepted
            ValueError: If interval is not positive
        """
        self._require_handshake()
        interval = self.symon.interval if interval is None else interval
        if interval <= 0:
            raise ValueError(f"Report interval must be positive, got {interval}")
        return ReportingJob(interval=interval, run=self.report_once)

    async def report_once(self) -> ReportOutcome:
        """
        Run one report cycle: read, upload, mark.

        Raises:
            HandshakeError: If the handshake has not been accepted
            StoreClosedError: If the history store is closed
        """
        self._require_handshake()
        token = bind_correlation_id(new_correlation_id("report"))
        try:
            return await self._report_cycle()
        finally:
            correlation_id_var.reset(token)

    async def _report_cycle(self) -> ReportOutcome:
        try:
            batch = await self.reader.read()
        except StoreClosedError:
            raise
        except StoreError as e:
            logger.warning(f"Can't report history to Symon: {e}")
            return ReportOutcome.FAILED

        if batch.is_empty:
            logger.debug("No unreported history, skipping report")
            return ReportOutcome.NO_OP

        self.state = ReporterState.REPORTING
        body = encode_payload(build_report_payload(self.symon.id, self.config_version, batch))
        headers = {
            **self._headers,
            "Content-Encoding": "gzip",
            "Content-Type": "application/json",
        }

        try:
            async with self.session.post(f"{self.url}/report", data=body, headers=headers) as response:
                status = response.status
                reply = await self._read_reply(response)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Can't report history to Symon: {_describe(e)}")
            return ReportOutcome.FAILED

        if not 200 <= status < 300:
            logger.warning(f"Can't report history to Symon: HTTP {status} {reply.message or reply.result}".rstrip())
            return ReportOutcome.FAILED

        logger.info(
            f"Reported {len(batch.requests)} request(s) and "
            f"{len(batch.notifications)} notification(s) to Symon"
        )

        # Upload already succeeded; each table is marked on its own
        await self._mark_reported(LogKind.REQUEST, batch.request_ids, batch.generation)
        await self._mark_reported(LogKind.NOTIFICATION, batch.notification_ids, batch.generation)
        return ReportOutcome.SUCCESS

    async def _mark_reported(self, kind: LogKind, ids: List[int], generation: int):
        if not ids:
            return
        try:
            await self.store.mark_reported(kind, ids, generation=generation)
        except StoreError as e:
            logger.warning(f"Reported {kind.value} logs were not marked: {e}")
