"""
Shared fixtures: history stores, a fake Symon collector and captured log records.
"""
import gzip
import json

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from loguru import logger

from monika_history.config import SymonConfig
from monika_history.services.record_store import RecordStore
from monika_history.services.reporter import SymonReporter


class FakeSymon:
    """In-process Symon collector recording every call it receives."""

    def __init__(self):
        self.url = ""
        self.handshake_status = 200
        self.report_status = 200
        self.handshakes = []
        self.reports = []
        # Raw reply bodies replacing the JSON ones
        self.handshake_body = None
        self.report_body = None
        # Awaited inside /report before replying
        self.on_report = None

    @staticmethod
    def _raw_reply(body: bytes, status: int) -> web.Response:
        return web.Response(body=body, status=status, content_type="application/json", charset="utf-8")

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/handshake", self._handshake)
        app.router.add_post("/report", self._report)
        return app

    async def _handshake(self, request: web.Request) -> web.Response:
        self.handshakes.append({"headers": request.headers.copy(), "body": await request.json()})
        ok = 200 <= self.handshake_status < 300
        if self.handshake_body is not None:
            return self._raw_reply(self.handshake_body, self.handshake_status)
        return web.json_response(
            {"result": "ok" if ok else "failed", "message": "welcome" if ok else "invalid api key"},
            status=self.handshake_status,
        )

    async def _report(self, request: web.Request) -> web.Response:
        raw = await request.read()
        # The server may already have inflated the body
        if raw[:2] == b"\x1f\x8b":
            raw = gzip.decompress(raw)
        self.reports.append({"headers": request.headers.copy(), "payload": json.loads(raw)})
        if self.on_report is not None:
            await self.on_report()
        if self.report_body is not None:
            return self._raw_reply(self.report_body, self.report_status)
        ok = 200 <= self.report_status < 300
        return web.json_response(
            {"result": "ok" if ok else "failed", "message": "stored" if ok else "collector exploded"},
            status=self.report_status,
        )


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "monika-logs.db"


@pytest.fixture
async def store(db_path):
    store = RecordStore(db_path)
    await store.open()
    yield store
    await store.close()


@pytest.fixture
async def symon():
    fake = FakeSymon()
    server = TestServer(fake.make_app())
    await server.start_server()
    fake.url = str(server.make_url("")).rstrip("/")
    yield fake
    await server.close()


@pytest.fixture
def symon_config(symon):
    return SymonConfig(id="monika-1", url=symon.url, key="secret-key", interval=10)


@pytest.fixture
async def reporter(store, symon_config):
    reporter = SymonReporter(store, symon_config, config_version="v1", timeout=5)
    yield reporter
    await reporter.close()


@pytest.fixture
def log_records():
    """Loguru records emitted during the test."""
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)


@pytest.fixture
def logged_warnings(log_records):
    """Callable returning the warning messages logged so far."""
    def collect():
        return [r["message"] for r in log_records if r["level"].name == "WARNING"]
    return collect
