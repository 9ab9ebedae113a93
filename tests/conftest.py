"""
Shared fixtures: in-memory fakes for the scraper API and the push connection.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

import pytest

from jobsync.client.scraper_api import ScraperApi, StartJobResponse
from jobsync.jobs.errors import RealtimeUnavailable
from jobsync.jobs.initiators import ScraperActions
from jobsync.jobs.models import ScraperJob
from jobsync.jobs.store import JobStore
from jobsync.realtime.connection import RealtimeConnection


class FakeScraperApi(ScraperApi):
    """Scripted scraper API. Set ``start_error``/``status_error``/``recent_error`` to fail calls."""

    def __init__(self) -> None:
        self.next_job_id = "J1"
        self.jobs: Dict[str, ScraperJob] = {}
        self.recent: List[ScraperJob] = []
        self.start_error: Optional[Exception] = None
        self.status_error: Optional[Exception] = None
        self.recent_error: Optional[Exception] = None
        self.start_calls: List[tuple] = []
        self.status_calls: List[str] = []
        self.status_gate: Optional[asyncio.Event] = None

    async def start(self, url, currency_pair, target_sheet_id=None):
        self.start_calls.append((url, currency_pair, target_sheet_id))
        if self.start_error is not None:
            raise self.start_error
        return StartJobResponse(job_id=self.next_job_id)

    async def get_status(self, job_id):
        self.status_calls.append(job_id)
        if self.status_gate is not None:
            await self.status_gate.wait()
        if self.status_error is not None:
            raise self.status_error
        return self.jobs.get(job_id)

    async def get_recent(self):
        if self.recent_error is not None:
            raise self.recent_error
        return list(self.recent)


class FakeConnection(RealtimeConnection):
    """Records topic joins/leaves and lets tests emit events synchronously."""

    def __init__(self, fail_connect: bool = False) -> None:
        self.connected = False
        self.fail_connect = fail_connect
        self.connect_calls = 0
        self.joined: List[str] = []
        self.left: List[str] = []
        self.handlers: Dict[str, List[Callable[[Any], None]]] = {}

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.fail_connect:
            raise RealtimeUnavailable("refused")
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    def is_connected(self) -> bool:
        return self.connected

    async def join_topic(self, name: str) -> None:
        self.joined.append(name)

    async def leave_topic(self, name: str) -> None:
        self.left.append(name)

    def on(self, event, handler) -> None:
        self.handlers.setdefault(event, []).append(handler)

    def off(self, event, handler) -> None:
        handlers = self.handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, data: Any) -> None:
        for handler in list(self.handlers.get(event, [])):
            handler(data)


def make_job(job_id: str, status: str = "running", **fields: Any) -> ScraperJob:
    return ScraperJob.model_validate({"jobId": job_id, "task": "update_exchange_rate", "status": status, **fields})


@pytest.fixture
def store() -> JobStore:
    return JobStore()


@pytest.fixture
def fake_api() -> FakeScraperApi:
    return FakeScraperApi()


@pytest.fixture
def actions(store: JobStore, fake_api: FakeScraperApi) -> ScraperActions:
    return ScraperActions(store, fake_api)


@pytest.fixture
def connection() -> FakeConnection:
    return FakeConnection()
