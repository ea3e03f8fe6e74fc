# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""Test configuration — paths isolation, a controllable clock, fake collaborators."""

import asyncio
from datetime import datetime, timedelta

import pytest

from core.app import CommitApp
from core.paths import configure, reset
from ritual.storage import MemoryBlobStore

START = datetime(2026, 3, 2, 8, 30)


class FakeClock:
    """Callable clock; advance() moves it forward."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0, minutes: int = 0) -> datetime:
        self.now += timedelta(days=days, hours=hours, minutes=minutes)
        return self.now

    def set(self, when: datetime) -> datetime:
        self.now = when
        return self.now


class FakeDelivery:
    """In-memory NotificationDelivery recording every call."""

    def __init__(self, authorized: bool = True, grant: bool = True):
        self.authorized = authorized
        self.grant = grant
        self.scheduled = {}
        self.cancel_calls = 0
        self.auth_requests = 0
        self.fail_schedule = False
        self.yield_on_check = False

    async def is_authorized(self) -> bool:
        if self.yield_on_check:
            await asyncio.sleep(0)
        return self.authorized

    async def request_authorization(self) -> bool:
        self.auth_requests += 1
        self.authorized = self.grant
        return self.grant

    async def schedule(self, id, time, title, body) -> None:
        if self.fail_schedule:
            raise RuntimeError("delivery offline")
        self.scheduled[id] = (time, title, body)

    async def cancel_all(self) -> None:
        self.cancel_calls += 1
        self.scheduled.clear()


class FakeProvider:
    """EntitlementProvider with a mutable set of granted features."""

    def __init__(self, *features):
        self.entitled = set(features)
        self.lookups = 0

    def is_entitled(self, feature) -> bool:
        self.lookups += 1
        return feature in self.entitled


@pytest.fixture(autouse=True)
def isolated_paths(tmp_path, monkeypatch):
    """Route all data to a temp directory; no env overrides leak in."""
    monkeypatch.delenv("COMMIT_UNLOCK_ALL", raising=False)
    monkeypatch.delenv("COMMIT_DATA_DIR", raising=False)
    paths = configure(tmp_path)
    paths.ensure_dirs()
    yield paths
    reset()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def delivery():
    return FakeDelivery()


@pytest.fixture
def store():
    return MemoryBlobStore()


@pytest.fixture
def app(store, delivery, clock):
    return CommitApp(store, delivery, clock=clock)


@pytest.fixture
def premium_app(app):
    app.provider.set_premium(True)
    return app


@pytest.fixture
def make_provider():
    return FakeProvider
