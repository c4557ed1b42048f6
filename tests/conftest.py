"""Shared fixtures: settings and an in-memory scheduling provider."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from typing import Any

import pytest

from booking_bridge.config import Settings
from booking_bridge.providers.base import SchedulingProvider


class FakeProvider(SchedulingProvider):
    """Records every call and answers with canned payloads.

    A canned value that is an exception instance is raised instead of
    returned.
    """

    def __init__(
        self,
        free_slots: Any = None,
        upsert: Any = None,
        appointment: Any = None,
    ) -> None:
        self.free_slots = [] if free_slots is None else free_slots
        self.upsert = {"contact": {"id": "c-1"}} if upsert is None else upsert
        self.appointment = {"id": "appt-1"} if appointment is None else appointment
        self.calls: list[tuple[str, Any]] = []
        self.closed = False

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    @staticmethod
    def _answer(value: Any) -> Any:
        if isinstance(value, Exception):
            raise value
        return value

    async def get_free_slots(self, calendar_id, start_ms, end_ms, timezone):
        self.calls.append((
            "get_free_slots",
            {
                "calendar_id": calendar_id,
                "start_ms": start_ms,
                "end_ms": end_ms,
                "timezone": timezone,
            },
        ))
        return self._answer(self.free_slots)

    async def upsert_contact(self, payload):
        self.calls.append(("upsert_contact", payload))
        return self._answer(self.upsert)

    async def create_appointment(self, payload):
        self.calls.append(("create_appointment", payload))
        return self._answer(self.appointment)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        ghl_token="tok",
        calendar_id="cal-1",
        location_id="loc-1",
        calendar_timezone="Europe/Rome",
    )


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()
