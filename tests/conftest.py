"""Pytest fixtures for Verse Alarm tests."""

from datetime import datetime, time
from unittest.mock import MagicMock

import pytest

from versealarm.models import Alarm, AppSettings, Book, DayOfWeek, Passage


class FakeClock:
    """Settable clock for lifecycle tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class MemoryAlarmStore:
    """In-memory alarm store with whole-record writes."""

    def __init__(self, alarms: list[Alarm] | None = None):
        self.records = {a.id: a for a in alarms or []}
        self.fail_writes = False

    def get_all(self) -> list[Alarm]:
        return list(self.records.values())

    def get(self, alarm_id: str) -> Alarm | None:
        return self.records.get(alarm_id)

    def put(self, alarm: Alarm) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.records[alarm.id] = alarm

    def delete(self, alarm_id: str) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.records.pop(alarm_id, None)


class RecordingTriggers:
    """Trigger scheduler that only records registrations."""

    def __init__(self):
        self.pending: dict[str, tuple[datetime, str]] = {}
        self.registered: list[tuple[str, datetime, str]] = []
        self.fail = False

    def register_one_shot(self, trigger_id: str, instant: datetime, payload: str) -> None:
        if self.fail:
            raise RuntimeError("trigger service unavailable")
        self.pending[trigger_id] = (instant, payload)
        self.registered.append((trigger_id, instant, payload))

    def cancel(self, trigger_id: str) -> None:
        self.pending.pop(trigger_id, None)

    def cancel_all(self) -> None:
        self.pending.clear()


@pytest.fixture
def monday_morning() -> datetime:
    """Monday 2026-10-19 07:00:30."""
    return datetime(2026, 10, 19, 7, 0, 30)


@pytest.fixture
def clock(monday_morning: datetime) -> FakeClock:
    return FakeClock(monday_morning)


@pytest.fixture
def once_alarm() -> Alarm:
    return Alarm(id="alarm-once", time_of_day=time(7, 0), label="Work")


@pytest.fixture
def weekly_alarm() -> Alarm:
    return Alarm(
        id="alarm-weekly",
        time_of_day=time(7, 0),
        label="Gym",
        repeat_days=frozenset({DayOfWeek.MONDAY, DayOfWeek.WEDNESDAY}),
    )


@pytest.fixture
def sample_passage() -> Passage:
    return Passage(
        id="JHN_11_35",
        text="Jesus wept.",
        source_label="John 11:35 (KJV)",
        short_reference="John 11:35",
    )


@pytest.fixture
def sample_books() -> list[Book]:
    return [
        Book(name="genesis", usfm="GEN", chapters=50, avg_verses_per_chapter=26, testament="OT"),
        Book(name="psalms", usfm="PSA", chapters=150, avg_verses_per_chapter=12, testament="OT"),
        Book(name="john", usfm="JHN", chapters=21, avg_verses_per_chapter=24, testament="NT"),
    ]


@pytest.fixture
def settings_store() -> MagicMock:
    store = MagicMock()
    store.get.return_value = AppSettings(selected_book_ids=frozenset({"PSA"}))
    return store


@pytest.fixture
def output() -> MagicMock:
    return MagicMock()


@pytest.fixture
def alarm_store() -> MemoryAlarmStore:
    return MemoryAlarmStore()


@pytest.fixture
def triggers() -> RecordingTriggers:
    return RecordingTriggers()
