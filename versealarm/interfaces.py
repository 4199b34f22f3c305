"""Collaborator interfaces used by the alarm core."""

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from .models import Alarm, AppSettings


class AlarmStore(Protocol):
    """Persistent alarm records, keyed by alarm id."""

    def get_all(self) -> list[Alarm]: ...

    def get(self, alarm_id: str) -> Alarm | None: ...

    def put(self, alarm: Alarm) -> None: ...

    def delete(self, alarm_id: str) -> None: ...


class SettingsStore(Protocol):
    """The single AppSettings record."""

    def get(self) -> AppSettings: ...

    def put(self, settings: AppSettings) -> None: ...


class TriggerScheduler(Protocol):
    """Wakes the process at a wall-clock instant."""

    def register_one_shot(
        self, trigger_id: str, instant: datetime, payload: str
    ) -> None: ...

    def cancel(self, trigger_id: str) -> None: ...

    def cancel_all(self) -> None: ...


class AlarmOutput(Protocol):
    """Sound, vibration and the keep-warm audio session."""

    def start_continuous_sound(self, sound_id: str) -> None: ...

    def stop_sound(self) -> None: ...

    def start_keep_warm_session(self) -> None: ...

    def stop_keep_warm_session(self) -> None: ...

    def vibrate(self, pattern: Sequence[int], repeat: bool = False) -> None: ...

    def cancel_vibration(self) -> None: ...


class TextProvider(Protocol):
    """Remote source of verse text."""

    def fetch(
        self, book: str, chapter: int, verse_start: int, verse_count: int
    ) -> str | None: ...
