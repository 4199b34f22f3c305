"""Data models for Verse Alarm."""

import json
import random
import string
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from datetime import time as dt_time
from enum import Enum, IntEnum
from typing import Any

from .errors import PayloadError


class DayOfWeek(IntEnum):
    """Repeat weekday, numbered from Sunday."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @property
    def label(self) -> str:
        return self.name[:3].title()


def weekday_of(day: date) -> DayOfWeek:
    """Map a calendar date onto the Sunday-first weekday numbering."""
    return DayOfWeek((day.weekday() + 1) % 7)


def parse_days(value: str) -> frozenset[DayOfWeek]:
    """Parse a comma separated list such as ``mon,wed`` or ``1,3``."""
    days: set[DayOfWeek] = set()
    for part in value.split(","):
        token = part.strip().lower()
        if not token:
            continue
        if token.isdigit():
            days.add(DayOfWeek(int(token)))
            continue
        for day in DayOfWeek:
            if day.label.lower() == token or day.name.lower() == token:
                days.add(day)
                break
        else:
            raise ValueError(f"Unknown weekday: {part.strip()}")
    return frozenset(days)


def generate_alarm_id() -> str:
    """Unique id: epoch milliseconds plus a random base36 suffix."""
    alphabet = string.digits + string.ascii_lowercase
    suffix = "".join(random.choice(alphabet) for _ in range(9))
    return f"{int(time.time() * 1000)}-{suffix}"


@dataclass(frozen=True)
class Alarm:
    """A wake-up alarm. Writes always replace the whole record."""

    id: str
    time_of_day: dt_time  # Only hour and minute are meaningful
    enabled: bool = True
    label: str = ""
    repeat_days: frozenset[DayOfWeek] = field(default_factory=frozenset)
    sound: str = "default"
    vibrate: bool = True
    snooze_enabled: bool = True
    snooze_duration_minutes: int = 5

    def __post_init__(self) -> None:
        """Normalize time and weekdays, validate snooze duration."""
        if not self.id:
            raise ValueError("Alarm id must not be empty")
        tod = self.time_of_day
        if isinstance(tod, datetime):
            tod = tod.time()
        object.__setattr__(self, "time_of_day", dt_time(tod.hour, tod.minute))
        object.__setattr__(
            self, "repeat_days", frozenset(DayOfWeek(d) for d in self.repeat_days)
        )
        if (
            isinstance(self.snooze_duration_minutes, bool)
            or not isinstance(self.snooze_duration_minutes, int)
            or self.snooze_duration_minutes < 1
        ):
            raise ValueError("Snooze duration must be a positive number of minutes")

    @property
    def is_repeating(self) -> bool:
        return bool(self.repeat_days)

    @property
    def repeat_label(self) -> str:
        """Human readable repeat schedule."""
        if not self.repeat_days:
            return "Once"
        if len(self.repeat_days) == 7:
            return "Every day"
        return ", ".join(d.label for d in sorted(self.repeat_days))


def new_alarm(time_of_day: dt_time, **kwargs: Any) -> Alarm:
    """Create an alarm with a freshly generated id."""
    return Alarm(id=generate_alarm_id(), time_of_day=time_of_day, **kwargs)


def alarm_to_dict(alarm: Alarm) -> dict[str, Any]:
    """Serialize an alarm to the shared storage/payload schema."""
    return {
        "id": alarm.id,
        "time": alarm.time_of_day.strftime("%H:%M"),
        "enabled": alarm.enabled,
        "label": alarm.label,
        "repeatDays": sorted(int(d) for d in alarm.repeat_days),
        "sound": alarm.sound,
        "vibrate": alarm.vibrate,
        "snoozeEnabled": alarm.snooze_enabled,
        "snoozeDuration": alarm.snooze_duration_minutes,
    }


def _require(data: dict[str, Any], key: str, kind: type | tuple[type, ...]) -> Any:
    value = data.get(key)
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise PayloadError(f"Alarm payload field {key!r} is missing or invalid")
    return value


def alarm_from_dict(data: Any) -> Alarm:
    """Rebuild an alarm, validating every field of the schema."""
    if not isinstance(data, dict):
        raise PayloadError("Alarm payload must be an object")

    alarm_id = _require(data, "id", str)
    raw_time = _require(data, "time", str)
    try:
        # ISO timestamps from older records still carry the time of day
        parsed = (
            datetime.strptime(raw_time, "%H:%M").time()
            if len(raw_time) <= 5
            else datetime.fromisoformat(raw_time).time()
        )
    except ValueError as e:
        raise PayloadError(f"Alarm payload has invalid time {raw_time!r}") from e

    repeat_raw = _require(data, "repeatDays", list)
    if any(
        not isinstance(d, int) or isinstance(d, bool) or not 0 <= d <= 6
        for d in repeat_raw
    ):
        raise PayloadError("Alarm payload repeatDays must contain weekdays 0..6")

    try:
        return Alarm(
            id=alarm_id,
            time_of_day=parsed,
            enabled=_require(data, "enabled", bool),
            label=str(data.get("label") or ""),
            repeat_days=frozenset(DayOfWeek(d) for d in repeat_raw),
            sound=str(data.get("sound") or "default"),
            vibrate=_require(data, "vibrate", bool),
            snooze_enabled=_require(data, "snoozeEnabled", bool),
            snooze_duration_minutes=_require(data, "snoozeDuration", int),
        )
    except ValueError as e:
        if isinstance(e, PayloadError):
            raise
        raise PayloadError(str(e)) from e


def alarm_to_payload(alarm: Alarm, snooze_of: str | None = None) -> str:
    """JSON payload handed to the trigger subsystem."""
    data = alarm_to_dict(alarm)
    if snooze_of is not None:
        data["snoozeOf"] = snooze_of
    return json.dumps(data)


def alarm_from_payload(payload: str) -> tuple[Alarm, str | None]:
    """Parse a trigger payload. Returns the alarm and the parent id of a snooze."""
    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, TypeError) as e:
        raise PayloadError(f"Alarm payload is not valid JSON: {e}") from e
    alarm = alarm_from_dict(data)
    snooze_of = data.get("snoozeOf")
    if snooze_of is not None and not isinstance(snooze_of, str):
        raise PayloadError("Alarm payload field 'snoozeOf' must be a string")
    return alarm, snooze_of


@dataclass(frozen=True)
class Book:
    """A book of the Bible with selection metadata."""

    name: str  # Slug used in references: 1-samuel, song-of-solomon
    usfm: str  # API book code: GEN, 1SA
    chapters: int
    avg_verses_per_chapter: int  # Used to keep random verses in range
    testament: str  # OT or NT

    @property
    def display_name(self) -> str:
        return " ".join(word.capitalize() for word in self.name.split("-"))


@dataclass(frozen=True)
class PassageRequest:
    """A verse range to fetch from the text provider."""

    book: str  # USFM code
    chapter: int
    verse: int
    verse_count: int = 1

    @property
    def end_verse(self) -> int:
        return self.verse + self.verse_count - 1

    @property
    def passage_id(self) -> str:
        """API passage id, e.g. JHN.3.16 or JHN.3.16-JHN.3.17."""
        start = f"{self.book}.{self.chapter}.{self.verse}"
        if self.verse_count > 1:
            return f"{start}-{self.book}.{self.chapter}.{self.end_verse}"
        return start

    @property
    def verse_label(self) -> str:
        if self.verse_count > 1:
            return f"{self.verse}-{self.end_verse}"
        return str(self.verse)


@dataclass(frozen=True)
class Passage:
    """Text the user has to retype to dismiss a ringing alarm."""

    id: str
    text: str
    source_label: str  # e.g. "John 3:16 (KJV)"
    short_reference: str  # e.g. "John 3:16"

    def __post_init__(self) -> None:
        if not self.text:
            raise ValueError("Passage text must not be empty")

    @property
    def length(self) -> int:
        return len(self.text)


class VerseSource(str, Enum):
    RANDOM = "random"
    SELECTED = "selected"
    FAMOUS = "famous"


@dataclass(frozen=True)
class AppSettings:
    """Passage selection settings. One record per user."""

    use_famous_source: bool = False
    selected_book_ids: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        object.__setattr__(self, "selected_book_ids", frozenset(self.selected_book_ids))

    @property
    def verse_source(self) -> VerseSource:
        if self.use_famous_source:
            return VerseSource.FAMOUS
        if self.selected_book_ids:
            return VerseSource.SELECTED
        return VerseSource.RANDOM

    def to_dict(self) -> dict[str, Any]:
        return {
            "useFamousVerses": self.use_famous_source,
            "selectedBooks": sorted(self.selected_book_ids),
            "verseSource": self.verse_source.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppSettings":
        books = data.get("selectedBooks") or []
        return cls(
            use_famous_source=bool(data.get("useFamousVerses", False)),
            selected_book_ids=frozenset(str(b) for b in books),
        )
