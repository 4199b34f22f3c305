"""Next fire time resolution for one-shot and weekly repeating alarms."""

from collections.abc import Collection
from datetime import date, datetime, time, timedelta

from .models import DayOfWeek, weekday_of

# Days scanned after today for a repeating alarm. Today plus a full week so
# that a single repeat day whose time already passed today lands next week.
SEARCH_DAYS = 7


def _at(day: date, time_of_day: time, now: datetime) -> datetime:
    """``day`` at the alarm's hour and minute, in ``now``'s timezone."""
    return datetime.combine(
        day, time(time_of_day.hour, time_of_day.minute), tzinfo=now.tzinfo
    )


def next_fire_time(
    time_of_day: time, repeat_days: Collection[DayOfWeek], now: datetime
) -> datetime:
    """Return the next instant strictly after ``now`` at which the alarm rings.

    An empty ``repeat_days`` means the alarm rings once: today if the time has
    not passed yet, otherwise tomorrow. A candidate equal to ``now`` counts as
    already past.
    """
    if not repeat_days:
        candidate = _at(now.date(), time_of_day, now)
        if candidate <= now:
            candidate = _at(now.date() + timedelta(days=1), time_of_day, now)
        return candidate

    days = {DayOfWeek(d) for d in repeat_days}
    for offset in range(SEARCH_DAYS + 1):
        day = now.date() + timedelta(days=offset)
        if weekday_of(day) not in days:
            continue
        candidate = _at(day, time_of_day, now)
        if candidate > now:
            return candidate

    return _at(now.date() + timedelta(days=1), time_of_day, now)


def snooze_fire_time(now: datetime, minutes: int) -> datetime:
    """Instant a snoozed alarm rings again."""
    return now + timedelta(minutes=minutes)
