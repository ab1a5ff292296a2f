"""Reminder scheduling decisions.

These functions are pure: they look at settings, records and a reference
time and decide which reminders should be pending. Arming and cancelling
the actual timers is left to the reminder sink.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable

from homeassistant.util import dt as dt_util

from .const import EVENING_BODY, MORNING_BODY, SCHEDULE_DAYS
from .models import DoseRecord, NotificationEntry, Period, normalize_day

REMINDER_BODIES = {
    Period.MORNING: MORNING_BODY,
    Period.EVENING: EVENING_BODY,
}


def _zone(time_zone: tzinfo | None) -> tzinfo:
    return time_zone or dt_util.get_default_time_zone()


def _aware(value: datetime, time_zone: tzinfo) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=time_zone)
    return value


def day_key(day: date) -> str:
    return day.strftime("%Y-%m-%d")


def fire_time(day: date, hour: int, minute: int, time_zone: tzinfo | None = None) -> datetime:
    """Instant at which a reminder for day at hour:minute fires."""
    return datetime.combine(day, time(hour, minute), tzinfo=_zone(time_zone))


def build_schedule(
    enabled: bool,
    morning_hour: int,
    morning_minute: int,
    evening_hour: int,
    evening_minute: int,
    records: Iterable[DoseRecord],
    reference_time: datetime,
    time_zone: tzinfo | None = None,
) -> list[NotificationEntry]:
    """Return the reminders that should be pending for the coming week."""
    if not enabled:
        return []

    tz = _zone(time_zone)
    reference_time = _aware(reference_time, tz)
    today = normalize_day(reference_time, tz)
    by_day = {r.day: r for r in records}
    times = {
        Period.MORNING: (morning_hour, morning_minute),
        Period.EVENING: (evening_hour, evening_minute),
    }

    result: list[NotificationEntry] = []
    for offset in range(SCHEDULE_DAYS):
        day = today + timedelta(days=offset)
        record = by_day.get(day)
        for period in Period:
            if record is not None and record.is_taken(period):
                continue
            hour, minute = times[period]
            # at or before the reference time is already past
            if fire_time(day, hour, minute, tz) <= reference_time:
                continue
            result.append(
                NotificationEntry(
                    period=period,
                    day_key=day_key(day),
                    hour=hour,
                    minute=minute,
                    body=REMINDER_BODIES[period],
                )
            )
    return result


def notification_identifier(period: Period, day: date | datetime, time_zone: tzinfo | None = None) -> str:
    return f"{period}-{day_key(normalize_day(day, _zone(time_zone)))}"


def should_suppress_foreground_notification(
    identifier: str,
    records: Iterable[DoseRecord],
    reference_time: datetime,
    time_zone: tzinfo | None = None,
) -> bool:
    """Whether a fired reminder is moot because today's dose is already taken."""
    period = Period.MORNING if identifier.startswith(f"{Period.MORNING}-") else Period.EVENING
    tz = _zone(time_zone)
    today = normalize_day(_aware(reference_time, tz), tz)
    record = next((r for r in records if r.day == today), None)
    if record is None:
        return False
    return record.is_taken(period)
