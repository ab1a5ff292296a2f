"""Data model for Pill Tracker."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from enum import StrEnum
import re
from typing import Any

import voluptuous as vol

from homeassistant.config_entries import ConfigEntry
from homeassistant.util import dt as dt_util

from .const import (
    CONF_EVENING_TIME,
    CONF_HISTORY_LOCKED,
    CONF_MORNING_TIME,
    CONF_NOTIFICATIONS_ENABLED,
    CONF_NOTIFY_SERVICES,
    DEFAULT_EVENING_HOUR,
    DEFAULT_EVENING_MINUTE,
    DEFAULT_MORNING_HOUR,
    DEFAULT_MORNING_MINUTE,
)


class Period(StrEnum):
    MORNING = "morning"
    EVENING = "evening"


class PermissionStatus(StrEnum):
    NOT_DETERMINED = "not_determined"
    DENIED = "denied"
    AUTHORIZED = "authorized"
    PROVISIONAL = "provisional"
    EPHEMERAL = "ephemeral"


class ToggleResult(StrEnum):
    APPLIED = "applied"
    LOCKED = "locked"


def normalize_day(value: date | datetime, time_zone: tzinfo | None = None) -> date:
    """Return the local calendar day of a date or datetime."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(time_zone or dt_util.get_default_time_zone())
        return value.date()
    return value


@dataclass
class DoseRecord:
    """Doses taken on one calendar day."""

    day: date
    morning_taken: bool = False
    evening_taken: bool = False

    def __post_init__(self) -> None:
        self.day = normalize_day(self.day)

    def is_taken(self, period: Period) -> bool:
        if period is Period.MORNING:
            return self.morning_taken
        return self.evening_taken

    def set_taken(self, period: Period, value: bool) -> None:
        if period is Period.MORNING:
            self.morning_taken = value
        else:
            self.evening_taken = value

    @property
    def is_complete(self) -> bool:
        return self.morning_taken and self.evening_taken

    def as_dict(self) -> dict[str, Any]:
        return {
            "day": self.day.isoformat(),
            "morning_taken": self.morning_taken,
            "evening_taken": self.evening_taken,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DoseRecord | None:
        day = dt_util.parse_date(str(data.get("day", "")))
        if day is None:
            return None
        return cls(
            day=day,
            morning_taken=bool(data.get("morning_taken", False)),
            evening_taken=bool(data.get("evening_taken", False)),
        )


@dataclass(frozen=True)
class NotificationEntry:
    """A reminder that should be pending."""

    period: Period
    day_key: str
    hour: int
    minute: int
    body: str

    @property
    def identifier(self) -> str:
        return f"{self.period}-{self.day_key}"


@dataclass(frozen=True)
class PendingToggle:
    """A past-day toggle waiting for the user to confirm unlocking."""

    period: Period
    day: date


def parse_time(value: str) -> tuple[int, int]:
    """Parse an H:MM value into (hour, minute)."""
    try:
        hh, mm = str(value).strip().split(":")
        hour = int(hh)
        minute = int(mm)
    except Exception as err:
        raise vol.Invalid(f"Invalid time format: {value}") from err
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise vol.Invalid(f"Invalid time value: {value}")
    return hour, minute


def format_time(hour: int, minute: int) -> str:
    return f"{hour:02d}:{minute:02d}"


def sanitize_notify_services(value: str | list[str] | None) -> list[str]:
    """Allow 'notify.xxx' or 'xxx'; return normalized unique list of 'xxx'."""
    if not value:
        return []
    items = value if isinstance(value, list) else value.split(",")
    out: list[str] = []
    pat = re.compile(r"^(?:notify\.)?[a-z0-9_]+$")
    for svc in (s.strip() for s in items):
        if not pat.fullmatch(svc):
            continue
        name = svc.split(".", 1)[1] if svc.startswith("notify.") else svc
        if name not in out:
            out.append(name)
    return out


@dataclass
class ReminderSettings:
    """Settings passed explicitly into the tracker."""

    notifications_enabled: bool = False
    morning_hour: int = DEFAULT_MORNING_HOUR
    morning_minute: int = DEFAULT_MORNING_MINUTE
    evening_hour: int = DEFAULT_EVENING_HOUR
    evening_minute: int = DEFAULT_EVENING_MINUTE
    history_locked: bool = True
    notify_services: list[str] = field(default_factory=list)

    @classmethod
    def from_entry(cls, entry: ConfigEntry) -> ReminderSettings:
        def _get(key: str, default: Any) -> Any:
            return entry.options.get(key, entry.data.get(key, default))

        try:
            morning = parse_time(_get(CONF_MORNING_TIME, ""))
        except vol.Invalid:
            morning = (DEFAULT_MORNING_HOUR, DEFAULT_MORNING_MINUTE)
        try:
            evening = parse_time(_get(CONF_EVENING_TIME, ""))
        except vol.Invalid:
            evening = (DEFAULT_EVENING_HOUR, DEFAULT_EVENING_MINUTE)
        return cls(
            notifications_enabled=bool(_get(CONF_NOTIFICATIONS_ENABLED, False)),
            morning_hour=morning[0],
            morning_minute=morning[1],
            evening_hour=evening[0],
            evening_minute=evening[1],
            history_locked=bool(_get(CONF_HISTORY_LOCKED, True)),
            notify_services=sanitize_notify_services(_get(CONF_NOTIFY_SERVICES, "")),
        )
