"""Sensor platform for Pill Tracker."""
from __future__ import annotations

from typing import Callable, Optional

from homeassistant.components.sensor import SensorEntity, SensorStateClass
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.entity import async_generate_entity_id
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.util import dt as dt_util

from .const import (
    DOMAIN,
    SIGNAL_LOCK_UPDATED,
    SIGNAL_RECORDS_UPDATED,
    SIGNAL_REMINDERS_UPDATED,
    STATE_LOCKED,
    STATE_UNLOCKED,
)
from .schedule import fire_time
from .streak import calculate_streak
from .tracker import PillTracker


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback
) -> None:
    tracker: PillTracker = hass.data[DOMAIN]["tracker"]
    async_add_entities(
        [
            StreakSensor(hass, tracker),
            HistoryLockSensor(hass, tracker),
            PendingRemindersSensor(hass, tracker),
        ]
    )


class _TrackerSensor(SensorEntity):
    """Base for sensors that refresh on a dispatcher signal."""

    _attr_should_poll = False
    _signal: str = ""

    def __init__(self, hass: HomeAssistant, tracker: PillTracker, key: str, name: str) -> None:
        self.hass = hass
        self._tracker = tracker
        self._attr_name = name
        self._attr_unique_id = f"{DOMAIN}_{key}"
        self.entity_id = async_generate_entity_id("sensor.{}", f"{DOMAIN}_{key}", hass=hass)
        self._unsub_dispatcher: Optional[Callable[[], None]] = None
        self._attr_device_info = {
            "identifiers": {(DOMAIN, DOMAIN)},
            "name": "Pill Tracker",
        }

    async def async_added_to_hass(self) -> None:
        @callback
        def _updated(*_args) -> None:
            self.async_write_ha_state()

        self._unsub_dispatcher = async_dispatcher_connect(self.hass, self._signal, _updated)

    async def async_will_remove_from_hass(self) -> None:
        if self._unsub_dispatcher:
            self._unsub_dispatcher()
            self._unsub_dispatcher = None


class StreakSensor(_TrackerSensor):
    """Consecutive days with both doses taken."""

    _attr_icon = "mdi:fire"
    _attr_native_unit_of_measurement = "d"
    _attr_state_class = SensorStateClass.MEASUREMENT
    _signal = SIGNAL_RECORDS_UPDATED

    def __init__(self, hass: HomeAssistant, tracker: PillTracker) -> None:
        super().__init__(hass, tracker, "streak", "Pill Streak")

    @property
    def native_value(self):
        return calculate_streak(self._tracker.store.query_all(), dt_util.now())

    @property
    def extra_state_attributes(self):
        record = self._tracker.store.get(dt_util.now())
        return {
            "morning_taken": bool(record and record.morning_taken),
            "evening_taken": bool(record and record.evening_taken),
        }


class HistoryLockSensor(_TrackerSensor):
    _signal = SIGNAL_LOCK_UPDATED

    def __init__(self, hass: HomeAssistant, tracker: PillTracker) -> None:
        super().__init__(hass, tracker, "history_lock", "Pill History Lock")

    @property
    def native_value(self):
        return STATE_LOCKED if self._tracker.lock.locked else STATE_UNLOCKED

    @property
    def icon(self):
        return "mdi:lock" if self._tracker.lock.locked else "mdi:lock-open-variant"

    @property
    def extra_state_attributes(self):
        lock = self._tracker.lock
        pending = self._tracker.pending_toggle
        relock_at = lock.relock_at
        return {
            "unlocked_at": None
            if lock.unlocked_at is None
            else dt_util.utc_from_timestamp(lock.unlocked_at).isoformat(),
            "relock_at": relock_at.isoformat() if relock_at else None,
            "pending_toggle": None
            if pending is None
            else {"period": str(pending.period), "day": pending.day.isoformat()},
        }


class PendingRemindersSensor(_TrackerSensor):
    _attr_icon = "mdi:bell-ring"
    _signal = SIGNAL_REMINDERS_UPDATED

    def __init__(self, hass: HomeAssistant, tracker: PillTracker) -> None:
        super().__init__(hass, tracker, "pending_reminders", "Pill Pending Reminders")

    @property
    def native_value(self):
        return len(self._tracker.sink.pending)

    @property
    def extra_state_attributes(self):
        pending = self._tracker.sink.pending
        upcoming = []
        for entry in pending.values():
            day = dt_util.parse_date(entry.day_key)
            if day is not None:
                upcoming.append(fire_time(day, entry.hour, entry.minute))
        return {
            "identifiers": sorted(pending),
            "next_reminder": min(upcoming).isoformat() if upcoming else None,
        }
