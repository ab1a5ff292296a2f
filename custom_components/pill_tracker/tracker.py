"""Pill Tracker coordinator tying records, lock and reminders together."""
from __future__ import annotations

from datetime import date, datetime
import logging
from typing import Callable, Optional

from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.dispatcher import async_dispatcher_send
from homeassistant.helpers.event import async_track_time_change
from homeassistant.util import dt as dt_util

from .const import (
    DOMAIN,
    SIGNAL_LOCK_UPDATED,
    SIGNAL_RECORDS_UPDATED,
    UNLOCK_PROMPT_ID,
    UNLOCK_PROMPT_MESSAGE,
    UNLOCK_PROMPT_TITLE,
)
from .lock import HistoryLock
from .models import (
    NotificationEntry,
    PendingToggle,
    PermissionStatus,
    Period,
    ReminderSettings,
    ToggleResult,
    normalize_day,
)
from .reminders import ReminderSink
from .schedule import (
    build_schedule,
    notification_identifier,
    should_suppress_foreground_notification,
)
from .store import DoseRecordStore
from .toggle import toggle_dose

_LOGGER = logging.getLogger(__name__)


class PillTracker:
    def __init__(self, hass: HomeAssistant, settings: ReminderSettings) -> None:
        self.hass = hass
        self.settings = settings
        self.store = DoseRecordStore(hass)
        self.lock = HistoryLock(hass)
        self.sink = ReminderSink(hass, self._deliver, settings.notify_services)
        self.pending_toggle: Optional[PendingToggle] = None
        self._unsub_midnight: Optional[Callable[[], None]] = None

    async def async_setup(self) -> None:
        await self.store.async_load()
        await self.lock.async_load(default_locked=self.settings.history_locked)

    @callback
    def async_start(self) -> None:
        self.async_activate()
        if self._unsub_midnight is None:
            self._unsub_midnight = async_track_time_change(
                self.hass, self._handle_midnight, hour=0, minute=0, second=0
            )

    @callback
    def _handle_midnight(self, now: datetime) -> None:
        self.async_activate(now)

    @callback
    def async_shutdown(self) -> None:
        if self._unsub_midnight:
            self._unsub_midnight()
            self._unsub_midnight = None
        self.lock.async_shutdown()
        self.sink.remove_all_pending()

    # Toggling

    @callback
    def _cancel_today_reminder(self, period: Period, day: date) -> None:
        self.sink.cancel_pending([notification_identifier(period, day)])

    @callback
    def async_toggle(self, period: Period, day: Optional[date] = None) -> ToggleResult:
        today = dt_util.now().date()
        day = normalize_day(day) if day is not None else today
        result = toggle_dose(
            self.store,
            self.lock,
            period,
            day,
            today=today,
            on_taken_today=self._cancel_today_reminder,
        )
        if result is ToggleResult.LOCKED:
            self.pending_toggle = PendingToggle(period=period, day=day)
            self._prompt_unlock()
            async_dispatcher_send(self.hass, SIGNAL_LOCK_UPDATED)
            _LOGGER.debug("%s: %s toggle for %s deferred until unlocked", DOMAIN, period, day)
        elif day == today:
            # rebuild so an un-taken dose gets its reminder back
            self.reschedule_all()
        return result

    @callback
    def async_mark_taken(self, period: Period, day: Optional[date] = None) -> ToggleResult:
        day = normalize_day(day) if day is not None else dt_util.now().date()
        record = self.store.get(day)
        if record is not None and record.is_taken(period):
            return ToggleResult.APPLIED
        return self.async_toggle(period, day)

    @callback
    def confirm_unlock(self) -> Optional[ToggleResult]:
        """Unlock history and retry the deferred toggle once."""
        pending = self.pending_toggle
        self.pending_toggle = None
        self._dismiss_prompt()
        self.lock.unlock()
        if pending is None:
            return None
        return self.async_toggle(pending.period, pending.day)

    @callback
    def cancel_unlock(self) -> None:
        self.pending_toggle = None
        self._dismiss_prompt()
        async_dispatcher_send(self.hass, SIGNAL_LOCK_UPDATED)

    def _prompt_unlock(self) -> None:
        self.hass.async_create_task(
            self.hass.services.async_call(
                "persistent_notification",
                "create",
                {"title": UNLOCK_PROMPT_TITLE, "message": UNLOCK_PROMPT_MESSAGE, "notification_id": UNLOCK_PROMPT_ID},
                blocking=False,
            )
        )

    def _dismiss_prompt(self) -> None:
        self.hass.async_create_task(
            self.hass.services.async_call(
                "persistent_notification",
                "dismiss",
                {"notification_id": UNLOCK_PROMPT_ID},
                blocking=False,
            )
        )

    # Reminders

    @callback
    def reschedule_all(self, now: Optional[datetime] = None) -> None:
        """Replace every pending reminder with a freshly built week."""
        self.sink.remove_all_pending()
        if not self.settings.notifications_enabled:
            return
        if self.sink.permission_status() is PermissionStatus.DENIED:
            _LOGGER.warning("%s: notify services %s unavailable, reminders not scheduled", DOMAIN, self.sink.notify_services)
            return

        try:
            records = self.store.query_all()
        except HomeAssistantError as err:
            _LOGGER.warning("%s: could not read dose records, scheduling all reminders: %s", DOMAIN, err)
            records = []

        s = self.settings
        schedule = build_schedule(
            True,
            s.morning_hour,
            s.morning_minute,
            s.evening_hour,
            s.evening_minute,
            records,
            now or dt_util.now(),
        )
        self.sink.schedule_pending(schedule)
        _LOGGER.debug("%s: %d reminders scheduled", DOMAIN, len(schedule))

    @callback
    def _deliver(self, entry: NotificationEntry) -> None:
        try:
            records = self.store.query_all()
        except HomeAssistantError:
            # Could not tell whether the dose was taken; stay quiet
            _LOGGER.debug("%s: suppressing %s, records unavailable", DOMAIN, entry.identifier)
            return
        if should_suppress_foreground_notification(entry.identifier, records, dt_util.now()):
            _LOGGER.debug("%s: suppressing %s, already taken", DOMAIN, entry.identifier)
            return
        self.hass.async_create_task(self.sink.async_send(entry))

    # Lifecycle

    @callback
    def async_activate(self, now: Optional[datetime] = None) -> None:
        """Catch up after start or a day rollover."""
        now = dt_util.as_local(now) if now is not None else dt_util.now()
        self.lock.check_expired(now.timestamp())
        self.reschedule_all(now)
        async_dispatcher_send(self.hass, SIGNAL_RECORDS_UPDATED, now.date())

    @callback
    def async_apply_settings(self, settings: ReminderSettings) -> None:
        self.settings = settings
        self.sink.set_notify_services(settings.notify_services)
        # the relock timer can flip the lock without touching the options
        if settings.history_locked != self.lock.locked:
            if settings.history_locked:
                self.lock.relock()
            else:
                self.lock.unlock()
        self.reschedule_all()
