"""Reminder sink: arms, cancels and delivers reminder notifications."""
from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Tuple

from homeassistant.core import CoreState, HomeAssistant, callback
from homeassistant.helpers.dispatcher import async_dispatcher_send
from homeassistant.helpers.event import async_track_point_in_time
from homeassistant.util import dt as dt_util

from .const import (
    ACTION_TAKEN,
    ATTR_DAY,
    ATTR_PERIOD,
    DOMAIN,
    NOTIFICATION_TITLE,
    SIGNAL_REMINDERS_UPDATED,
)
from .models import NotificationEntry, PermissionStatus
from .schedule import fire_time

_LOGGER = logging.getLogger(__name__)


class ReminderSink:
    """Pending reminders keyed by identifier, one timer each."""

    def __init__(
        self,
        hass: HomeAssistant,
        deliver: Callable[[NotificationEntry], None],
        notify_services: List[str] | None = None,
    ) -> None:
        self.hass = hass
        self._deliver = deliver
        self._notify_services: List[str] = list(notify_services or [])
        self._pending: Dict[str, Tuple[NotificationEntry, Callable[[], None]]] = {}

    @property
    def pending(self) -> Dict[str, NotificationEntry]:
        return {ident: entry for ident, (entry, _) in self._pending.items()}

    @property
    def notify_services(self) -> List[str]:
        return list(self._notify_services)

    def set_notify_services(self, services: List[str]) -> None:
        self._notify_services = list(services)

    def permission_status(self) -> PermissionStatus:
        # persistent notifications need no grant
        missing = [s for s in self._notify_services if not self.hass.services.has_service("notify", s)]
        if not missing:
            return PermissionStatus.AUTHORIZED
        if self.hass.state is not CoreState.running:
            return PermissionStatus.NOT_DETERMINED
        return PermissionStatus.DENIED

    def _updated(self) -> None:
        async_dispatcher_send(self.hass, SIGNAL_REMINDERS_UPDATED)

    @callback
    def schedule_pending(self, entries: Iterable[NotificationEntry]) -> None:
        for entry in entries:
            day = dt_util.parse_date(entry.day_key)
            if day is None:
                continue
            self._cancel(entry.identifier)
            when = fire_time(day, entry.hour, entry.minute)

            @callback
            def _cb(_, ent=entry):
                self._pending.pop(ent.identifier, None)
                self._updated()
                self._deliver(ent)

            unsub = async_track_point_in_time(self.hass, _cb, when)
            self._pending[entry.identifier] = (entry, unsub)
        self._updated()

    def _cancel(self, identifier: str) -> bool:
        item = self._pending.pop(identifier, None)
        if item is None:
            return False
        item[1]()
        return True

    @callback
    def cancel_pending(self, identifiers: Iterable[str]) -> None:
        cancelled = [i for i in identifiers if self._cancel(i)]
        if cancelled:
            _LOGGER.debug("%s: cancelled reminders %s", DOMAIN, cancelled)
            self._updated()

    @callback
    def remove_all_pending(self) -> None:
        for _, unsub in self._pending.values():
            unsub()
        self._pending.clear()
        self._updated()

    async def async_send(self, entry: NotificationEntry) -> None:
        await self.hass.services.async_call(
            "persistent_notification",
            "create",
            {"title": NOTIFICATION_TITLE, "message": entry.body, "notification_id": f"{DOMAIN}_{entry.identifier}"},
            blocking=False,
        )
        if not self._notify_services:
            return
        data = {
            "tag": entry.identifier,
            "actions": [{"action": ACTION_TAKEN, "title": "Taken"}],
            "action_data": {ATTR_PERIOD: str(entry.period), ATTR_DAY: entry.day_key},
        }
        for service in self._notify_services:
            if not self.hass.services.has_service("notify", service):
                _LOGGER.warning("%s: notify.%s is not available, skipping reminder", DOMAIN, service)
                continue
            await self.hass.services.async_call(
                "notify",
                service,
                {"title": NOTIFICATION_TITLE, "message": entry.body, "data": data},
                blocking=False,
            )
