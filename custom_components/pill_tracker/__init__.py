"""Pill Tracker integration for Home Assistant."""
from __future__ import annotations

import logging

import voluptuous as vol

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EVENT_HOMEASSISTANT_STOP
from homeassistant.core import Event, HomeAssistant, ServiceCall, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers import config_validation as cv
from homeassistant.helpers.start import async_at_started
from homeassistant.util import dt as dt_util

from .const import (
    ACTION_TAKEN,
    ATTR_DATE,
    ATTR_DAY,
    ATTR_PERIOD,
    DOMAIN,
)
from .models import Period, ReminderSettings
from .tracker import PillTracker

_LOGGER = logging.getLogger(__name__)

PLATFORMS = ["sensor"]
SERVICES = ("toggle_dose", "unlock_history", "lock_history", "confirm_unlock", "cancel_unlock", "refresh_reminders")

TOGGLE_SCHEMA = vol.Schema(
    {
        vol.Required(ATTR_PERIOD): vol.All(cv.string, vol.Coerce(Period)),
        vol.Optional(ATTR_DATE): cv.date,
    }
)


def _tracker(hass: HomeAssistant) -> PillTracker:
    tracker = hass.data.get(DOMAIN, {}).get("tracker")
    if tracker is None:
        raise HomeAssistantError("Pill Tracker is not set up")
    return tracker


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up Pill Tracker from a config entry."""
    store = hass.data.setdefault(DOMAIN, {})
    tracker = PillTracker(hass, ReminderSettings.from_entry(entry))
    await tracker.async_setup()
    store["tracker"] = tracker

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    _LOGGER.debug("%s: sensor platform forwarded for entry %s", DOMAIN, entry.entry_id)

    if not store.get("services_registered"):
        _register_services(hass)
        store["services_registered"] = True
        _LOGGER.debug("%s: services registered", DOMAIN)

    @callback
    def _handle_mobile_action(event: Event) -> None:
        data = event.data or {}
        if str(data.get("action", "")).upper() != ACTION_TAKEN:
            return
        ad = data.get("action_data", {}) or {}
        try:
            period = Period(ad.get(ATTR_PERIOD))
        except ValueError:
            return
        day = dt_util.parse_date(str(ad.get(ATTR_DAY, "")))
        _tracker(hass).async_mark_taken(period, day)

    entry.async_on_unload(hass.bus.async_listen("mobile_app_notification_action", _handle_mobile_action))
    _LOGGER.debug("%s: listening for mobile_app_notification_action", DOMAIN)

    @callback
    def _started(_hass: HomeAssistant) -> None:
        tracker.async_start()

    @callback
    def _stop(_event: Event) -> None:
        tracker.async_shutdown()

    entry.async_on_unload(async_at_started(hass, _started))
    entry.async_on_unload(hass.bus.async_listen_once(EVENT_HOMEASSISTANT_STOP, _stop))
    entry.async_on_unload(entry.add_update_listener(_options_updated))
    return True


async def _options_updated(hass: HomeAssistant, entry: ConfigEntry) -> None:
    _tracker(hass).async_apply_settings(ReminderSettings.from_entry(entry))


def _register_services(hass: HomeAssistant) -> None:
    async def toggle_dose(call: ServiceCall):
        tracker = _tracker(hass)
        today = dt_util.now().date()
        day = call.data.get(ATTR_DATE, today)
        if day > today:
            raise HomeAssistantError("Cannot record doses for future days")
        tracker.async_toggle(call.data[ATTR_PERIOD], day)

    async def unlock_history(call: ServiceCall):
        _tracker(hass).lock.unlock()

    async def lock_history(call: ServiceCall):
        _tracker(hass).lock.relock()

    async def confirm_unlock(call: ServiceCall):
        _tracker(hass).confirm_unlock()

    async def cancel_unlock(call: ServiceCall):
        _tracker(hass).cancel_unlock()

    async def refresh_reminders(call: ServiceCall):
        _tracker(hass).async_activate()

    hass.services.async_register(DOMAIN, "toggle_dose", toggle_dose, schema=TOGGLE_SCHEMA)
    hass.services.async_register(DOMAIN, "unlock_history", unlock_history)
    hass.services.async_register(DOMAIN, "lock_history", lock_history)
    hass.services.async_register(DOMAIN, "confirm_unlock", confirm_unlock)
    hass.services.async_register(DOMAIN, "cancel_unlock", cancel_unlock)
    hass.services.async_register(DOMAIN, "refresh_reminders", refresh_reminders)


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if not ok:
        return False

    store = hass.data.get(DOMAIN, {})
    tracker: PillTracker | None = store.pop("tracker", None)
    if tracker is not None:
        tracker.async_shutdown()
    for svc in SERVICES:
        if hass.services.has_service(DOMAIN, svc):
            hass.services.async_remove(DOMAIN, svc)
    store["services_registered"] = False
    return True
