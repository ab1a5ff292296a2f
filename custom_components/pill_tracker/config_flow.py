"""Config flow for Pill Tracker integration."""
from __future__ import annotations

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.core import callback

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
    DOMAIN,
)
from .models import format_time, parse_time, sanitize_notify_services

DEFAULT_MORNING_TIME = format_time(DEFAULT_MORNING_HOUR, DEFAULT_MORNING_MINUTE)
DEFAULT_EVENING_TIME = format_time(DEFAULT_EVENING_HOUR, DEFAULT_EVENING_MINUTE)


def _normalize_reminder_times(user_input: dict) -> tuple[str, str]:
    morning = parse_time(user_input.get(CONF_MORNING_TIME) or DEFAULT_MORNING_TIME)
    evening = parse_time(user_input.get(CONF_EVENING_TIME) or DEFAULT_EVENING_TIME)
    return format_time(*morning), format_time(*evening)


class PillTrackerConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    VERSION = 1

    async def async_step_user(self, user_input=None):
        errors = {}
        if user_input is not None:
            try:
                morning, evening = _normalize_reminder_times(user_input)
            except vol.Invalid:
                errors["base"] = "invalid_times"
            else:
                await self.async_set_unique_id(DOMAIN)
                self._abort_if_unique_id_configured()
                data = {
                    CONF_NOTIFICATIONS_ENABLED: bool(user_input.get(CONF_NOTIFICATIONS_ENABLED, False)),
                    CONF_MORNING_TIME: morning,
                    CONF_EVENING_TIME: evening,
                    CONF_HISTORY_LOCKED: bool(user_input.get(CONF_HISTORY_LOCKED, True)),
                }
                return self.async_create_entry(title="Pill Tracker", data=data)

        schema = vol.Schema(
            {
                vol.Optional(CONF_NOTIFICATIONS_ENABLED, default=False): bool,
                vol.Optional(CONF_MORNING_TIME, default=DEFAULT_MORNING_TIME): str,
                vol.Optional(CONF_EVENING_TIME, default=DEFAULT_EVENING_TIME): str,
                vol.Optional(CONF_HISTORY_LOCKED, default=True): bool,
            }
        )
        return self.async_show_form(step_id="user", data_schema=schema, errors=errors)

    @staticmethod
    @callback
    def async_get_options_flow(config_entry: config_entries.ConfigEntry):
        return PillTrackerOptionsFlow()


class PillTrackerOptionsFlow(config_entries.OptionsFlow):
    async def async_step_init(self, user_input=None):
        errors = {}
        if user_input is not None:
            try:
                morning, evening = _normalize_reminder_times(user_input)
            except vol.Invalid:
                errors["base"] = "invalid_times"
            else:
                enabled = bool(user_input.get(CONF_NOTIFICATIONS_ENABLED, False))
                services = sanitize_notify_services(user_input.get(CONF_NOTIFY_SERVICES) or "")
                missing = [s for s in services if not self.hass.services.has_service("notify", s)]
                if enabled and missing:
                    errors[CONF_NOTIFY_SERVICES] = "notify_denied"
                else:
                    return self.async_create_entry(
                        title="",
                        data={
                            CONF_NOTIFICATIONS_ENABLED: enabled,
                            CONF_MORNING_TIME: morning,
                            CONF_EVENING_TIME: evening,
                            CONF_HISTORY_LOCKED: bool(user_input.get(CONF_HISTORY_LOCKED, True)),
                            CONF_NOTIFY_SERVICES: ", ".join(f"notify.{s}" for s in services),
                        },
                    )

        entry = self.config_entry
        current = {
            key: entry.options.get(key, entry.data.get(key, default))
            for key, default in (
                (CONF_NOTIFICATIONS_ENABLED, False),
                (CONF_MORNING_TIME, DEFAULT_MORNING_TIME),
                (CONF_EVENING_TIME, DEFAULT_EVENING_TIME),
                (CONF_HISTORY_LOCKED, True),
                (CONF_NOTIFY_SERVICES, ""),
            )
        }
        tracker = self.hass.data.get(DOMAIN, {}).get("tracker")
        if tracker is not None:
            # the relock timer changes the lock without touching the options
            current[CONF_HISTORY_LOCKED] = tracker.lock.locked

        schema = vol.Schema(
            {
                vol.Optional(CONF_NOTIFICATIONS_ENABLED, default=current[CONF_NOTIFICATIONS_ENABLED]): bool,
                vol.Optional(CONF_MORNING_TIME, default=current[CONF_MORNING_TIME]): str,
                vol.Optional(CONF_EVENING_TIME, default=current[CONF_EVENING_TIME]): str,
                vol.Optional(CONF_HISTORY_LOCKED, default=current[CONF_HISTORY_LOCKED]): bool,
                vol.Optional(
                    CONF_NOTIFY_SERVICES,
                    default=current[CONF_NOTIFY_SERVICES],
                    description={
                        "suggested_value": "notify.mobile_app_my_phone",
                    },
                ): str,
            }
        )
        return self.async_show_form(step_id="init", data_schema=schema, errors=errors)
