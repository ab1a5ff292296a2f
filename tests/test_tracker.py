from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from pytest_homeassistant_custom_component.common import (
    async_fire_time_changed,
    async_mock_service,
)

from homeassistant.setup import async_setup_component
from homeassistant.util import dt as dt_util

from custom_components.pill_tracker.const import MORNING_BODY, RELOCK_SECONDS, SCHEDULE_DAYS
from custom_components.pill_tracker.models import (
    DoseRecord,
    NotificationEntry,
    PendingToggle,
    PermissionStatus,
    Period,
    ReminderSettings,
    ToggleResult,
)
from custom_components.pill_tracker.reminders import ReminderSink
from custom_components.pill_tracker.schedule import day_key, fire_time, notification_identifier
from custom_components.pill_tracker.tracker import PillTracker


@pytest.fixture
async def tracker(hass):
    await async_setup_component(hass, "persistent_notification", {})
    tracker = PillTracker(hass, ReminderSettings(notifications_enabled=True))
    await tracker.async_setup()
    yield tracker
    tracker.async_shutdown()


def _entry(period, day, hour=7, minute=0):
    return NotificationEntry(period=period, day_key=day_key(day), hour=hour, minute=minute, body=MORNING_BODY)


def _future_ids():
    """Identifiers for the six days after today, always in the future."""
    today = dt_util.now().date()
    return {
        notification_identifier(period, today + timedelta(days=offset))
        for offset in range(1, 7)
        for period in Period
    }


@pytest.mark.asyncio
async def test_sink_schedule_and_cancel(hass):
    sink = ReminderSink(hass, lambda entry: None)
    tomorrow = dt_util.now().date() + timedelta(days=1)
    morning = _entry(Period.MORNING, tomorrow)
    evening = _entry(Period.EVENING, tomorrow, 21)

    sink.schedule_pending([morning, evening])
    assert set(sink.pending) == {morning.identifier, evening.identifier}

    sink.cancel_pending([morning.identifier, "evening-1999-01-01"])
    assert set(sink.pending) == {evening.identifier}

    sink.remove_all_pending()
    assert sink.pending == {}


@pytest.mark.asyncio
async def test_sink_reschedule_replaces_identifier(hass):
    sink = ReminderSink(hass, lambda entry: None)
    tomorrow = dt_util.now().date() + timedelta(days=1)
    sink.schedule_pending([_entry(Period.MORNING, tomorrow, 7)])
    sink.schedule_pending([_entry(Period.MORNING, tomorrow, 8)])
    assert len(sink.pending) == 1
    assert next(iter(sink.pending.values())).hour == 8
    sink.remove_all_pending()


@pytest.mark.asyncio
async def test_sink_delivers_at_fire_time(hass):
    delivered = []
    sink = ReminderSink(hass, delivered.append)
    tomorrow = dt_util.now().date() + timedelta(days=1)
    entry = _entry(Period.MORNING, tomorrow)
    sink.schedule_pending([entry])

    async_fire_time_changed(hass, fire_time(tomorrow, 7, 0) + timedelta(seconds=1))
    await hass.async_block_till_done()

    assert delivered == [entry]
    assert sink.pending == {}


@pytest.mark.asyncio
async def test_sink_permission_status(hass):
    sink = ReminderSink(hass, lambda entry: None)
    assert sink.permission_status() is PermissionStatus.AUTHORIZED

    sink.set_notify_services(["my_phone"])
    assert sink.permission_status() is PermissionStatus.DENIED

    async_mock_service(hass, "notify", "my_phone")
    assert sink.permission_status() is PermissionStatus.AUTHORIZED


@pytest.mark.asyncio
async def test_sink_send_uses_notify_services(hass):
    await async_setup_component(hass, "persistent_notification", {})
    calls = async_mock_service(hass, "notify", "my_phone")
    sink = ReminderSink(hass, lambda entry: None, ["my_phone", "gone"])
    entry = _entry(Period.EVENING, dt_util.now().date())

    await sink.async_send(entry)
    await hass.async_block_till_done()

    assert len(calls) == 1
    data = calls[0].data
    assert data["message"] == entry.body
    assert data["data"]["tag"] == entry.identifier
    assert data["data"]["action_data"] == {"period": "evening", "day": entry.day_key}


@pytest.mark.asyncio
async def test_reschedule_all_fills_week(tracker):
    tracker.reschedule_all()
    pending = set(tracker.sink.pending)
    assert _future_ids() <= pending
    assert len(pending) <= 14


@pytest.mark.asyncio
async def test_reschedule_all_disabled_clears(tracker):
    tracker.reschedule_all()
    tracker.async_apply_settings(ReminderSettings(notifications_enabled=False))
    assert tracker.sink.pending == {}


@pytest.mark.asyncio
async def test_reschedule_skipped_when_permission_denied(tracker):
    tracker.async_apply_settings(ReminderSettings(notifications_enabled=True, notify_services=["missing_phone"]))
    assert tracker.sink.pending == {}


@pytest.mark.asyncio
async def test_reschedule_skips_taken_days(tracker):
    tomorrow = dt_util.now().date() + timedelta(days=1)
    tracker.store.insert(DoseRecord(day=tomorrow, morning_taken=True))
    tracker.reschedule_all()
    assert notification_identifier(Period.MORNING, tomorrow) not in tracker.sink.pending
    assert notification_identifier(Period.EVENING, tomorrow) in tracker.sink.pending


@pytest.mark.asyncio
async def test_reschedule_with_unreadable_store_schedules_everything(hass):
    tracker = PillTracker(hass, ReminderSettings(notifications_enabled=True))
    # store never loaded
    tracker.reschedule_all()
    assert _future_ids() <= set(tracker.sink.pending)
    tracker.async_shutdown()


@pytest.mark.asyncio
async def test_toggle_today_cancels_reminder(tracker):
    cancelled = []
    tracker.sink.cancel_pending = cancelled.extend
    today = dt_util.now().date()

    tracker.async_toggle(Period.MORNING)
    assert cancelled == [notification_identifier(Period.MORNING, today)]

    # untaking does not cancel again
    tracker.async_toggle(Period.MORNING)
    assert len(cancelled) == 1


@pytest.mark.asyncio
async def test_untaking_today_rearms_reminder(tracker):
    tracker.async_apply_settings(ReminderSettings(notifications_enabled=True, evening_hour=23, evening_minute=59))
    today = dt_util.now().date()
    evening = notification_identifier(Period.EVENING, today)
    expected = fire_time(today, 23, 59) > dt_util.now()
    assert (evening in tracker.sink.pending) is expected

    tracker.async_toggle(Period.EVENING)
    assert evening not in tracker.sink.pending

    tracker.async_toggle(Period.EVENING)
    assert tracker.store.get(today).evening_taken is False
    assert (evening in tracker.sink.pending) is expected
    assert _future_ids() <= set(tracker.sink.pending)


@pytest.mark.asyncio
async def test_deliver_suppressed_when_taken(hass, tracker):
    tracker.sink.async_send = AsyncMock()
    today = dt_util.now().date()
    tracker.async_toggle(Period.MORNING)

    tracker._deliver(_entry(Period.MORNING, today))
    await hass.async_block_till_done()
    tracker.sink.async_send.assert_not_called()

    evening = _entry(Period.EVENING, today, 21)
    tracker._deliver(evening)
    await hass.async_block_till_done()
    tracker.sink.async_send.assert_called_once_with(evening)


@pytest.mark.asyncio
async def test_deliver_suppressed_when_store_unreadable(hass):
    tracker = PillTracker(hass, ReminderSettings(notifications_enabled=True))
    tracker.sink.async_send = AsyncMock()
    tracker._deliver(_entry(Period.MORNING, dt_util.now().date()))
    await hass.async_block_till_done()
    tracker.sink.async_send.assert_not_called()


@pytest.mark.asyncio
async def test_locked_toggle_is_deferred_then_confirmed(hass, tracker):
    yesterday = dt_util.now().date() - timedelta(days=1)

    assert tracker.async_toggle(Period.EVENING, yesterday) is ToggleResult.LOCKED
    assert tracker.pending_toggle == PendingToggle(period=Period.EVENING, day=yesterday)
    assert tracker.store.get(yesterday) is None
    await hass.async_block_till_done()

    assert tracker.confirm_unlock() is ToggleResult.APPLIED
    assert tracker.pending_toggle is None
    assert not tracker.lock.locked
    assert tracker.store.get(yesterday).evening_taken is True


@pytest.mark.asyncio
async def test_locked_toggle_cancelled(hass, tracker):
    yesterday = dt_util.now().date() - timedelta(days=1)
    tracker.async_toggle(Period.MORNING, yesterday)
    tracker.cancel_unlock()
    await hass.async_block_till_done()

    assert tracker.pending_toggle is None
    assert tracker.lock.locked
    assert tracker.store.get(yesterday) is None


@pytest.mark.asyncio
async def test_confirm_without_pending_only_unlocks(hass, tracker):
    assert tracker.confirm_unlock() is None
    assert not tracker.lock.locked
    assert tracker.store.query_all() == []
    await hass.async_block_till_done()


@pytest.mark.asyncio
async def test_mark_taken_never_untakes(tracker):
    tracker.async_mark_taken(Period.EVENING)
    tracker.async_mark_taken(Period.EVENING)
    assert tracker.store.get(dt_util.now()).evening_taken is True


@pytest.mark.asyncio
async def test_settings_drive_history_lock(tracker):
    tracker.async_apply_settings(ReminderSettings(notifications_enabled=True, history_locked=False))
    assert not tracker.lock.locked
    tracker.async_apply_settings(ReminderSettings(notifications_enabled=True, history_locked=True))
    assert tracker.lock.locked


@pytest.mark.asyncio
async def test_activate_relocks_expired_unlock(tracker):
    tracker.lock.unlock(now=dt_util.utcnow().timestamp() - 3600)
    tracker.async_activate()
    assert tracker.lock.locked


@pytest.mark.asyncio
async def test_settings_relock_again_after_timer_expired(hass, tracker):
    tracker.async_apply_settings(ReminderSettings(notifications_enabled=True, history_locked=False))
    assert not tracker.lock.locked

    async_fire_time_changed(hass, dt_util.utcnow() + timedelta(seconds=RELOCK_SECONDS + 1))
    await hass.async_block_till_done()
    assert tracker.lock.locked

    # same option value as before, but the lock moved on its own
    tracker.async_apply_settings(ReminderSettings(notifications_enabled=True, history_locked=False, morning_hour=8))
    assert not tracker.lock.locked
    assert tracker.lock.timer_armed


@pytest.mark.asyncio
async def test_midnight_rolls_schedule_and_relocks(hass, tracker):
    tracker.async_start()
    tracker.lock.unlock(now=dt_util.utcnow().timestamp() - 3600)
    # leave only the expiry check to relock
    tracker.lock.async_shutdown()
    tracker.sink.remove_all_pending()

    today = dt_util.now().date()
    new_day = today + timedelta(days=SCHEDULE_DAYS)
    next_midnight = dt_util.start_of_local_day() + timedelta(days=1)
    async_fire_time_changed(hass, next_midnight + timedelta(seconds=1))
    await hass.async_block_till_done()

    pending = set(tracker.sink.pending)
    assert {notification_identifier(period, new_day) for period in Period} <= pending
    assert not {notification_identifier(period, today) for period in Period} & pending
    assert tracker.lock.locked
