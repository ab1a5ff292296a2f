"""Timed lock guarding edits to past days."""
from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Callable, Optional

from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.dispatcher import async_dispatcher_send
from homeassistant.helpers.event import async_call_later
from homeassistant.helpers.storage import Store
from homeassistant.util import dt as dt_util

from .const import (
    DOMAIN,
    LOCK_STORE_KEY,
    LOCK_STORE_VERSION,
    RELOCK_SECONDS,
    SAVE_DELAY,
    SIGNAL_LOCK_UPDATED,
)

_LOGGER = logging.getLogger(__name__)


class HistoryLock:
    """Locked/Unlocked state machine with an automatic relock timer.

    While unlocked, ``unlocked_at`` always holds the unlock time in epoch
    seconds; relocking clears it. At most one relock timer is armed, and
    unlocking again while unlocked leaves the window as it is.
    """

    def __init__(self, hass: HomeAssistant, relock_after: float = RELOCK_SECONDS) -> None:
        self.hass = hass
        self._store: Store = Store(hass, LOCK_STORE_VERSION, LOCK_STORE_KEY)
        self._relock_after = relock_after
        self._locked = True
        self._unlocked_at: Optional[float] = None
        self._relock_unsub: Optional[Callable[[], None]] = None

    @property
    def locked(self) -> bool:
        return self._locked

    @property
    def unlocked_at(self) -> Optional[float]:
        return self._unlocked_at

    @property
    def relock_at(self) -> Optional[datetime]:
        if self._unlocked_at is None:
            return None
        return datetime.fromtimestamp(self._unlocked_at + self._relock_after, tz=timezone.utc)

    @property
    def timer_armed(self) -> bool:
        return self._relock_unsub is not None

    async def async_load(self, default_locked: bool = True) -> None:
        data = await self._store.async_load()
        if data is None:
            if not default_locked:
                self.unlock()
            return
        unlocked_at = data.get("unlocked_at")
        if data.get("locked", True) or not isinstance(unlocked_at, (int, float)):
            self._locked = True
            self._unlocked_at = None
            return
        self._locked = False
        self._unlocked_at = float(unlocked_at)
        self.check_expired()

    def _data_to_save(self) -> dict[str, Any]:
        return {"locked": self._locked, "unlocked_at": self._unlocked_at}

    def _changed(self) -> None:
        self._store.async_delay_save(self._data_to_save, SAVE_DELAY)
        async_dispatcher_send(self.hass, SIGNAL_LOCK_UPDATED)

    @staticmethod
    def _now(now: Optional[float]) -> float:
        return dt_util.utcnow().timestamp() if now is None else now

    def _cancel_timer(self) -> None:
        if self._relock_unsub:
            self._relock_unsub()
            self._relock_unsub = None

    def _arm(self, delay: float) -> None:
        self._cancel_timer()
        self._relock_unsub = async_call_later(self.hass, delay, self._handle_timer)

    @callback
    def _handle_timer(self, _now) -> None:
        self._relock_unsub = None
        _LOGGER.debug("%s: relock timer expired", DOMAIN)
        self.relock()

    @callback
    def unlock(self, now: Optional[float] = None) -> None:
        if not self._locked:
            # an open window is not extended
            return
        self._locked = False
        self._unlocked_at = self._now(now)
        self._arm(self._relock_after)
        _LOGGER.debug("%s: history unlocked for %s seconds", DOMAIN, self._relock_after)
        self._changed()

    @callback
    def relock(self) -> None:
        self._cancel_timer()
        was_locked = self._locked
        self._locked = True
        self._unlocked_at = None
        if not was_locked:
            _LOGGER.debug("%s: history locked", DOMAIN)
        self._changed()

    @callback
    def check_expired(self, now: Optional[float] = None) -> None:
        """Relock if the unlock window already elapsed, else re-arm for the rest.

        Covers the case where the relock timer never got to run.
        """
        if self._locked or self._unlocked_at is None:
            return
        elapsed = self._now(now) - self._unlocked_at
        if elapsed >= self._relock_after:
            self.relock()
        else:
            self._arm(self._relock_after - elapsed)

    @callback
    def async_shutdown(self) -> None:
        self._cancel_timer()
