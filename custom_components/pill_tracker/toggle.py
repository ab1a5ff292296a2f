"""Apply a dose toggle to the record store."""
from __future__ import annotations

from datetime import date, datetime
from typing import Callable, Optional, Protocol

from homeassistant.core import callback

from .models import DoseRecord, Period, ToggleResult, normalize_day
from .store import DoseRecordStore


class _Lock(Protocol):
    @property
    def locked(self) -> bool: ...


@callback
def toggle_dose(
    store: DoseRecordStore,
    lock: _Lock,
    period: Period,
    day: date | datetime,
    *,
    today: date | datetime,
    on_taken_today: Optional[Callable[[Period, date], None]] = None,
) -> ToggleResult:
    """Flip one period of one day.

    Past and future days are refused while the history lock is engaged.
    A new record starts with only the toggled period taken.
    """
    day = normalize_day(day)
    today = normalize_day(today)
    if day != today and lock.locked:
        return ToggleResult.LOCKED

    record = store.get(day)
    if record is None:
        record = DoseRecord(day=day)
        record.set_taken(period, True)
        store.insert(record)
    else:
        record.set_taken(period, not record.is_taken(period))
        store.update(record)

    if day == today and record.is_taken(period) and on_taken_today is not None:
        on_taken_today(period, day)
    return ToggleResult.APPLIED
