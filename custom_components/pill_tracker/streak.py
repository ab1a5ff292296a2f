"""Consecutive-completion streak."""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable

from .models import DoseRecord, normalize_day


def calculate_streak(records: Iterable[DoseRecord], today: date | datetime) -> int:
    """Count consecutive fully taken days ending today or yesterday.

    An incomplete today does not break the streak; counting then starts
    from yesterday. The first missing or partial day ends the walk.
    """
    by_day = {r.day: r for r in records}
    day = normalize_day(today)

    def _complete(d: date) -> bool:
        record = by_day.get(d)
        return record is not None and record.is_complete

    if not _complete(day):
        day -= timedelta(days=1)

    count = 0
    while _complete(day):
        count += 1
        day -= timedelta(days=1)
    return count
