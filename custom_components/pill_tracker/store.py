"""Dose record store."""
from __future__ import annotations

from datetime import date
from typing import Any, Dict, List

from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.dispatcher import async_dispatcher_send
from homeassistant.helpers.storage import Store

from .const import (
    RECORDS_STORE_KEY,
    RECORDS_STORE_VERSION,
    SAVE_DELAY,
    SIGNAL_RECORDS_UPDATED,
)
from .models import DoseRecord, normalize_day


class DoseRecordStore:
    """Per-day dose records keyed by calendar day."""

    def __init__(self, hass: HomeAssistant) -> None:
        self.hass = hass
        self._store: Store = Store(hass, RECORDS_STORE_VERSION, RECORDS_STORE_KEY)
        self._records: Dict[date, DoseRecord] = {}
        self._loaded = False

    async def async_load(self) -> None:
        data = await self._store.async_load() or {}
        records: Dict[date, DoseRecord] = {}
        # Basic validation; the first row for a day wins
        for row in data.get("records", []):
            if not isinstance(row, dict):
                continue
            record = DoseRecord.from_dict(row)
            if record is None or record.day in records:
                continue
            records[record.day] = record
        self._records = records
        self._loaded = True

    def _data_to_save(self) -> Dict[str, Any]:
        return {"records": [r.as_dict() for r in sorted(self._records.values(), key=lambda r: r.day)]}

    async def async_save(self) -> None:
        await self._store.async_save(self._data_to_save())

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            raise HomeAssistantError("Dose records have not been loaded")

    def _changed(self, record: DoseRecord) -> None:
        self._store.async_delay_save(self._data_to_save, SAVE_DELAY)
        async_dispatcher_send(self.hass, SIGNAL_RECORDS_UPDATED, record.day)

    def insert(self, record: DoseRecord) -> None:
        self._ensure_loaded()
        if record.day in self._records:
            raise HomeAssistantError(f"A record for {record.day} already exists")
        self._records[record.day] = record
        self._changed(record)

    def update(self, record: DoseRecord) -> None:
        self._ensure_loaded()
        self._records[record.day] = record
        self._changed(record)

    def get(self, day) -> DoseRecord | None:
        self._ensure_loaded()
        return self._records.get(normalize_day(day))

    def query_all(self) -> List[DoseRecord]:
        self._ensure_loaded()
        return list(self._records.values())
