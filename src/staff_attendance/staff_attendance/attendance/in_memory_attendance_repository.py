from __future__ import annotations

import asyncio
from datetime import date
from typing import Optional

from ..core.constants import DEFAULT_RANGE_TOP, MAX_RANGE_PAGES
from ..core.exceptions import ValidationError
from ..core.result import Result
from .errors import range_cap_exceeded, to_result_error
from .model import AttendanceCounts, AttendanceRecord, build_map_key, count_records, parse_key
from .repository import AttendanceRepository


class InMemoryAttendanceRepository(AttendanceRepository):
    """Local adapter for demo mode and tests.

    One dict entry per (record_date, staff_id); an upsert replaces the entry.
    Range listings return every match but refuse at the same row cap as the
    remote adapter (top * MAX_RANGE_PAGES).
    """

    def __init__(self, records: Optional[list[AttendanceRecord]] = None):
        self._by_key: dict[str, AttendanceRecord] = {}
        for r in records or []:
            self._by_key[build_map_key(r.record_date, r.staff_id)] = r

    async def upsert(self, record: AttendanceRecord) -> Result[None]:
        self._by_key[build_map_key(record.record_date, record.staff_id)] = record
        return Result.ok(None)

    async def remove(self, key: str) -> Result[None]:
        try:
            record_date, staff_id = parse_key(key)
        except ValidationError as e:
            return Result.err(to_result_error(e, op="remove"))

        map_key = build_map_key(record_date, staff_id)
        if map_key not in self._by_key:
            return Result.not_found("StaffAttendance not found", resource="StaffAttendance")
        del self._by_key[map_key]
        return Result.ok(None)

    async def get_by_key(self, key: str) -> Result[Optional[AttendanceRecord]]:
        try:
            record_date, staff_id = parse_key(key)
        except ValidationError as e:
            return Result.err(to_result_error(e))
        return Result.ok(self._by_key.get(build_map_key(record_date, staff_id)))

    async def list_by_date(
        self,
        record_date: date,
        *,
        abort: Optional[asyncio.Event] = None,
    ) -> Result[list[AttendanceRecord]]:
        if abort is not None and abort.is_set():
            return Result.ok([])
        items = [r for r in self._by_key.values() if r.record_date == record_date]
        items.sort(key=lambda r: r.staff_id)
        return Result.ok(items)

    async def list_by_date_range(
        self,
        date_from: date,
        date_to: date,
        top: int = DEFAULT_RANGE_TOP,
        *,
        abort: Optional[asyncio.Event] = None,
    ) -> Result[list[AttendanceRecord]]:
        if abort is not None and abort.is_set():
            return Result.ok([])
        items = [r for r in self._by_key.values() if date_from <= r.record_date <= date_to]
        if len(items) >= int(top) * MAX_RANGE_PAGES:
            return Result.err(range_cap_exceeded(int(top), MAX_RANGE_PAGES))
        # record_date desc, staff_id asc
        items.sort(key=lambda r: r.staff_id)
        items.sort(key=lambda r: r.record_date, reverse=True)
        return Result.ok(items)

    async def count_by_date(self, record_date: date) -> Result[AttendanceCounts]:
        listed = await self.list_by_date(record_date)
        if not listed.is_ok:
            return Result.err(listed.error)
        return Result.ok(count_records(listed.value or []))
