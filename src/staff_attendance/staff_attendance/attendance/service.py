from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable, Iterable, Optional, Sequence

import structlog

from ..common.validators import require_date_order
from ..core.constants import DEFAULT_RANGE_TOP
from ..core.enums import ErrorKind
from ..core.result import Result, ResultError
from ..staff.model import Staff
from .bulk_service import BulkApplyService, BulkValue
from .errors import hint_for, to_result_error
from .fanout import SettledSummary
from .finalize_service import DayFinalizeService
from .model import AttendanceRecord, build_key
from .repository import AttendanceRepository
from .rows import AttendanceRow, build_staff_attendance_rows

logger = structlog.get_logger(__name__)

# Injected by the caller (UI layer, controller) instead of a global notifier.
ErrorHandler = Callable[[ResultError], None]

DEFAULT_READ_ONLY_REASON = "読み取り専用モードです。"


@dataclass
class WriteGate:
    """Write permission shared by every store built from one container.

    Starts from configuration. A forbidden error closes it for the rest of
    the process, so later stores start read-only without asking the remote
    store again.
    """

    enabled: bool
    reason: Optional[str] = None

    def close(self, reason: str) -> None:
        self.enabled = False
        self.reason = reason


class AttendanceDayStore:
    """Read/write façade over the attendance port for one record date.

    Holds the visible list for the date. Every successful write is followed
    by a reload so callers never look at a stale list. `saving` stays true
    while at least one write is in flight (counter, so overlapping writes
    are tracked correctly).

    The write gate comes from configuration (narrowed by a shared WriteGate
    when given) and is read once per instance. A forbidden error flips the
    instance to read-only instead of retrying and closes the shared gate.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        record_date: date,
        *,
        write_enabled: bool,
        read_only_reason: Optional[str] = None,
        on_error: Optional[ErrorHandler] = None,
        finalize_service: Optional[DayFinalizeService] = None,
        bulk_service: Optional[BulkApplyService] = None,
        gate: Optional[WriteGate] = None,
    ):
        self._attendance = attendance
        self._gate = gate
        self._on_error = on_error
        self._finalize = finalize_service or DayFinalizeService(attendance)
        self._bulk = bulk_service or BulkApplyService(attendance)
        self._saving_count = 0
        self._loading_count = 0

        self.record_date = record_date
        self.items: list[AttendanceRecord] = []
        self.error: Optional[str] = None
        self.last_error: Optional[ResultError] = None
        if gate is not None:
            write_enabled = write_enabled and gate.enabled
            read_only_reason = read_only_reason or gate.reason
        self.write_enabled = bool(write_enabled)
        self.read_only_reason = None if self.write_enabled else (read_only_reason or DEFAULT_READ_ONLY_REASON)

    @property
    def port(self) -> AttendanceRepository:
        return self._attendance

    @property
    def is_loading(self) -> bool:
        return self._loading_count > 0

    @property
    def saving(self) -> bool:
        return self._saving_count > 0

    def _surface(self, error: ResultError) -> None:
        self.last_error = error
        self.error = hint_for(error)
        if error.kind == ErrorKind.FORBIDDEN and self.write_enabled:
            self.write_enabled = False
            self.read_only_reason = hint_for(error)
            if self._gate is not None:
                self._gate.close(self.read_only_reason)
            logger.warning("staff_attendance_degraded_read_only", record_date=self.record_date.isoformat())
        if self._on_error is not None:
            self._on_error(error)

    def _blocked(self) -> Result:
        return Result.err(ResultError(kind=ErrorKind.FORBIDDEN, message=self.read_only_reason or DEFAULT_READ_ONLY_REASON))

    async def reload(self, *, abort: Optional[asyncio.Event] = None) -> None:
        """Refetch the date's records. Errors are stored, never raised."""

        self._loading_count += 1
        try:
            try:
                result = await self._attendance.list_by_date(self.record_date, abort=abort)
            except Exception as e:
                result = Result.err(to_result_error(e, "list"))

            if result.is_ok:
                self.items = list(result.value or [])
                self.error = None
                self.last_error = None
            else:
                self._surface(result.error)
        finally:
            self._loading_count -= 1

    async def upsert_one(self, record: AttendanceRecord) -> Optional[Result[None]]:
        """Write one record, then reload. Returns None when writes are disabled."""

        if not self.write_enabled:
            return None

        self._saving_count += 1
        try:
            try:
                result = await self._attendance.upsert(record)
            except Exception as e:
                result = Result.err(to_result_error(e, "upsert"))

            if result.is_ok:
                await self.reload()
            else:
                self._surface(result.error)
            return result
        finally:
            self._saving_count -= 1

    async def remove_one(self, staff_id: str) -> Optional[Result[None]]:
        if not self.write_enabled:
            return None

        self._saving_count += 1
        try:
            try:
                result = await self._attendance.remove(build_key(self.record_date, staff_id))
            except Exception as e:
                result = Result.err(to_result_error(e, "remove"))

            if result.is_ok:
                await self.reload()
            else:
                self._surface(result.error)
            return result
        finally:
            self._saving_count -= 1

    async def bulk_apply(self, selected_ids: Iterable[str], value: BulkValue) -> Result[SettledSummary]:
        if not self.write_enabled:
            return self._blocked()

        self._saving_count += 1
        try:
            try:
                result = await self._bulk.apply(self.record_date, selected_ids, value)
            except Exception as e:
                result = Result.err(to_result_error(e, "bulk"))

            summary = result.value if result.is_ok else (result.error.details if result.error else None)
            if isinstance(summary, SettledSummary) and summary.succeeded > 0:
                await self.reload()
            if not result.is_ok:
                self._surface(result.error)
            return result
        finally:
            self._saving_count -= 1

    async def finalize_day(self, finalized_by: str) -> Result[None]:
        if not self.write_enabled:
            return self._blocked()
        return await self._run_day_protocol(self._finalize.finalize_day(self.record_date, finalized_by))

    async def unfinalize_day(self) -> Result[None]:
        if not self.write_enabled:
            return self._blocked()
        return await self._run_day_protocol(self._finalize.unfinalize_day(self.record_date))

    async def _run_day_protocol(self, protocol: Awaitable[Result[None]]) -> Result[None]:
        self._saving_count += 1
        try:
            try:
                result = await protocol
            except Exception as e:
                result = Result.err(to_result_error(e))

            # A failed run may have applied part of the writes; show what is there.
            await self.reload()
            if not result.is_ok:
                self._surface(result.error)
            return result
        finally:
            self._saving_count -= 1

    async def is_day_finalized(self) -> bool:
        result = await self._finalize.get_day_finalized_state(self.record_date)
        if not result.is_ok:
            self._surface(result.error)
            return False
        return bool(result.value)

    def rows(self, staff: Sequence[Staff]) -> list[AttendanceRow]:
        return build_staff_attendance_rows(staff, self.items, self.record_date)


class AttendanceRangeReader:
    """Admin-side reader for a date range (monthly summary)."""

    def __init__(self, attendance: AttendanceRepository, *, on_error: Optional[ErrorHandler] = None):
        self._attendance = attendance
        self._on_error = on_error
        self.list_items: list[AttendanceRecord] = []
        self.list_loading = False
        self.list_error: Optional[str] = None

    async def fetch_list_by_date_range(
        self,
        date_from: date,
        date_to: date,
        top: int = DEFAULT_RANGE_TOP,
        *,
        abort: Optional[asyncio.Event] = None,
    ) -> Result[list[AttendanceRecord]]:
        self.list_loading = True
        try:
            try:
                require_date_order(date_from, date_to)
                result = await self._attendance.list_by_date_range(date_from, date_to, top, abort=abort)
            except Exception as e:
                result = Result.err(to_result_error(e, "list"))

            if result.is_ok:
                self.list_items = list(result.value or [])
                self.list_error = None
            else:
                # Keep the previous items; a capped range must not look like "no data".
                self.list_error = hint_for(result.error)
                if self._on_error is not None:
                    self._on_error(result.error)
            return result
        finally:
            self.list_loading = False
