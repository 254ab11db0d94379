from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from typing import Callable

import structlog

from ..common.datetime_utils import now_utc
from ..common.validators import require_non_empty
from ..core.exceptions import ValidationError
from ..core.result import Result
from .errors import RESOURCE, to_result_error
from .fanout import first_failure, settle_all, summarize
from .model import AttendanceRecord
from .repository import AttendanceRepository

logger = structlog.get_logger(__name__)


def elect_representative(records: list[AttendanceRecord]) -> AttendanceRecord:
    """The record with the smallest staff_id carries the day's finalization."""

    return min(records, key=lambda r: r.staff_id)


def _cleared(record: AttendanceRecord) -> AttendanceRecord:
    return replace(record, is_finalized=False, finalized_at=None, finalized_by=None)


class DayFinalizeService:
    """Day-level finalize/unfinalize built from single-record upserts.

    The list has no day entity, so "day finalized" lives on one representative
    record per date (smallest staff_id). Every other record of that date keeps
    the finalization fields cleared. An empty day cannot be finalized.

    There is no multi-record transaction: a failed run may leave the day
    partially applied. Running finalize again converges.
    """

    def __init__(self, attendance: AttendanceRepository, *, clock: Callable[[], datetime] = now_utc):
        self._attendance = attendance
        self._clock = clock

    async def _list_sorted(self, record_date: date) -> Result[list[AttendanceRecord]]:
        try:
            listed = await self._attendance.list_by_date(record_date)
        except Exception as e:
            return Result.err(to_result_error(e, "list"))
        if not listed.is_ok:
            return listed
        return Result.ok(sorted(listed.value or [], key=lambda r: r.staff_id))

    async def finalize_day(self, record_date: date, finalized_by: str) -> Result[None]:
        try:
            finalized_by = require_non_empty(finalized_by, "確定者")
        except ValidationError as e:
            return Result.err(to_result_error(e, "finalize"))

        listed = await self._list_sorted(record_date)
        if not listed.is_ok:
            return Result.err(listed.error)
        records = listed.value or []
        if not records:
            return Result.not_found("この日の勤怠記録がないため確定できません", resource=RESOURCE)

        representative = elect_representative(records)
        finalized_at = self._clock()
        updates = [
            replace(r, is_finalized=True, finalized_at=finalized_at, finalized_by=finalized_by)
            if r.staff_id == representative.staff_id
            else _cleared(r)
            for r in records
        ]

        outcomes = await settle_all(self._attendance.upsert(r) for r in updates)
        failure = first_failure(outcomes, op="finalize")
        if failure is not None:
            summary = summarize(outcomes)
            logger.warning(
                "staff_attendance_finalize_partial",
                record_date=record_date.isoformat(),
                total=summary.total,
                rejected=summary.rejected,
                failed=summary.failed,
                kind=failure.kind.value,
            )
            return Result.err(failure)

        logger.info(
            "staff_attendance_day_finalized",
            record_date=record_date.isoformat(),
            representative=representative.staff_id,
            records=len(records),
        )
        return Result.ok(None)

    async def unfinalize_day(self, record_date: date) -> Result[None]:
        listed = await self._list_sorted(record_date)
        if not listed.is_ok:
            return Result.err(listed.error)

        # Normally just the representative; stale flags elsewhere are cleared too.
        finalized = [r for r in listed.value or [] if r.is_finalized]
        if not finalized:
            return Result.ok(None)

        outcomes = await settle_all(self._attendance.upsert(_cleared(r)) for r in finalized)
        failure = first_failure(outcomes, op="unfinalize")
        if failure is not None:
            summary = summarize(outcomes)
            logger.warning(
                "staff_attendance_unfinalize_partial",
                record_date=record_date.isoformat(),
                total=summary.total,
                rejected=summary.rejected,
                failed=summary.failed,
                kind=failure.kind.value,
            )
            return Result.err(failure)

        logger.info("staff_attendance_day_unfinalized", record_date=record_date.isoformat(), records=len(finalized))
        return Result.ok(None)

    async def get_day_finalized_state(self, record_date: date) -> Result[bool]:
        """Recomputed on each call, never cached."""

        listed = await self._list_sorted(record_date)
        if not listed.is_ok:
            return Result.err(listed.error)
        return Result.ok(any(r.is_finalized for r in listed.value or []))
