from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Iterable, Optional

import structlog

from ..core.enums import AttendanceStatus, ErrorKind
from ..core.result import Result, ResultError
from .fanout import SettledSummary, settle_all, summarize
from .model import AttendanceRecord, build_key
from .repository import AttendanceRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BulkValue:
    """Value edited once in the bulk drawer and applied to every selected row."""

    status: AttendanceStatus
    check_in_at: Optional[datetime] = None
    note: str = ""


class BulkApplyService:
    def __init__(self, attendance: AttendanceRepository):
        self._attendance = attendance

    @staticmethod
    def merge(base: AttendanceRecord, value: BulkValue) -> AttendanceRecord:
        """Sparse merge of the bulk value into one record.

        Status and check-in are always overwritten (even to None). The note is
        only overwritten by a non-blank input, and then as given; a blank input
        keeps the note.
        """

        has_note = bool(value.note and value.note.strip())
        return replace(
            base,
            status=value.status,
            check_in_at=value.check_in_at,
            note=value.note if has_note else base.note,
        )

    async def _apply_one(self, record_date: date, staff_id: str, value: BulkValue) -> Result[None]:
        # Merge onto the stored record; a missing one starts fresh.
        found = await self._attendance.get_by_key(build_key(record_date, staff_id))
        if not found.is_ok:
            return Result.err(found.error)
        base = found.value or AttendanceRecord(staff_id=staff_id, record_date=record_date, status=value.status)
        return await self._attendance.upsert(self.merge(base, value))

    async def apply(
        self,
        record_date: date,
        selected_ids: Iterable[str],
        value: BulkValue,
    ) -> Result[SettledSummary]:
        staff_ids = sorted({s for s in selected_ids if s})
        if not staff_ids:
            return Result.validation("一括入力の対象が選択されていません")

        outcomes = await settle_all(self._apply_one(record_date, sid, value) for sid in staff_ids)
        summary = summarize(outcomes)
        if summary.rejected == 0 and summary.failed == 0:
            logger.info("staff_attendance_bulk_applied", record_date=record_date.isoformat(), total=summary.total)
            return Result.ok(summary)

        first_error = next((o.error for o in outcomes if not isinstance(o, BaseException) and not o.is_ok), None)
        kind = first_error.kind if first_error is not None else ErrorKind.UNKNOWN
        logger.warning(
            "staff_attendance_bulk_partial",
            record_date=record_date.isoformat(),
            total=summary.total,
            succeeded=summary.succeeded,
            rejected=summary.rejected,
            failed=summary.failed,
            kind=kind.value,
        )
        return Result.err(
            ResultError(
                kind=kind,
                message=(
                    f"一括保存に失敗しました（成功 {summary.succeeded} 件 / "
                    f"例外 {summary.rejected} 件 / エラー {summary.failed} 件）"
                ),
                op="bulk",
                details=summary,
            )
        )
