from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone

from staff_attendance.attendance.bulk_service import BulkApplyService, BulkValue
from staff_attendance.attendance.fanout import SettledSummary
from staff_attendance.attendance.in_memory_attendance_repository import InMemoryAttendanceRepository
from staff_attendance.attendance.model import AttendanceRecord
from staff_attendance.core.enums import AttendanceStatus, ErrorKind
from staff_attendance.core.result import Result, ResultError

D = date(2026, 2, 1)
NINE = datetime(2026, 2, 1, 0, 0, tzinfo=timezone.utc)


class PartlyFailingRepository(InMemoryAttendanceRepository):
    def __init__(self, records=None, *, error_for=(), raise_for=()):
        super().__init__(records)
        self.error_for = set(error_for)
        self.raise_for = set(raise_for)

    async def get_by_key(self, key):
        if key.endswith("#S404"):
            return Result.err(ResultError(kind=ErrorKind.FORBIDDEN, message="権限がありません（403）。"))
        return await super().get_by_key(key)

    async def upsert(self, record):
        if record.staff_id in self.raise_for:
            raise RuntimeError("socket closed")
        if record.staff_id in self.error_for:
            return Result.err(ResultError(kind=ErrorKind.CONFLICT, message="ETag conflict"))
        return await super().upsert(record)


def run(coro):
    return asyncio.run(coro)


def rec(staff_id: str, **kw) -> AttendanceRecord:
    return AttendanceRecord(staff_id=staff_id, record_date=D, status=AttendanceStatus.ON_DUTY, **kw)


def test_merge_blank_note_keeps_existing():
    merged = BulkApplyService.merge(rec("S001", note="A"), BulkValue(status=AttendanceStatus.ABSENT, note="  "))

    assert merged.note == "A"
    assert merged.status == AttendanceStatus.ABSENT


def test_merge_non_blank_note_overwrites():
    merged = BulkApplyService.merge(rec("S001", note="A"), BulkValue(status=AttendanceStatus.ON_DUTY, note="X"))

    assert merged.note == "X"


def test_merge_always_overwrites_check_in():
    merged = BulkApplyService.merge(rec("S001", check_in_at=NINE), BulkValue(status=AttendanceStatus.ABSENT))

    assert merged.check_in_at is None


def test_merge_keeps_other_fields():
    base = rec("S001", late_minutes=10, is_finalized=True, finalized_by="admin")

    merged = BulkApplyService.merge(base, BulkValue(status=AttendanceStatus.OUT_ON_ERRAND))

    assert merged.late_minutes == 10
    assert merged.is_finalized and merged.finalized_by == "admin"


def test_apply_writes_existing_and_new_records():
    repo = InMemoryAttendanceRepository([rec("S001", note="A")])
    value = BulkValue(status=AttendanceStatus.ON_DUTY, check_in_at=NINE, note="")

    result = run(BulkApplyService(repo).apply(D, ["S001", "S002", "S002"], value))

    assert result.value == SettledSummary(total=2, succeeded=2, rejected=0, failed=0)
    by_id = {r.staff_id: r for r in run(repo.list_by_date(D)).value}
    assert by_id["S001"].note == "A"
    assert by_id["S002"].note is None
    assert by_id["S002"].check_in_at == NINE


def test_apply_reports_counts_on_partial_failure():
    repo = PartlyFailingRepository(error_for={"S002"}, raise_for={"S003"})

    result = run(BulkApplyService(repo).apply(D, ["S001", "S002", "S003"], BulkValue(status=AttendanceStatus.ABSENT)))

    assert not result.is_ok
    assert result.error.kind == ErrorKind.CONFLICT
    assert result.error.details == SettledSummary(total=3, succeeded=1, rejected=1, failed=1)
    assert "成功 1 件" in result.error.message
    # the successful write was not rolled back
    assert [r.staff_id for r in run(repo.list_by_date(D)).value] == ["S001"]


def test_apply_only_exceptions_is_unknown():
    repo = PartlyFailingRepository(raise_for={"S001"})

    result = run(BulkApplyService(repo).apply(D, ["S001"], BulkValue(status=AttendanceStatus.ABSENT)))

    assert result.error.kind == ErrorKind.UNKNOWN


def test_apply_empty_selection_is_validation():
    repo = InMemoryAttendanceRepository()

    result = run(BulkApplyService(repo).apply(D, [], BulkValue(status=AttendanceStatus.ABSENT)))

    assert result.error.kind == ErrorKind.VALIDATION


def test_merge_writes_note_as_given():
    merged = BulkApplyService.merge(rec("S001", note="A"), BulkValue(status=AttendanceStatus.ON_DUTY, note="  X "))

    assert merged.note == "  X "


def test_apply_merges_onto_stored_record():
    stored = rec("S001", note="keep", late_minutes=7, check_out_at=NINE, is_finalized=True, finalized_by="admin")
    repo = InMemoryAttendanceRepository([stored])

    result = run(BulkApplyService(repo).apply(D, ["S001"], BulkValue(status=AttendanceStatus.ABSENT)))

    assert result.is_ok
    (r,) = run(repo.list_by_date(D)).value
    assert r.status == AttendanceStatus.ABSENT
    assert r.note == "keep"
    assert r.late_minutes == 7
    assert r.check_out_at == NINE
    assert r.is_finalized and r.finalized_by == "admin"


def test_failed_lookup_skips_the_write():
    repo = PartlyFailingRepository([rec("S404", note="keep")])

    result = run(BulkApplyService(repo).apply(D, ["S001", "S404"], BulkValue(status=AttendanceStatus.ABSENT)))

    assert result.error.kind == ErrorKind.FORBIDDEN
    assert result.error.details == SettledSummary(total=2, succeeded=1, rejected=0, failed=1)
    by_id = {r.staff_id: r for r in run(repo.list_by_date(D)).value}
    assert by_id["S404"].status == AttendanceStatus.ON_DUTY
    assert by_id["S404"].note == "keep"
