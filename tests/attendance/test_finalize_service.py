from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone

from staff_attendance.attendance.finalize_service import DayFinalizeService, elect_representative
from staff_attendance.attendance.in_memory_attendance_repository import InMemoryAttendanceRepository
from staff_attendance.attendance.model import AttendanceRecord
from staff_attendance.core.enums import AttendanceStatus, ErrorKind
from staff_attendance.core.exceptions import RemoteStoreError
from staff_attendance.core.result import Result, ResultError

D = date(2026, 2, 1)
FIXED_NOW = datetime(2026, 2, 1, 18, 30, tzinfo=timezone.utc)


class FlakyRepository(InMemoryAttendanceRepository):
    """In-memory store whose upsert misbehaves for chosen staff ids."""

    def __init__(self, records, *, error_for=(), raise_for=()):
        super().__init__(records)
        self.error_for = set(error_for)
        self.raise_for = set(raise_for)
        self.upserts: list[str] = []

    async def upsert(self, record):
        self.upserts.append(record.staff_id)
        if record.staff_id in self.raise_for:
            raise RemoteStoreError("Forbidden", status=403)
        if record.staff_id in self.error_for:
            return Result.err(ResultError(kind=ErrorKind.CONFLICT, message="ETag conflict"))
        return await super().upsert(record)


def run(coro):
    return asyncio.run(coro)


def rec(staff_id: str, **kw) -> AttendanceRecord:
    return AttendanceRecord(staff_id=staff_id, record_date=D, status=AttendanceStatus.ON_DUTY, **kw)


def listed(repo) -> list[AttendanceRecord]:
    return run(repo.list_by_date(D)).value


def test_finalize_marks_only_smallest_staff_id():
    repo = InMemoryAttendanceRepository([rec("S003"), rec("S001"), rec("S002")])
    svc = DayFinalizeService(repo, clock=lambda: FIXED_NOW)

    assert run(svc.finalize_day(D, "admin")).is_ok

    finalized = [r for r in listed(repo) if r.is_finalized]
    assert [r.staff_id for r in finalized] == ["S001"]
    assert finalized[0].finalized_at == FIXED_NOW
    assert finalized[0].finalized_by == "admin"
    assert run(svc.get_day_finalized_state(D)).value is True


def test_finalize_clears_stale_flags_on_other_records():
    stale = dict(is_finalized=True, finalized_at=FIXED_NOW, finalized_by="old")
    repo = InMemoryAttendanceRepository([rec("S001"), rec("S002", **stale), rec("S003", **stale)])
    svc = DayFinalizeService(repo)

    assert run(svc.finalize_day(D, "admin")).is_ok

    by_id = {r.staff_id: r for r in listed(repo)}
    assert by_id["S001"].is_finalized
    for sid in ("S002", "S003"):
        assert not by_id[sid].is_finalized
        assert by_id[sid].finalized_at is None and by_id[sid].finalized_by is None


def test_finalize_keeps_attendance_fields():
    repo = InMemoryAttendanceRepository([rec("S001", note="早番", late_minutes=5)])

    run(DayFinalizeService(repo).finalize_day(D, "admin"))

    (r,) = listed(repo)
    assert r.note == "早番" and r.late_minutes == 5


def test_finalize_empty_day_is_not_found():
    repo = InMemoryAttendanceRepository()

    result = run(DayFinalizeService(repo).finalize_day(D, "admin"))

    assert result.error.kind == ErrorKind.NOT_FOUND
    assert "確定できません" in result.error.message
    assert listed(repo) == []


def test_finalize_requires_finalized_by():
    repo = InMemoryAttendanceRepository([rec("S001")])

    result = run(DayFinalizeService(repo).finalize_day(D, "  "))

    assert result.error.kind == ErrorKind.VALIDATION
    assert not any(r.is_finalized for r in listed(repo))


def test_unfinalize_clears_every_flag():
    stale = dict(is_finalized=True, finalized_at=FIXED_NOW, finalized_by="admin")
    repo = InMemoryAttendanceRepository([rec("S001", **stale), rec("S002", **stale), rec("S003")])
    svc = DayFinalizeService(repo)

    assert run(svc.unfinalize_day(D)).is_ok

    assert not any(r.is_finalized for r in listed(repo))
    assert run(svc.get_day_finalized_state(D)).value is False


def test_unfinalize_without_finalized_records_writes_nothing():
    repo = FlakyRepository([rec("S001"), rec("S002")])

    assert run(DayFinalizeService(repo).unfinalize_day(D)).is_ok
    assert repo.upserts == []


def test_every_write_attempted_and_exception_reported_first():
    repo = FlakyRepository([rec("S001"), rec("S002"), rec("S003")], error_for={"S001"}, raise_for={"S003"})

    result = run(DayFinalizeService(repo).finalize_day(D, "admin"))

    assert sorted(repo.upserts) == ["S001", "S002", "S003"]
    assert result.error.kind == ErrorKind.FORBIDDEN
    assert result.error.op == "finalize"


def test_error_result_surfaced_when_nothing_raised():
    repo = FlakyRepository([rec("S001"), rec("S002")], error_for={"S002"})

    result = run(DayFinalizeService(repo).finalize_day(D, "admin"))

    assert result.error.kind == ErrorKind.CONFLICT


def test_rerun_after_partial_failure_converges():
    repo = FlakyRepository([rec("S001"), rec("S002", is_finalized=True)], error_for={"S001"})
    svc = DayFinalizeService(repo)

    assert not run(svc.finalize_day(D, "admin")).is_ok
    repo.error_for.clear()
    assert run(svc.finalize_day(D, "admin")).is_ok

    assert [r.staff_id for r in listed(repo) if r.is_finalized] == ["S001"]


def test_elect_representative():
    assert elect_representative([rec("S010"), rec("S002"), rec("S100")]).staff_id == "S002"
