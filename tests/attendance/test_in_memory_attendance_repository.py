from __future__ import annotations

import asyncio
from datetime import date

from staff_attendance.attendance.in_memory_attendance_repository import InMemoryAttendanceRepository
from staff_attendance.attendance.model import AttendanceRecord, build_key
from staff_attendance.core.enums import AttendanceStatus, ErrorKind

D1 = date(2026, 2, 1)
D2 = date(2026, 2, 2)


def run(coro):
    return asyncio.run(coro)


def rec(staff_id: str, d: date = D1, status: AttendanceStatus = AttendanceStatus.ON_DUTY, **kw) -> AttendanceRecord:
    return AttendanceRecord(staff_id=staff_id, record_date=d, status=status, **kw)


def test_upsert_replaces_by_date_and_staff():
    repo = InMemoryAttendanceRepository()

    run(repo.upsert(rec("S001")))
    run(repo.upsert(rec("S001", status=AttendanceStatus.ABSENT)))
    run(repo.upsert(rec("S001", D2)))

    day1 = run(repo.list_by_date(D1)).value
    assert [(r.staff_id, r.status) for r in day1] == [("S001", AttendanceStatus.ABSENT)]
    assert len(run(repo.list_by_date(D2)).value) == 1


def test_list_by_date_sorted_by_staff_id():
    repo = InMemoryAttendanceRepository([rec("S003"), rec("S001"), rec("S002")])

    assert [r.staff_id for r in run(repo.list_by_date(D1)).value] == ["S001", "S002", "S003"]


def test_remove_missing_is_not_found():
    repo = InMemoryAttendanceRepository([rec("S001")])

    assert run(repo.remove(build_key(D1, "S001"))).is_ok
    missing = run(repo.remove(build_key(D1, "S001")))

    assert missing.error.kind == ErrorKind.NOT_FOUND
    assert run(repo.list_by_date(D1)).value == []


def test_malformed_key_is_validation():
    repo = InMemoryAttendanceRepository()

    assert run(repo.remove("2026-02-01")).error.kind == ErrorKind.VALIDATION
    assert run(repo.get_by_key("not-a-date#S001")).error.kind == ErrorKind.VALIDATION


def test_get_by_key():
    repo = InMemoryAttendanceRepository([rec("S001", note="早番")])

    assert run(repo.get_by_key(build_key(D1, "S001"))).value.note == "早番"
    assert run(repo.get_by_key(build_key(D1, "S002"))).value is None


def test_count_by_date():
    repo = InMemoryAttendanceRepository(
        [
            rec("S001"),
            rec("S002", status=AttendanceStatus.ABSENT),
            rec("S003", status=AttendanceStatus.OUT_ON_ERRAND),
            rec("S004"),
            rec("S005", D2),
        ]
    )

    counts = run(repo.count_by_date(D1)).value

    assert (counts.on_duty, counts.out, counts.absent, counts.total) == (2, 1, 1, 4)


def test_range_ordered_date_desc_staff_asc():
    repo = InMemoryAttendanceRepository([rec("S002", D1), rec("S001", D1), rec("S001", D2), rec("S009", date(2026, 3, 1))])

    listed = run(repo.list_by_date_range(D1, date(2026, 2, 28))).value

    assert [(r.record_date, r.staff_id) for r in listed] == [(D2, "S001"), (D1, "S001"), (D1, "S002")]


def test_aborted_list_returns_empty():
    repo = InMemoryAttendanceRepository([rec("S001")])
    abort = asyncio.Event()
    abort.set()

    assert run(repo.list_by_date(D1, abort=abort)).value == []


def test_range_returns_every_row_below_cap():
    days = [date(2026, 2, d) for d in range(1, 29)]
    repo = InMemoryAttendanceRepository([rec(f"S{i:03d}", d) for d in days for i in range(8)])

    listed = run(repo.list_by_date_range(days[0], days[-1]))

    assert listed.is_ok
    assert len(listed.value) == 224


def test_range_at_cap_is_an_error():
    repo = InMemoryAttendanceRepository([rec(f"S{i:03d}") for i in range(20)])

    result = run(repo.list_by_date_range(D1, D1, top=2))

    assert result.error.kind == ErrorKind.VALIDATION
    assert "exceeded max items (20)" in result.error.message
    assert run(repo.list_by_date_range(D1, D1, top=3)).is_ok
