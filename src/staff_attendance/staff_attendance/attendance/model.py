from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..common.datetime_utils import parse_iso_date
from ..core.enums import AttendanceStatus
from ..core.exceptions import ValidationError

KEY_SEPARATOR = "#"
MAP_KEY_SEPARATOR = "_"


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: 職員の日次勤怠レコード (one staff member, one day).

    (record_date, staff_id) is the natural key. The finalization fields are
    day-level metadata; only the representative record of a finalized day
    carries them (see finalize_service).
    """

    staff_id: str
    record_date: date
    status: AttendanceStatus
    is_finalized: bool = False
    finalized_at: Optional[datetime] = None
    finalized_by: Optional[str] = None
    check_in_at: Optional[datetime] = None
    check_out_at: Optional[datetime] = None
    late_minutes: Optional[int] = None
    note: Optional[str] = None

    @property
    def key(self) -> str:
        return build_key(self.record_date, self.staff_id)


@dataclass(frozen=True)
class AttendanceCounts:
    on_duty: int
    out: int
    absent: int
    total: int


def build_key(record_date: date, staff_id: str) -> str:
    """Key used for remove/get-by-key: 'YYYY-MM-DD#staffId'."""
    return f"{record_date.isoformat()}{KEY_SEPARATOR}{staff_id}"


def build_map_key(record_date: date, staff_id: str) -> str:
    """Key used by the in-memory store: 'YYYY-MM-DD_staffId'."""
    return f"{record_date.isoformat()}{MAP_KEY_SEPARATOR}{staff_id}"


def parse_key(key: str) -> tuple[date, str]:
    raw_date, sep, staff_id = (key or "").partition(KEY_SEPARATOR)
    if not sep or not staff_id:
        raise ValidationError(f"キーの形式が不正です: {key!r}")
    return parse_iso_date(raw_date), staff_id


def count_records(records: list[AttendanceRecord]) -> AttendanceCounts:
    on_duty = sum(1 for r in records if r.status == AttendanceStatus.ON_DUTY)
    out = sum(1 for r in records if r.status == AttendanceStatus.OUT_ON_ERRAND)
    absent = sum(1 for r in records if r.status == AttendanceStatus.ABSENT)
    return AttendanceCounts(on_duty=on_duty, out=out, absent=absent, total=len(records))
