from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Sequence

from ..core.enums import AttendanceRowStatus
from ..staff.model import Staff
from .model import AttendanceRecord

# Rows still needing attention come first.
_STATUS_ORDER = {
    AttendanceRowStatus.UNFILLED: 0,
    AttendanceRowStatus.ABSENT: 1,
    AttendanceRowStatus.OUT_ON_ERRAND: 2,
    AttendanceRowStatus.ON_DUTY: 3,
}


@dataclass(frozen=True)
class AttendanceRow:
    """Read-model for the daily input table (roster x records); not persisted."""

    staff_id: str
    staff_name: str
    record_date: date
    status: AttendanceRowStatus
    record: Optional[AttendanceRecord] = None

    @property
    def is_filled(self) -> bool:
        return self.record is not None


def build_staff_attendance_rows(
    staff: Sequence[Staff],
    records: Iterable[AttendanceRecord],
    record_date: date,
) -> list[AttendanceRow]:
    """Left outer join of the roster against one date's records.

    Every staff member appears exactly once; staff without a record are UNFILLED.
    """

    by_staff = {r.staff_id: r for r in records if r.record_date == record_date}
    rows = []
    seen: set[str] = set()
    for s in staff:
        if s.staff_id in seen:
            continue
        seen.add(s.staff_id)
        record = by_staff.get(s.staff_id)
        status = AttendanceRowStatus(record.status.value) if record else AttendanceRowStatus.UNFILLED
        rows.append(
            AttendanceRow(
                staff_id=s.staff_id,
                staff_name=s.name,
                record_date=record_date,
                status=status,
                record=record,
            )
        )
    rows.sort(key=lambda r: (_STATUS_ORDER[r.status], r.staff_id))
    return rows
