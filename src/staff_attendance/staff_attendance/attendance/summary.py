from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Mapping

from ..common.datetime_utils import month_bounds
from ..core.enums import AttendanceStatus
from ..core.exceptions import ValidationError
from .model import AttendanceRecord

KNOWN_STATUS_ORDER = [s.value for s in AttendanceStatus]


@dataclass(frozen=True)
class MonthlySummary:
    total_items: int
    counts_by_status: dict[str, int] = field(default_factory=dict)
    counts_by_date: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class StaffBreakdown:
    staff_id: str
    total: int
    counts_by_status: dict[str, int] = field(default_factory=dict)


def month_to_range(ym: str) -> tuple[date, date]:
    """'YYYY-MM' -> (first day, last day)."""

    try:
        y_str, m_str = (ym or "").split("-")
        year, month = int(y_str), int(m_str)
        return month_bounds(year, month)
    except ValueError:
        raise ValidationError(f"対象月の形式が不正です (YYYY-MM): {ym!r}")


def build_monthly_summary(records: Iterable[AttendanceRecord]) -> MonthlySummary:
    items = list(records)
    by_status = Counter(r.status.value for r in items)
    by_date = Counter(r.record_date.isoformat() for r in items)
    return MonthlySummary(
        total_items=len(items),
        counts_by_status=dict(by_status),
        counts_by_date=dict(sorted(by_date.items())),
    )


def build_staff_breakdown(records: Iterable[AttendanceRecord]) -> list[StaffBreakdown]:
    per_staff: dict[str, Counter] = {}
    for r in records:
        per_staff.setdefault(r.staff_id, Counter())[r.status.value] += 1

    return [
        StaffBreakdown(staff_id=staff_id, total=sum(counts.values()), counts_by_status=dict(counts))
        for staff_id, counts in sorted(per_staff.items())
    ]


def list_all_statuses(counts_by_status: Mapping[str, int]) -> list[str]:
    """Known statuses in canonical order (always shown), then any extras seen."""

    extras = sorted(s for s in counts_by_status if s not in KNOWN_STATUS_ORDER)
    return KNOWN_STATUS_ORDER + extras
