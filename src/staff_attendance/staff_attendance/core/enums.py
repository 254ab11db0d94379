from __future__ import annotations

from enum import Enum


class AttendanceStatus(str, Enum):
    """勤怠ステータス（リストに保存される値）."""

    ON_DUTY = "出勤"
    ABSENT = "欠勤"
    OUT_ON_ERRAND = "外出中"


class AttendanceRowStatus(str, Enum):
    """Row status shown on the daily input table.

    UNFILLED is UI-only and is never written back to the store.
    """

    UNFILLED = "未入力"
    ABSENT = AttendanceStatus.ABSENT.value
    OUT_ON_ERRAND = AttendanceStatus.OUT_ON_ERRAND.value
    ON_DUTY = AttendanceStatus.ON_DUTY.value


class ErrorKind(str, Enum):
    """Classified failure kinds returned through Result."""

    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"


class StorageKind(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"
