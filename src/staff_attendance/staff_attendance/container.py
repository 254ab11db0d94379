from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from types import ModuleType
from typing import Optional

import structlog

from .attendance.bulk_service import BulkApplyService
from .attendance.finalize_service import DayFinalizeService
from .attendance.in_memory_attendance_repository import InMemoryAttendanceRepository
from .attendance.remote_attendance_repository import RemoteAttendanceRepository
from .attendance.repository import AttendanceRepository
from .attendance.service import AttendanceDayStore, AttendanceRangeReader, ErrorHandler, WriteGate
from .core.constants import DEFAULT_LIST_TITLE, DEFAULT_REQUEST_TIMEOUT, DEFAULT_TIMEZONE
from .core.enums import StorageKind
from .remote.connection import RemoteStoreConfig, TokenProvider, static_token_provider
from .staff.repository import InMemoryStaffRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Container:
    storage_kind: StorageKind
    write_enabled: bool
    timezone: str

    attendance_repo: AttendanceRepository
    staff_repo: InMemoryStaffRepository

    finalize_service: DayFinalizeService
    bulk_service: BulkApplyService
    write_gate: WriteGate

    def day_store(self, record_date: date, *, on_error: Optional[ErrorHandler] = None) -> AttendanceDayStore:
        return AttendanceDayStore(
            self.attendance_repo,
            record_date,
            write_enabled=self.write_enabled,
            on_error=on_error,
            finalize_service=self.finalize_service,
            bulk_service=self.bulk_service,
            gate=self.write_gate,
        )

    def range_reader(self, *, on_error: Optional[ErrorHandler] = None) -> AttendanceRangeReader:
        return AttendanceRangeReader(self.attendance_repo, on_error=on_error)


def resolve_storage_kind(raw: Optional[str]) -> StorageKind:
    value = (raw or "").strip().lower()
    try:
        return StorageKind(value)
    except ValueError:
        logger.warning("unknown_storage_kind", value=raw, fallback=StorageKind.LOCAL.value)
        return StorageKind.LOCAL


def build_container(
    *,
    settings: ModuleType,
    token_provider: Optional[TokenProvider] = None,
    attendance_repo: Optional[AttendanceRepository] = None,
) -> Container:
    storage_kind = resolve_storage_kind(getattr(settings, "STAFF_ATTENDANCE_STORAGE", "local"))

    if attendance_repo is None:
        if storage_kind == StorageKind.REMOTE:
            config = RemoteStoreConfig(
                site_url=str(getattr(settings, "SP_SITE_URL", "")),
                list_title=str(getattr(settings, "SP_LIST_STAFF_ATTENDANCE", DEFAULT_LIST_TITLE)),
                timeout=float(getattr(settings, "SP_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT)),
            )
            provider = token_provider or static_token_provider(getattr(settings, "SP_ACCESS_TOKEN", None))
            # The HTTP client itself is built lazily on first use.
            attendance_repo = RemoteAttendanceRepository(
                token_provider=provider,
                config=config if config.site_url else None,
                list_title=config.list_title,
            )
        else:
            attendance_repo = InMemoryAttendanceRepository()

    staff_repo = InMemoryStaffRepository.from_json(getattr(settings, "STAFF_ROSTER", "[]"))

    write_enabled = bool(getattr(settings, "STAFF_ATTENDANCE_WRITE", False))

    return Container(
        storage_kind=storage_kind,
        write_enabled=write_enabled,
        timezone=str(getattr(settings, "TIMEZONE", DEFAULT_TIMEZONE)),
        attendance_repo=attendance_repo,
        staff_repo=staff_repo,
        finalize_service=DayFinalizeService(attendance_repo),
        bulk_service=BulkApplyService(attendance_repo),
        write_gate=WriteGate(enabled=write_enabled),
    )
