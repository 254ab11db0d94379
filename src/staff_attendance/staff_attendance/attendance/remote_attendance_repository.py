from __future__ import annotations

import asyncio
from datetime import date
from typing import Any, Dict, List, Optional, Protocol, Tuple

import httpx
import structlog

from ..common.datetime_utils import format_iso_datetime, parse_iso_datetime
from ..core.constants import DEFAULT_DATE_TOP, DEFAULT_LIST_TITLE, DEFAULT_RANGE_TOP, MAX_RANGE_PAGES
from ..core.enums import AttendanceStatus, ErrorKind
from ..core.exceptions import (
    RemoteStoreError,
    RemoteStoreNotConfiguredError,
    RequestAbortedError,
    ValidationError,
)
from ..core.result import Result, ResultError
from ..remote.connection import RemoteStoreConfig, TokenProvider
from ..remote.list_client import SharePointListClient, escape_odata_string
from .errors import RESOURCE, is_schema_rejection, range_cap_exceeded, to_result_error
from .model import AttendanceCounts, AttendanceRecord, count_records, parse_key
from .repository import AttendanceRepository

logger = structlog.get_logger(__name__)


class StaffAttendanceFields:
    """Internal column names of the StaffAttendance list."""

    ID = "Id"
    TITLE = "Title"
    STAFF_ID = "StaffId"
    RECORD_DATE = "RecordDate"
    STATUS = "Status"
    CHECK_IN_AT = "CheckInAt"
    CHECK_OUT_AT = "CheckOutAt"
    LATE_MINUTES = "LateMinutes"
    NOTE = "Note"
    IS_FINALIZED = "IsFinalized"
    FINALIZED_AT = "FinalizedAt"
    FINALIZED_BY = "FinalizedBy"


F = StaffAttendanceFields

# Audit columns were added later; older lists reject a select/payload naming them.
AUDIT_FIELDS = (F.FINALIZED_AT, F.FINALIZED_BY)

WIDE_SELECT = [
    F.ID,
    F.TITLE,
    F.STAFF_ID,
    F.RECORD_DATE,
    F.STATUS,
    F.CHECK_IN_AT,
    F.CHECK_OUT_AT,
    F.LATE_MINUTES,
    F.NOTE,
    F.IS_FINALIZED,
    F.FINALIZED_AT,
    F.FINALIZED_BY,
]
NARROW_SELECT = [f for f in WIDE_SELECT if f not in AUDIT_FIELDS]

_STATUS_BY_VALUE = {s.value: s for s in AttendanceStatus}


class ListClient(Protocol):
    """The remote-store capability the adapter consumes."""

    async def get_items_by_filter(
        self,
        list_title: str,
        select: List[str],
        filter: Optional[str] = None,
        orderby: Optional[str] = None,
        top: int = 500,
        *,
        page_cap: int = 1,
        abort: Optional[asyncio.Event] = None,
    ) -> List[Dict[str, Any]]: ...

    async def get_item_with_etag(
        self, list_title: str, item_id: int, select: Optional[List[str]] = None
    ) -> Tuple[Dict[str, Any], Optional[str]]: ...

    async def update_item(
        self, list_title: str, item_id: int, payload: Dict[str, Any], *, if_match: str = "*"
    ) -> None: ...

    async def add_item(self, list_title: str, payload: Dict[str, Any]) -> Dict[str, Any]: ...

    async def delete_item(self, list_title: str, item_id: int) -> None: ...


def _get_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value != "" else None


def _get_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def row_to_record(row: Dict[str, Any]) -> Optional[AttendanceRecord]:
    """Map a list row to a record; incomplete rows are dropped (None)."""

    staff_id = _get_str(row.get(F.STAFF_ID))
    raw_date = _get_str(row.get(F.RECORD_DATE))
    status = _STATUS_BY_VALUE.get(row.get(F.STATUS))
    if not staff_id or not raw_date or status is None:
        return None
    try:
        # DateOnly columns may come back as 'YYYY-MM-DDT00:00:00Z'
        record_date = date.fromisoformat(raw_date[:10])
    except ValueError:
        return None

    return AttendanceRecord(
        staff_id=staff_id,
        record_date=record_date,
        status=status,
        is_finalized=row.get(F.IS_FINALIZED) is True,
        finalized_at=parse_iso_datetime(row.get(F.FINALIZED_AT)),
        finalized_by=_get_str(row.get(F.FINALIZED_BY)),
        check_in_at=parse_iso_datetime(row.get(F.CHECK_IN_AT)),
        check_out_at=parse_iso_datetime(row.get(F.CHECK_OUT_AT)),
        late_minutes=_get_int(row.get(F.LATE_MINUTES)),
        note=_get_str(row.get(F.NOTE)),
    )


def record_to_payload(record: AttendanceRecord, *, include_audit: bool) -> Dict[str, Any]:
    """Build the write payload.

    Core fields are always sent, None as null so a cleared value is cleared
    remotely. Audit columns only go out when include_audit is set.
    """

    payload: Dict[str, Any] = {
        F.TITLE: record.key,
        F.STAFF_ID: record.staff_id,
        F.RECORD_DATE: record.record_date.isoformat(),
        F.STATUS: record.status.value,
        F.CHECK_IN_AT: format_iso_datetime(record.check_in_at),
        F.CHECK_OUT_AT: format_iso_datetime(record.check_out_at),
        F.LATE_MINUTES: record.late_minutes,
        F.NOTE: record.note,
        F.IS_FINALIZED: bool(record.is_finalized),
    }
    if include_audit:
        payload[F.FINALIZED_AT] = format_iso_datetime(record.finalized_at)
        payload[F.FINALIZED_BY] = record.finalized_by
    return payload


def _map_rows(rows: List[Dict[str, Any]]) -> List[AttendanceRecord]:
    out: List[AttendanceRecord] = []
    for row in rows:
        record = row_to_record(row)
        if record is not None:
            out.append(record)
    return out


# Errors the adapter turns into Results. Anything else is a bug and propagates.
_CLASSIFIED_ERRORS = (RemoteStoreError, RemoteStoreNotConfiguredError, ValidationError, httpx.HTTPError)


class RemoteAttendanceRepository(AttendanceRepository):
    """Attendance port backed by the StaffAttendance list.

    Writes use entity-tag conditional updates; there is no client-side lock.
    Reads and writes fall back to a reduced field set when the list rejects
    the audit columns (lists created before they existed).
    """

    def __init__(
        self,
        *,
        client: Optional[ListClient] = None,
        token_provider: Optional[TokenProvider] = None,
        config: Optional[RemoteStoreConfig] = None,
        list_title: Optional[str] = None,
    ):
        self._client = client
        self._token_provider = token_provider
        self._config = config
        self._list_title = list_title or (config.list_title if config else DEFAULT_LIST_TITLE)

    def _get_client(self) -> ListClient:
        if self._client is None:
            if self._token_provider is None or self._config is None:
                raise RemoteStoreNotConfiguredError("SharePoint client not configured")
            self._client = SharePointListClient(self._token_provider, self._config)
        return self._client

    async def _query(
        self,
        *,
        filter: str,
        orderby: Optional[str] = None,
        top: int,
        page_cap: int = 1,
        abort: Optional[asyncio.Event] = None,
    ) -> List[Dict[str, Any]]:
        client = self._get_client()
        try:
            return await client.get_items_by_filter(
                self._list_title, WIDE_SELECT, filter, orderby, top, page_cap=page_cap, abort=abort
            )
        except RemoteStoreError as e:
            if not is_schema_rejection(e):
                raise
            logger.warning(
                "staff_attendance_select_fallback",
                list_title=self._list_title,
                status=e.status,
                dropped=list(AUDIT_FIELDS),
            )
        return await client.get_items_by_filter(
            self._list_title, NARROW_SELECT, filter, orderby, top, page_cap=page_cap, abort=abort
        )

    async def _find_by_key(self, key: str) -> Optional[Dict[str, Any]]:
        rows = await self._query(filter=f"{F.TITLE} eq '{escape_odata_string(key)}'", top=1)
        return rows[0] if rows else None

    async def _upsert_once(self, record: AttendanceRecord, *, include_audit: bool) -> Result[None]:
        op = "create"
        try:
            client = self._get_client()
            existing = await self._find_by_key(record.key)
            payload = record_to_payload(record, include_audit=include_audit)

            item_id = _get_int(existing.get(F.ID)) if existing else None
            if item_id is not None:
                op = "update"
                _, etag = await client.get_item_with_etag(self._list_title, item_id, [F.ID])
                await client.update_item(self._list_title, item_id, payload, if_match=etag or "*")
                return Result.ok(None)

            await client.add_item(self._list_title, payload)
            return Result.ok(None)
        except _CLASSIFIED_ERRORS as e:
            return Result.err(to_result_error(e, op))

    async def upsert(self, record: AttendanceRecord) -> Result[None]:
        result = await self._upsert_once(record, include_audit=True)
        if result.is_ok or result.error.kind != ErrorKind.VALIDATION:
            if not result.is_ok:
                self._log_failure("upsert", result.error, key=record.key)
            return result

        logger.warning(
            "staff_attendance_payload_fallback",
            key=record.key,
            op=result.error.op,
            dropped=list(AUDIT_FIELDS),
        )
        retried = await self._upsert_once(record, include_audit=False)
        if not retried.is_ok:
            self._log_failure("upsert", retried.error, key=record.key)
        return retried

    async def remove(self, key: str) -> Result[None]:
        try:
            parse_key(key)
            client = self._get_client()
            existing = await self._find_by_key(key)
            item_id = _get_int(existing.get(F.ID)) if existing else None
            if item_id is None:
                return Result.not_found("StaffAttendance not found", resource=RESOURCE)
            await client.delete_item(self._list_title, item_id)
            return Result.ok(None)
        except _CLASSIFIED_ERRORS as e:
            error = to_result_error(e, "remove")
            self._log_failure("remove", error, key=key)
            return Result.err(error)

    async def get_by_key(self, key: str) -> Result[Optional[AttendanceRecord]]:
        try:
            existing = await self._find_by_key(key)
        except _CLASSIFIED_ERRORS as e:
            error = to_result_error(e)
            self._log_failure("get_by_key", error, key=key)
            return Result.err(error)
        if not existing:
            return Result.ok(None)
        return Result.ok(row_to_record(existing))

    async def list_by_date(
        self,
        record_date: date,
        *,
        abort: Optional[asyncio.Event] = None,
    ) -> Result[list[AttendanceRecord]]:
        try:
            rows = await self._query(
                filter=f"{F.RECORD_DATE} eq '{record_date.isoformat()}'",
                top=DEFAULT_DATE_TOP,
                abort=abort,
            )
        except RequestAbortedError:
            return Result.ok([])
        except _CLASSIFIED_ERRORS as e:
            error = to_result_error(e)
            self._log_failure("list_by_date", error, record_date=record_date.isoformat())
            return Result.err(error)
        return Result.ok(_map_rows(rows))

    async def list_by_date_range(
        self,
        date_from: date,
        date_to: date,
        top: int = DEFAULT_RANGE_TOP,
        *,
        abort: Optional[asyncio.Event] = None,
    ) -> Result[list[AttendanceRecord]]:
        top = int(top)
        max_items = top * MAX_RANGE_PAGES
        try:
            rows = await self._query(
                filter=(
                    f"{F.RECORD_DATE} ge '{date_from.isoformat()}' "
                    f"and {F.RECORD_DATE} le '{date_to.isoformat()}'"
                ),
                orderby=f"{F.RECORD_DATE} desc, {F.STAFF_ID} asc",
                top=top,
                page_cap=MAX_RANGE_PAGES,
                abort=abort,
            )
        except RequestAbortedError:
            return Result.ok([])
        except _CLASSIFIED_ERRORS as e:
            error = to_result_error(e)
            self._log_failure(
                "list_by_date_range", error, date_from=date_from.isoformat(), date_to=date_to.isoformat()
            )
            return Result.err(error)

        if len(rows) >= max_items:
            # The page cap was hit: the result may be truncated.
            logger.warning(
                "staff_attendance_range_cap_reached",
                date_from=date_from.isoformat(),
                date_to=date_to.isoformat(),
                max_items=max_items,
            )
            return Result.err(range_cap_exceeded(top, MAX_RANGE_PAGES))
        return Result.ok(_map_rows(rows))

    async def count_by_date(self, record_date: date) -> Result[AttendanceCounts]:
        listed = await self.list_by_date(record_date)
        if not listed.is_ok:
            return Result.err(listed.error)
        return Result.ok(count_records(listed.value or []))

    @staticmethod
    def _log_failure(op: str, error: ResultError, **context: Any) -> None:
        logger.warning("staff_attendance_remote_failed", op=op, kind=error.kind.value, message=error.message, **context)
