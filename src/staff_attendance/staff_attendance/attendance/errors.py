from __future__ import annotations

from typing import Optional

import httpx

from ..core.enums import ErrorKind
from ..core.exceptions import RemoteStoreError, ValidationError
from ..core.result import ResultError

RESOURCE = "StaffAttendance"

SCHEMA_REJECTION_STATUSES = frozenset({400, 422})

_HINTS = {
    ErrorKind.FORBIDDEN: "権限がありません。読み取り専用で表示しています。",
    ErrorKind.CONFLICT: "他の端末で同時に更新されました。再読み込みしてからやり直してください。",
    ErrorKind.VALIDATION: "入力内容またはリストの設定に問題があります。",
    ErrorKind.NOT_FOUND: "対象の勤怠記録が見つかりません。",
    ErrorKind.UNKNOWN: "通信エラーが発生しました。時間をおいて再試行してください。",
}


def get_http_status(error: BaseException) -> Optional[int]:
    if isinstance(error, RemoteStoreError):
        return error.status
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    status = getattr(error, "status", None)
    return status if isinstance(status, int) else None


def to_result_error(error: BaseException, op: Optional[str] = None) -> ResultError:
    """Classify an exception into the port's error taxonomy."""

    if isinstance(error, ValidationError):
        return ResultError(kind=ErrorKind.VALIDATION, message=str(error), op=op, resource=RESOURCE)

    status = get_http_status(error)
    if status == 401:
        return ResultError(kind=ErrorKind.FORBIDDEN, message="認証が必要です（401）。", op=op, cause=error)
    if status == 403:
        return ResultError(kind=ErrorKind.FORBIDDEN, message="権限がありません（403）。", op=op, cause=error)
    if status == 412:
        return ResultError(kind=ErrorKind.CONFLICT, message="ETag conflict", op=op, resource=RESOURCE, cause=error)
    if status in SCHEMA_REJECTION_STATUSES:
        return ResultError(
            kind=ErrorKind.VALIDATION,
            message="Validation error",
            op=op,
            resource=RESOURCE,
            details=getattr(error, "detail", None),
            cause=error,
        )
    return ResultError(kind=ErrorKind.UNKNOWN, message=str(error) or type(error).__name__, op=op, cause=error)


def is_schema_rejection(error: BaseException) -> bool:
    return get_http_status(error) in SCHEMA_REJECTION_STATUSES


def hint_for(error: ResultError) -> str:
    """Short user-facing message for a classified error."""

    hint = _HINTS.get(error.kind, _HINTS[ErrorKind.UNKNOWN])
    if error.kind == ErrorKind.VALIDATION and error.message and error.message != "Validation error":
        return error.message
    return hint


def range_cap_exceeded(top: int, max_pages: int) -> ResultError:
    """A range listing reached top * max_pages rows and may be truncated."""

    max_items = top * max_pages
    return ResultError(
        kind=ErrorKind.VALIDATION,
        message=f"Read list exceeded max items ({max_items}). Please refine date range.",
        op="list_by_date_range",
        resource=RESOURCE,
        details={"max_items": max_items, "top": top, "max_pages": max_pages},
    )
