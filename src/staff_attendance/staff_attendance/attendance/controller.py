from __future__ import annotations

from dataclasses import replace
from typing import Any, Optional

from flask import Flask, jsonify, request

from ..common.datetime_utils import format_iso_datetime, parse_hhmm, parse_iso_date, parse_iso_datetime
from ..common.validators import require_non_empty, require_positive
from ..container import Container
from ..core.constants import DEFAULT_RANGE_TOP
from ..core.enums import AttendanceStatus, ErrorKind
from ..core.exceptions import ValidationError
from ..core.result import ResultError
from .bulk_service import BulkValue
from .errors import hint_for
from .model import AttendanceCounts, AttendanceRecord, count_records
from .rows import AttendanceRow
from .summary import build_monthly_summary, build_staff_breakdown, list_all_statuses, month_to_range

HTTP_STATUS_BY_KIND = {
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.UNKNOWN: 502,
}


def record_to_dict(r: AttendanceRecord) -> dict:
    return {
        "staff_id": r.staff_id,
        "record_date": r.record_date.isoformat(),
        "status": r.status.value,
        "is_finalized": r.is_finalized,
        "finalized_at": format_iso_datetime(r.finalized_at),
        "finalized_by": r.finalized_by,
        "check_in_at": format_iso_datetime(r.check_in_at),
        "check_out_at": format_iso_datetime(r.check_out_at),
        "late_minutes": r.late_minutes,
        "note": r.note,
    }


def row_to_dict(row: AttendanceRow) -> dict:
    return {
        "staff_id": row.staff_id,
        "staff_name": row.staff_name,
        "status": row.status.value,
        "record": record_to_dict(row.record) if row.record else None,
    }


def counts_to_dict(c: AttendanceCounts) -> dict:
    return {"on_duty": c.on_duty, "out": c.out, "absent": c.absent, "total": c.total}


def parse_status(value: Any) -> AttendanceStatus:
    raw = str(value or "").strip()
    for status in AttendanceStatus:
        if raw in (status.value, status.name):
            return status
    raise ValidationError(f"勤怠ステータスが不正です: {raw!r}")


def _optional_int(value: Any, field_name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} は整数で指定してください")


def _error_response(error: ResultError):
    return jsonify({"success": False, "kind": error.kind.value, "message": hint_for(error)}), HTTP_STATUS_BY_KIND[error.kind]


def _read_only_response(reason: Optional[str]):
    return jsonify({"success": False, "kind": ErrorKind.FORBIDDEN.value, "message": reason}), 403


def register(app: Flask, container: Container) -> None:
    def _time_field(body: dict, name: str, record_date):
        """Accept either an ISO timestamp or 'HH:MM' on the record date."""

        raw = body.get(name)
        if raw is None or raw == "":
            return None
        parsed = parse_iso_datetime(raw)
        if parsed is not None:
            return parsed
        return parse_hhmm(str(raw), on=record_date, tz_name=container.timezone)

    @app.errorhandler(ValidationError)
    def handle_validation_error(e: ValidationError):
        return jsonify({"success": False, "kind": ErrorKind.VALIDATION.value, "message": str(e)}), 400

    @app.route("/api/staff-attendance/<day>", methods=["GET"], endpoint="staff_attendance_day")
    async def staff_attendance_day(day: str):
        record_date = parse_iso_date(day)
        store = container.day_store(record_date)
        await store.reload()
        if store.last_error is not None:
            return _error_response(store.last_error)

        return jsonify(
            {
                "success": True,
                "date": record_date.isoformat(),
                "items": [record_to_dict(r) for r in store.items],
                "rows": [row_to_dict(r) for r in store.rows(container.staff_repo.list_active())],
                "counts": counts_to_dict(count_records(store.items)),
                # derived from the list just fetched
                "finalized": any(r.is_finalized for r in store.items),
                "write_enabled": store.write_enabled,
                "read_only_reason": store.read_only_reason,
            }
        )

    @app.route("/api/staff-attendance/<day>/<staff_id>", methods=["PUT"], endpoint="staff_attendance_upsert")
    async def staff_attendance_upsert(day: str, staff_id: str):
        record_date = parse_iso_date(day)
        staff_id = require_non_empty(staff_id, "職員ID")
        body = request.get_json(silent=True) or {}

        store = container.day_store(record_date)
        if not store.write_enabled:
            return _read_only_response(store.read_only_reason)
        await store.reload()
        if store.last_error is not None:
            return _error_response(store.last_error)

        existing = next((r for r in store.items if r.staff_id == staff_id), None)
        base = existing or AttendanceRecord(staff_id=staff_id, record_date=record_date, status=parse_status(body.get("status")))
        late_minutes = _optional_int(body["late_minutes"], "late_minutes") if "late_minutes" in body else base.late_minutes
        record = replace(
            base,
            status=parse_status(body["status"]) if "status" in body else base.status,
            check_in_at=_time_field(body, "check_in_at", record_date) if "check_in_at" in body else base.check_in_at,
            check_out_at=_time_field(body, "check_out_at", record_date) if "check_out_at" in body else base.check_out_at,
            late_minutes=late_minutes,
            note=(body.get("note") or None) if "note" in body else base.note,
        )

        result = await store.upsert_one(record)
        if result is None:
            return _read_only_response(store.read_only_reason)
        if not result.is_ok:
            return _error_response(result.error)
        return jsonify({"success": True, "items": [record_to_dict(r) for r in store.items]})

    @app.route("/api/staff-attendance/<day>/<staff_id>", methods=["DELETE"], endpoint="staff_attendance_remove")
    async def staff_attendance_remove(day: str, staff_id: str):
        store = container.day_store(parse_iso_date(day))
        result = await store.remove_one(require_non_empty(staff_id, "職員ID"))
        if result is None:
            return _read_only_response(store.read_only_reason)
        if not result.is_ok:
            return _error_response(result.error)
        return jsonify({"success": True, "items": [record_to_dict(r) for r in store.items]})

    @app.route("/api/staff-attendance/<day>/bulk", methods=["POST"], endpoint="staff_attendance_bulk")
    async def staff_attendance_bulk(day: str):
        record_date = parse_iso_date(day)
        body = request.get_json(silent=True) or {}
        staff_ids = body.get("staff_ids") or []
        if not isinstance(staff_ids, list):
            raise ValidationError("staff_ids はリストで指定してください")

        value = BulkValue(
            status=parse_status(body.get("status")),
            check_in_at=_time_field(body, "check_in_at", record_date),
            note=str(body.get("note") or ""),
        )

        store = container.day_store(record_date)
        if not store.write_enabled:
            return _read_only_response(store.read_only_reason)
        await store.reload()
        if store.last_error is not None:
            return _error_response(store.last_error)

        result = await store.bulk_apply([str(s) for s in staff_ids], value)
        if not result.is_ok:
            return jsonify({"success": False, "kind": result.error.kind.value, "message": result.error.message}), HTTP_STATUS_BY_KIND[result.error.kind]
        summary = result.value
        return jsonify(
            {
                "success": True,
                "applied": summary.succeeded,
                "items": [record_to_dict(r) for r in store.items],
            }
        )

    @app.route("/api/staff-attendance/<day>/finalize", methods=["POST"], endpoint="staff_attendance_finalize")
    async def staff_attendance_finalize(day: str):
        body = request.get_json(silent=True) or {}
        store = container.day_store(parse_iso_date(day))
        result = await store.finalize_day(str(body.get("finalized_by") or ""))
        if not result.is_ok:
            return _error_response(result.error)
        return jsonify({"success": True, "finalized": True, "items": [record_to_dict(r) for r in store.items]})

    @app.route("/api/staff-attendance/<day>/finalize", methods=["DELETE"], endpoint="staff_attendance_unfinalize")
    async def staff_attendance_unfinalize(day: str):
        store = container.day_store(parse_iso_date(day))
        result = await store.unfinalize_day()
        if not result.is_ok:
            return _error_response(result.error)
        return jsonify({"success": True, "finalized": False, "items": [record_to_dict(r) for r in store.items]})

    @app.route("/api/staff-attendance/range", methods=["GET"], endpoint="staff_attendance_range")
    async def staff_attendance_range():
        date_from = parse_iso_date(request.args.get("from", ""))
        date_to = parse_iso_date(request.args.get("to", ""))
        top = require_positive(request.args.get("top", DEFAULT_RANGE_TOP, type=int), "top")

        reader = container.range_reader()
        result = await reader.fetch_list_by_date_range(date_from, date_to, top)
        if not result.is_ok:
            return _error_response(result.error)
        return jsonify({"success": True, "items": [record_to_dict(r) for r in reader.list_items]})

    @app.route("/api/staff-attendance/summary", methods=["GET"], endpoint="staff_attendance_summary")
    async def staff_attendance_summary():
        month = request.args.get("month", "")
        date_from, date_to = month_to_range(month)

        reader = container.range_reader()
        result = await reader.fetch_list_by_date_range(date_from, date_to)
        if not result.is_ok:
            return _error_response(result.error)

        summary = build_monthly_summary(reader.list_items)
        names = {s.staff_id: s.name for s in container.staff_repo.list_active()}
        return jsonify(
            {
                "success": True,
                "month": month,
                "from": date_from.isoformat(),
                "to": date_to.isoformat(),
                "total_items": summary.total_items,
                "statuses": list_all_statuses(summary.counts_by_status),
                "counts_by_status": summary.counts_by_status,
                "counts_by_date": summary.counts_by_date,
                "staff": [
                    {
                        "staff_id": b.staff_id,
                        "staff_name": names.get(b.staff_id, b.staff_id),
                        "total": b.total,
                        "counts_by_status": b.counts_by_status,
                    }
                    for b in build_staff_breakdown(reader.list_items)
                ],
            }
        )
