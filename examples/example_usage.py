"""Example: using the service layer without Flask.

Controllers stay thin; the synchronization rules live in the services.
"""

import asyncio
from datetime import date

from staff_attendance.attendance.bulk_service import BulkValue
from staff_attendance.attendance.in_memory_attendance_repository import InMemoryAttendanceRepository
from staff_attendance.attendance.service import AttendanceDayStore
from staff_attendance.core.enums import AttendanceStatus
from staff_attendance.staff.model import Staff


async def main():
    today = date(2026, 2, 1)
    staff = [Staff("S001", "佐藤"), Staff("S002", "鈴木"), Staff("S003", "高橋")]

    store = AttendanceDayStore(InMemoryAttendanceRepository(), today, write_enabled=True, on_error=print)
    await store.reload()

    await store.bulk_apply(["S001", "S002"], BulkValue(status=AttendanceStatus.ON_DUTY, note="朝礼参加"))
    await store.finalize_day("管理者")

    for row in store.rows(staff):
        print(row.staff_id, row.staff_name, row.status.value, row.record.is_finalized if row.record else "-")
    print("finalized:", await store.is_day_finalized())


if __name__ == "__main__":
    asyncio.run(main())
