from __future__ import annotations

import asyncio
from datetime import date
from typing import Optional, Protocol

from ..core.constants import DEFAULT_RANGE_TOP
from ..core.result import Result
from .model import AttendanceCounts, AttendanceRecord


class AttendanceRepository(Protocol):
    """Storage-agnostic attendance port.

    Every method returns a Result; expected failures (permission, conflict,
    schema rejection, missing record) never raise. Implementations may be
    called concurrently and hold no shared data between calls.
    """

    async def upsert(self, record: AttendanceRecord) -> Result[None]:
        raise NotImplementedError

    async def remove(self, key: str) -> Result[None]:
        """Delete by 'YYYY-MM-DD#staffId'; not_found when nothing matches."""

        raise NotImplementedError

    async def get_by_key(self, key: str) -> Result[Optional[AttendanceRecord]]:
        """A miss is Result.ok(None), never an error."""

        raise NotImplementedError

    async def list_by_date(
        self,
        record_date: date,
        *,
        abort: Optional[asyncio.Event] = None,
    ) -> Result[list[AttendanceRecord]]:
        raise NotImplementedError

    async def list_by_date_range(
        self,
        date_from: date,
        date_to: date,
        top: int = DEFAULT_RANGE_TOP,
        *,
        abort: Optional[asyncio.Event] = None,
    ) -> Result[list[AttendanceRecord]]:
        raise NotImplementedError

    async def count_by_date(self, record_date: date) -> Result[AttendanceCounts]:
        raise NotImplementedError
