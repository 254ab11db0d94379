from __future__ import annotations

import json
from typing import Optional, Protocol, Sequence

from ..core.exceptions import ValidationError
from .model import Staff


class StaffRepository(Protocol):
    def list_active(self) -> Sequence[Staff]:
        raise NotImplementedError

    def get_by_id(self, staff_id: str) -> Optional[Staff]:
        raise NotImplementedError


class InMemoryStaffRepository(StaffRepository):
    """Roster held in memory, seeded from configuration."""

    def __init__(self, staff: Sequence[Staff] = ()):
        self._by_id = {s.staff_id: s for s in staff}

    @classmethod
    def from_json(cls, raw: str) -> "InMemoryStaffRepository":
        """Build from a JSON list of {"staff_id", "name", "is_active"?} objects."""

        raw = (raw or "").strip()
        if not raw:
            return cls()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValidationError(f"STAFF_ROSTER is not valid JSON: {e}")
        if not isinstance(data, list):
            raise ValidationError("STAFF_ROSTER must be a JSON list")

        staff = []
        for item in data:
            if not isinstance(item, dict) or not str(item.get("staff_id") or "").strip():
                raise ValidationError(f"STAFF_ROSTER entry without staff_id: {item!r}")
            staff.append(
                Staff(
                    staff_id=str(item["staff_id"]).strip(),
                    name=str(item.get("name") or "").strip(),
                    is_active=bool(item.get("is_active", True)),
                )
            )
        return cls(staff)

    def list_active(self) -> Sequence[Staff]:
        return sorted((s for s in self._by_id.values() if s.is_active), key=lambda s: s.staff_id)

    def get_by_id(self, staff_id: str) -> Optional[Staff]:
        return self._by_id.get(staff_id)
