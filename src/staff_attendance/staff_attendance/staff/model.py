from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Staff:
    """Domain entity: 職員マスタの1件.

    Note: plain data object, no storage access here.
    """

    staff_id: str
    name: str
    is_active: bool = True
