from __future__ import annotations

from ..core.exceptions import ValidationError


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{field_name} が入力されていません")
    return value.strip()


def require_positive(value: int, field_name: str) -> int:
    if value is None or int(value) <= 0:
        raise ValidationError(f"{field_name} は1以上で指定してください")
    return int(value)


def require_date_order(date_from, date_to) -> None:
    if date_from > date_to:
        raise ValidationError("開始日は終了日以前で指定してください")
