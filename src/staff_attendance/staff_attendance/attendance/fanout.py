from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Iterable, List, Optional, Union

from ..core.result import Result, ResultError
from .errors import to_result_error

Outcome = Union[Result[Any], BaseException]


@dataclass(frozen=True)
class SettledSummary:
    total: int
    succeeded: int
    rejected: int
    failed: int


async def settle_all(aws: Iterable[Awaitable[Result[Any]]]) -> List[Outcome]:
    """Run writes concurrently; every write gets its attempt even if another fails."""

    return list(await asyncio.gather(*aws, return_exceptions=True))


def first_failure(outcomes: List[Outcome], *, op: Optional[str] = None) -> Optional[ResultError]:
    """A raised exception wins over error Results; otherwise the first error Result."""

    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            return to_result_error(outcome, op)
    for outcome in outcomes:
        if not outcome.is_ok:
            return outcome.error
    return None


def summarize(outcomes: List[Outcome]) -> SettledSummary:
    rejected = sum(1 for o in outcomes if isinstance(o, BaseException))
    failed = sum(1 for o in outcomes if not isinstance(o, BaseException) and not o.is_ok)
    return SettledSummary(
        total=len(outcomes),
        succeeded=len(outcomes) - rejected - failed,
        rejected=rejected,
        failed=failed,
    )
