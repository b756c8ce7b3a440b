"""Per-item results and the report of skipped items.

Loops over pull requests, commits and profiles never let a single failure
abort the whole build. Each item is captured as a ``Result``; failures carry
a ``SkipReason`` and are counted in a ``SkipReport`` so callers can see how
degraded a result is.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Generic, TypeVar

from .errors import (
    AuthenticationError,
    ForgeError,
    NotFoundError,
    PermissionOrRateLimitError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SkipReason(str, Enum):
    AUTH = "auth"
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    UNATTRIBUTED = "unattributed"


def reason_for(error: ForgeError) -> SkipReason:
    """Map a forge error to the reason an item was skipped."""
    if isinstance(error, AuthenticationError):
        return SkipReason.AUTH
    if isinstance(error, PermissionOrRateLimitError):
        return SkipReason.PERMISSION
    if isinstance(error, NotFoundError):
        return SkipReason.NOT_FOUND
    return SkipReason.TRANSIENT


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or the reason the item was skipped."""

    value: T | None = None
    skip: SkipReason | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.skip is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def skipped(cls, reason: SkipReason, detail: str = "") -> "Result[T]":
        return cls(skip=reason, detail=detail)


@dataclass
class SkipReport:
    """Counts of skipped items, by reason."""

    counts: Counter = field(default_factory=Counter)
    details: list[str] = field(default_factory=list)

    def record(self, result: Result) -> Result:
        if not result.ok:
            self.counts[result.skip] += 1
            if result.detail:
                self.details.append(result.detail)
        return result

    def skip(self, reason: SkipReason, detail: str = "") -> None:
        self.record(Result.skipped(reason, detail))

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def __getitem__(self, reason: SkipReason) -> int:
        return self.counts[reason]


async def capture(awaitable: Awaitable[T], what: str, report: SkipReport | None = None) -> Result[T]:
    """Await a single-item forge call and capture its failure as a Result.

    Args:
        awaitable: The forge call
        what: Description used in the log line (e.g. "PR acme/app#3")
        report: Optional report the skip is recorded in

    Returns:
        Result holding the value or the skip reason
    """
    try:
        result = Result.success(await awaitable)
    except ForgeError as e:
        logger.warning(f"Skipping {what}: {e}")
        result = Result.skipped(reason_for(e), f"{what}: {e}")

    if report is not None:
        report.record(result)
    return result
