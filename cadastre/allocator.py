from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import Protocol

from cadastre.errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_MAX_BATCH = 50

_PILLAR_NUMBER_RE = re.compile(r"^(?P<prefix>\S(?:.*\S)?) (?P<sequence>[1-9]\d*)$")


class CounterRepository(Protocol):
    def get(self, *, series_prefix: str) -> dict | None: ...

    def increment(self, *, series_prefix: str, count: int, now: str) -> tuple[int, int]: ...


def format_pillar_number(series_prefix: str, sequence: int) -> str:
    return f"{series_prefix} {sequence}"


def parse_pillar_number(text: str) -> tuple[str, int] | None:
    match = _PILLAR_NUMBER_RE.match(text)
    if match is None:
        return None
    return match.group("prefix"), int(match.group("sequence"))


def normalize_series_prefix(series_prefix: str) -> str:
    prefix = (series_prefix or "").strip()
    if not prefix:
        raise ValidationError("series prefix is required", code="PILLAR_SERIES_PREFIX_REQUIRED")
    if any(ch.isspace() for ch in prefix):
        raise ValidationError(
            f"series prefix must not contain whitespace: {prefix!r}",
            code="PILLAR_SERIES_PREFIX_INVALID",
        )
    return prefix


class SequenceAllocator:
    """Hands out contiguous, never-reused numbers per series prefix."""

    def __init__(
        self,
        *,
        counters: Callable[[], CounterRepository],
        clock: Callable[[], str],
        max_batch: int = DEFAULT_MAX_BATCH,
    ) -> None:
        self._counters = counters
        self._clock = clock
        self.max_batch = max_batch

    def validate_count(self, count: int) -> int:
        if isinstance(count, bool) or not isinstance(count, int):
            raise ValidationError("allocation count must be an integer", code="PILLAR_COUNT_INVALID")
        if count <= 0:
            raise ValidationError("allocation count must be positive", code="PILLAR_COUNT_INVALID")
        if count > self.max_batch:
            raise ValidationError(
                f"allocation count {count} exceeds batch limit {self.max_batch}",
                code="PILLAR_COUNT_TOO_LARGE",
            )
        return count

    def reserve(self, series_prefix: str, count: int) -> range:
        """Advance the series counter by ``count`` and return the reserved sequence range."""
        count = self.validate_count(count)
        first, last = self._counters().increment(series_prefix=series_prefix, count=count, now=self._clock())
        logger.info("reserved %s..%s in series %s", first, last, series_prefix)
        return range(first, last + 1)

    def allocate(self, series_prefix: str, count: int) -> list[str]:
        prefix = normalize_series_prefix(series_prefix)
        return [format_pillar_number(prefix, n) for n in self.reserve(prefix, count)]

    def last_issued(self, series_prefix: str) -> int:
        row = self._counters().get(series_prefix=series_prefix)
        if row is None:
            return 0
        return int(row.get("last_issued_number", 0))

    def peek(self, series_prefix: str) -> str:
        prefix = normalize_series_prefix(series_prefix)
        return format_pillar_number(prefix, self.last_issued(prefix) + 1)
