"""Working-day calendars.

Payroll and leave count working days with separate calendars: payroll
defaults to a five-day week (Saturday and Sunday off) and leave to a six-day
week (Sunday off). Both are configuration.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date, timedelta


@dataclass(frozen=True)
class WorkCalendar:
    """Rest days expressed as ``date.weekday()`` numbers (Monday = 0)."""

    rest_days: frozenset[int] = frozenset({5, 6})

    @classmethod
    def from_weekdays(cls, days: Iterable[int]) -> WorkCalendar:
        rest = frozenset(days)
        if any(d < 0 or d > 6 for d in rest):
            raise ValueError(f"Weekday numbers must be 0-6, got {sorted(rest)}")
        return cls(rest_days=rest)

    def is_working_day(self, day: date, holidays: Iterable[date] = ()) -> bool:
        return day.weekday() not in self.rest_days and day not in set(holidays)

    def iter_days(self, start: date, end: date) -> Iterator[date]:
        """Every calendar day from start to end inclusive."""
        current = start
        while current <= end:
            yield current
            current += timedelta(days=1)

    def working_days(
        self, start: date, end: date, holidays: Iterable[date] = ()
    ) -> list[date]:
        excluded = set(holidays)
        return [
            d for d in self.iter_days(start, end)
            if d.weekday() not in self.rest_days and d not in excluded
        ]

    def count_working_days(
        self, start: date, end: date, holidays: Iterable[date] = ()
    ) -> int:
        return len(self.working_days(start, end, holidays))
