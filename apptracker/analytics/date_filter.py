"""Inclusive date-range filtering of application records"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def coerce_date(value: Any) -> Optional[date]:
    """
    Best-effort conversion to a calendar date.

    Accepts date, datetime (date part) and ISO-8601 strings. Anything else,
    including empty strings, returns None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            # Whole string must parse; dates and timestamps both accepted
            return datetime.fromisoformat(text).date()
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class DateRange:
    """Independently optional, inclusive date bounds"""
    start: Optional[date] = None
    end: Optional[date] = None

    @classmethod
    def parse(cls, start: Any = None, end: Any = None) -> "DateRange":
        """Build a range from loose input. Unparseable bounds become open."""
        parsed_start = coerce_date(start)
        parsed_end = coerce_date(end)

        if start not in (None, "") and parsed_start is None:
            logger.warning(f"Ignoring malformed start bound: {start!r}")
        if end not in (None, "") and parsed_end is None:
            logger.warning(f"Ignoring malformed end bound: {end!r}")

        return cls(start=parsed_start, end=parsed_end)

    @property
    def is_open(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, value: Any) -> bool:
        """True if value falls inside the range. Undated values never match a bounded range."""
        if self.is_open:
            return True

        day = coerce_date(value)
        if day is None:
            return False
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True

    def describe(self) -> str:
        if self.is_open:
            return "all dates"
        start = self.start.isoformat() if self.start else "..."
        end = self.end.isoformat() if self.end else "..."
        return f"{start} to {end}"


def _apply_date_of(record: Any) -> Any:
    if isinstance(record, dict):
        return record.get("apply_date", record.get("applyDate"))
    return getattr(record, "apply_date", None)


def filter_by_date(records: Sequence[T], date_range: Optional[DateRange]) -> Sequence[T]:
    """
    Keep the records whose apply date lies within date_range.

    An open range returns the input object itself. Otherwise a new list is
    returned, preserving the input order.
    """
    if date_range is None or date_range.is_open:
        return records

    return [record for record in records if date_range.contains(_apply_date_of(record))]
