from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Callable, Dict, Union

from .errors import InvalidGranularity

PartitionKey = str
Timestamp = Union[datetime, date]


class Granularity(str, Enum):
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


def _as_datetime(ts: Timestamp) -> datetime:
    if isinstance(ts, datetime):
        if ts.tzinfo is not None:
            return ts.astimezone(timezone.utc)
        return ts
    if isinstance(ts, date):
        return datetime(ts.year, ts.month, ts.day)
    raise TypeError(f"Expected datetime or date, got {type(ts).__name__}")


def _hour_key(ts: Timestamp) -> PartitionKey:
    d = _as_datetime(ts)
    return f"{d.year:04d}-{d.month:02d}-{d.day:02d}-{d.hour:02d}"


def _day_key(ts: Timestamp) -> PartitionKey:
    d = _as_datetime(ts)
    return f"{d.year:04d}-{d.month:02d}-{d.day:02d}"


def _week_key(ts: Timestamp) -> PartitionKey:
    # ISO year, not calendar year: 2024-12-30 belongs to 2025-W01.
    iso_year, iso_week, _ = _as_datetime(ts).isocalendar()
    return f"{iso_year:04d}-W{iso_week:02d}"


def _month_key(ts: Timestamp) -> PartitionKey:
    d = _as_datetime(ts)
    return f"{d.year:04d}-{d.month:02d}"


def _year_key(ts: Timestamp) -> PartitionKey:
    return f"{_as_datetime(ts).year:04d}"


_KEY_FUNCS: Dict[Granularity, Callable[[Timestamp], PartitionKey]] = {
    Granularity.HOUR: _hour_key,
    Granularity.DAY: _day_key,
    Granularity.WEEK: _week_key,
    Granularity.MONTH: _month_key,
    Granularity.YEAR: _year_key,
}


@dataclass(frozen=True)
class GranularitySpec:
    granularity: Granularity

    @property
    def home_dir_name(self) -> str:
        return self.granularity.value

    def bucket_key(self, timestamp: Timestamp) -> PartitionKey:
        return _KEY_FUNCS[self.granularity](timestamp)


def parse_granularity(value: Granularity | str) -> Granularity:
    if isinstance(value, Granularity):
        return value
    if isinstance(value, str):
        try:
            return Granularity(value.strip().lower())
        except ValueError:
            pass
    raise InvalidGranularity(value)


def resolve(granularity: Granularity | str) -> GranularitySpec:
    """
    Map a configured time granularity to its partition-key function and the
    name of its home directory under the slice and index roots.

    Raises InvalidGranularity for anything outside hour/day/week/month/year.
    """
    return GranularitySpec(granularity=parse_granularity(granularity))
