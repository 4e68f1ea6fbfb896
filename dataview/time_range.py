from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from dataview.period import DAILY, MONTHLY, QUARTERLY, YEARLY, sort_periods

ALL = "all"
TimeRangeOption = Union[int, str, None]

DEFAULT_TIME_RANGE = 36

TIME_RANGE_LADDERS: Dict[str, Tuple[int, ...]] = {
    DAILY: (7, 30, 90, 180, 365),
    MONTHLY: (12, 24, 36, 60, 120),
    QUARTERLY: (4, 8, 12, 20, 40),
    YEARLY: (5, 10, 20),
}

_UNIT_LABELS = {
    DAILY: ("day", "days"),
    MONTHLY: ("month", "months"),
    QUARTERLY: ("quarter", "quarters"),
    YEARLY: ("year", "years"),
}
ALL_LABEL = "All"


@dataclass(frozen=True)
class TimeRangeDefinition:
    key: Union[int, str]
    label: str


@dataclass(frozen=True)
class TimeRangeWindow:
    start: Optional[str]
    end: Optional[str]
    count: int


def _coverage(coverage: Any) -> Tuple[str, Optional[int]]:
    if coverage is None:
        return MONTHLY, None
    if isinstance(coverage, bool):
        raise TypeError("coverage must be a mapping, meta object or period count")
    if isinstance(coverage, int):
        return MONTHLY, coverage
    if isinstance(coverage, Mapping):
        granularity = coverage.get("granularity") or coverage.get("nativeGranularity") or MONTHLY
        count = coverage.get("count", coverage.get("periodCount"))
    else:
        granularity = getattr(coverage, "granularity", None) or MONTHLY
        count = getattr(coverage, "count", None)
    try:
        count = int(count) if count is not None else None
    except (TypeError, ValueError):
        count = None
    return str(granularity), count


def _label(count: int, granularity: str) -> str:
    if granularity == MONTHLY and count >= 36 and count % 12 == 0:
        return f"{count // 12} years"
    if granularity == QUARTERLY and count >= 8 and count % 4 == 0:
        return f"{count // 4} years"
    singular, plural = _UNIT_LABELS.get(granularity, ("period", "periods"))
    return f"{count} {singular if count == 1 else plural}"


def limit_time_range_options(coverage: Any) -> List[TimeRangeDefinition]:
    """Trailing-window choices for a dataset, never longer than its period count."""
    granularity, count = _coverage(coverage)
    ladder = TIME_RANGE_LADDERS.get(granularity, TIME_RANGE_LADDERS[MONTHLY])
    options = [
        TimeRangeDefinition(key=n, label=_label(n, granularity))
        for n in ladder
        if count is None or n <= count
    ]
    options.append(TimeRangeDefinition(key=ALL, label=ALL_LABEL))
    return options


def normalize_time_range(value: Any, fallback: TimeRangeOption = DEFAULT_TIME_RANGE) -> TimeRangeOption:
    if value == ALL:
        return ALL
    if fallback == ALL:
        return fallback
    if isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)) and math.isfinite(value) and value > 0:
        return int(value)
    if isinstance(value, str) and value.strip().isdigit() and int(value) > 0:
        return int(value)
    return fallback


def window_size(option: TimeRangeOption) -> Optional[int]:
    """Period count for an option; None means unbounded."""
    if option is None or option == ALL or isinstance(option, bool):
        return None
    try:
        n = int(option)
    except (TypeError, ValueError):
        return None
    return n if n > 0 else None


def limit_periods(periods: Iterable[str], option: TimeRangeOption) -> List[str]:
    ordered = sort_periods(periods)
    n = window_size(option)
    if n is None:
        return ordered
    return ordered[-n:]


def resolve_time_range(periods: Iterable[str], option: TimeRangeOption) -> TimeRangeWindow:
    kept = limit_periods(periods, option)
    if not kept:
        return TimeRangeWindow(start=None, end=None, count=0)
    return TimeRangeWindow(start=kept[0], end=kept[-1], count=len(kept))
