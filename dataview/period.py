from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

DAILY = "daily"
MONTHLY = "monthly"
QUARTERLY = "quarterly"
YEARLY = "yearly"

# Ordered fine -> coarse.
GRANULARITIES: Tuple[str, ...] = (DAILY, MONTHLY, QUARTERLY, YEARLY)
_RANK = {g: i for i, g in enumerate(GRANULARITIES)}

DAY_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")
QUARTER_PATTERN = re.compile(r"^(\d{4})-Q([1-4])$")
YEAR_PATTERN = re.compile(r"^(\d{4})$")

PeriodFormatter = Callable[[str], str]


class PeriodGranularityError(ValueError):
    """Raised when a period is grouped to a finer granularity than it carries."""


@dataclass(frozen=True)
class PeriodGroupingOption:
    key: str
    label: str


GROUPING_LABELS: Dict[str, str] = {
    DAILY: "Daily",
    MONTHLY: "Monthly",
    QUARTERLY: "Quarterly",
    YEARLY: "Yearly",
}

_MONTHS = {
    "en": ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"],
    "sq": ["Jan", "Shk", "Mar", "Pri", "Maj", "Qer", "Kor", "Gus", "Sht", "Tet", "Nën", "Dhj"],
}
_QUARTER_PREFIX = {"en": "Q", "sq": "T"}
DEFAULT_LOCALE = "en"


def _check_granularity(granularity: str) -> str:
    if granularity not in _RANK:
        raise ValueError(f"Unknown period granularity: {granularity!r}")
    return granularity


def _parse(period: str) -> Optional[Tuple[str, int, int, int]]:
    """Return (granularity, year, sub, day) for a recognised key."""
    s = str(period).strip()
    m = DAY_PATTERN.match(s)
    if m:
        year, month, day = int(m.group(1)), int(m.group(2)), int(m.group(3))
        if 1 <= month <= 12 and 1 <= day <= calendar.monthrange(year, month)[1]:
            return DAILY, year, month, day
        return None
    m = MONTH_PATTERN.match(s)
    if m:
        year, month = int(m.group(1)), int(m.group(2))
        return (MONTHLY, year, month, 0) if 1 <= month <= 12 else None
    m = QUARTER_PATTERN.match(s)
    if m:
        return QUARTERLY, int(m.group(1)), int(m.group(2)), 0
    m = YEAR_PATTERN.match(s)
    if m:
        return YEARLY, int(m.group(1)), 0, 0
    return None


def detect_granularity(period: str) -> Optional[str]:
    parsed = _parse(period)
    return parsed[0] if parsed else None


def is_coarser_or_equal(target: str, native: str) -> bool:
    return _RANK[_check_granularity(target)] >= _RANK[_check_granularity(native)]


def group_period(period: str, target: str) -> str:
    """Map ``period`` onto the bucket key of the coarser ``target`` granularity.

    Keys that match no known pattern are returned unchanged. Asking for a finer
    granularity than the key carries raises ``PeriodGranularityError``.
    """
    _check_granularity(target)
    parsed = _parse(period)
    if parsed is None:
        return period
    source, year, sub, day = parsed
    if _RANK[target] < _RANK[source]:
        raise PeriodGranularityError(f"Cannot group {source} period {period!r} to finer granularity {target!r}")
    if target == source:
        return str(period).strip()
    if target == YEARLY:
        return f"{year:04d}"
    if target == QUARTERLY:
        # source is daily or monthly here, sub is the month
        return f"{year:04d}-Q{(sub - 1) // 3 + 1}"
    # target == MONTHLY, source == DAILY
    return f"{year:04d}-{sub:02d}"


def periods_per_bucket(bucket: str, native: str) -> int:
    """Number of native periods that fully cover ``bucket``."""
    _check_granularity(native)
    parsed = _parse(bucket)
    if parsed is None:
        return 1
    grouping, year, sub, _ = parsed
    if _RANK[grouping] <= _RANK[native]:
        return 1
    if native == DAILY:
        if grouping == MONTHLY:
            return calendar.monthrange(year, sub)[1]
        if grouping == QUARTERLY:
            first = (sub - 1) * 3 + 1
            return sum(calendar.monthrange(year, m)[1] for m in range(first, first + 3))
        return 366 if calendar.isleap(year) else 365
    if native == MONTHLY:
        return 3 if grouping == QUARTERLY else 12
    # native quarterly, grouping yearly
    return 4


def sort_periods(periods: Iterable[str]) -> List[str]:
    return sorted(set(periods))


def get_period_grouping_options(native: Optional[str] = None) -> List[PeriodGroupingOption]:
    if native not in _RANK:
        allowed = GRANULARITIES
    else:
        allowed = GRANULARITIES[_RANK[native]:]
    return [PeriodGroupingOption(key=g, label=GROUPING_LABELS[g]) for g in allowed]


def format_period(
    period: str,
    granularity: str,
    locale: str = DEFAULT_LOCALE,
    fallback: Optional[str] = None,
) -> str:
    if not period:
        return fallback or ""
    fallback_label = fallback if fallback is not None else str(period)
    parsed = _parse(period)
    if parsed is None or parsed[0] != granularity:
        return fallback_label
    months = _MONTHS.get(locale, _MONTHS[DEFAULT_LOCALE])
    _, year, sub, day = parsed
    if granularity == DAILY:
        return f"{day} {months[sub - 1]} {year}"
    if granularity == MONTHLY:
        return f"{months[sub - 1]} {year}"
    if granularity == QUARTERLY:
        return f"{_QUARTER_PREFIX.get(locale, 'Q')}{sub} {year}"
    return str(year)


def get_period_formatter(granularity: str, locale: str = DEFAULT_LOCALE) -> PeriodFormatter:
    return lambda period: format_period(period, granularity, locale=locale)
