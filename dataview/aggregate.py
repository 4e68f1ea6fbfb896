from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from dataview.period import PeriodGranularityError, group_period, is_coarser_or_equal

SUM = "sum"
AVERAGE = "average"
LATEST = "latest"
COMPOUND_CHANGE = "compound_change"
AGGREGATION_MODES = (SUM, AVERAGE, LATEST, COMPOUND_CHANGE)
_MODE_ALIASES = {"compoundChange": COMPOUND_CHANGE}

Record = Mapping[str, Any]
ValueAccessor = Callable[[Record], Any]


@dataclass(frozen=True)
class AggregateField:
    key: str
    value_accessor: Union[ValueAccessor, str, None] = None
    mode: Optional[str] = None


def make_accessor(spec: Union[ValueAccessor, str, None], default_key: Optional[str] = None) -> ValueAccessor:
    if callable(spec):
        return spec
    field_name = spec if spec is not None else default_key
    if field_name is None:
        raise ValueError("A value accessor or field name is required")
    return lambda record: record.get(field_name)


def _scalar(value: Any) -> Any:
    # to_numeric chokes on containers; bools are flags, not measurements
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (int, float, str, np.number)):
        return value
    return None


def coerce_values(values: Iterable[Any]) -> pd.Series:
    """Coerce raw values to float, non-numeric and infinite values become NaN."""
    raw = pd.Series([_scalar(v) for v in values], dtype=object)
    series = pd.to_numeric(raw, errors="coerce").astype(float)
    return series.replace([np.inf, -np.inf], np.nan)


def clean_number(value: Any) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    out = float(value)
    if not np.isfinite(out):
        return None
    return out


def combine_grouped(values: pd.Series, by: Union[pd.Series, List[pd.Series]], mode: str = SUM) -> pd.Series:
    """Reduce ``values`` per group. Values must already be in chronological order.

    An all-null group yields NaN for every mode, so "no data" stays distinct
    from zero.
    """
    grouped = values.groupby(by, sort=True)
    if mode == SUM:
        return grouped.sum(min_count=1)
    if mode == AVERAGE:
        return grouped.mean()
    if mode == LATEST:
        return grouped.last()
    if mode == COMPOUND_CHANGE:
        # rates above 1 in magnitude are percentages
        rates = values.where(values.abs() <= 1, values / 100)
        return (1 + rates).groupby(by, sort=True).prod(min_count=1) - 1
    raise ValueError(f"Unknown aggregation mode: {mode!r}")


def as_field(field: Union[AggregateField, Mapping[str, Any]]) -> AggregateField:
    if isinstance(field, AggregateField):
        return field
    return AggregateField(
        key=str(field["key"]),
        value_accessor=field.get("value_accessor", field.get("valueAccessor")),
        mode=_MODE_ALIASES.get(field.get("mode"), field.get("mode")),
    )


def record_period(record: Record) -> Optional[str]:
    period = record.get("period") if isinstance(record, Mapping) else None
    if period is None:
        return None
    return str(period)


def aggregate_records(
    records: Sequence[Record],
    fields: Sequence[Union[AggregateField, Mapping[str, Any]]],
    *,
    native: str,
    grouping: Optional[str] = None,
    filter: Optional[Callable[[Record], bool]] = None,
    field_modes: Optional[Mapping[str, str]] = None,
) -> List[Dict[str, Any]]:
    fields = [as_field(f) for f in fields]
    relevant = [r for r in records if record_period(r) is not None and (filter is None or filter(r))]
    if not relevant or not fields:
        return []

    grouping = grouping or native
    if not is_coarser_or_equal(grouping, native):
        raise PeriodGranularityError(f"Cannot aggregate {native} data to finer granularity {grouping!r}")

    periods = pd.Series([record_period(r) for r in relevant], dtype=object)

    columns: Dict[str, pd.Series] = {}
    for field in fields:
        accessor = make_accessor(field.value_accessor, field.key)
        values = coerce_values(accessor(r) for r in relevant)
        # rows sharing a native period are one observation; the mode applies across periods
        per_period = combine_grouped(values, periods, SUM)
        buckets = per_period.index.to_series().map(lambda p: group_period(p, grouping))
        mode = field.mode or (field_modes or {}).get(field.key) or SUM
        columns[field.key] = combine_grouped(per_period, buckets, mode)

    order = sorted({group_period(p, grouping) for p in periods})
    rows: List[Dict[str, Any]] = []
    for bucket in order:
        row: Dict[str, Any] = {"period": bucket}
        for field in fields:
            row[field.key] = clean_number(columns[field.key].get(bucket))
        rows.append(row)
    return rows
