from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set

import pandas as pd

from dataview.aggregate import (
    LATEST,
    SUM,
    Record,
    ValueAccessor,
    clean_number,
    coerce_values,
    combine_grouped,
    record_period,
)
from dataview.keys import (
    OTHER_KEY,
    OTHER_LABEL,
    StackTotal,
    build_key_request,
    overflow_keys,
    rank_keys,
    resolve_active_keys,
)
from dataview.period import PeriodGranularityError, group_period, is_coarser_or_equal, periods_per_bucket

logger = logging.getLogger(__name__)

KeyAccessor = Callable[[Record], Any]
GROUPED_VALUE_MODES = (SUM, LATEST)


@dataclass(frozen=True)
class StackResult:
    keys: List[str] = field(default_factory=list)
    label_map: Dict[str, str] = field(default_factory=dict)
    series: List[Dict[str, Any]] = field(default_factory=list)
    totals: List[StackTotal] = field(default_factory=list)

    def to_frame(self) -> pd.DataFrame:
        rows = [{"period": row["period"], **row["values"]} for row in self.series]
        return pd.DataFrame(rows, columns=["period", *self.keys])


def _stack_frame(records: Sequence[Record], key_accessor: KeyAccessor, value_accessor: ValueAccessor) -> pd.DataFrame:
    periods: List[str] = []
    keys: List[str] = []
    raw_values: List[Any] = []
    for record in records:
        period = record_period(record)
        if period is None:
            continue
        key = key_accessor(record)
        if key is None:
            continue
        periods.append(period)
        keys.append(str(key))
        raw_values.append(value_accessor(record))
    if not periods:
        return pd.DataFrame(columns=["period", "key", "value"])
    frame = pd.DataFrame({"period": periods, "key": keys})
    frame["value"] = coerce_values(raw_values).to_numpy()
    # stable sort keeps same-period records in input order for "latest"
    return frame.sort_values("period", kind="mergesort").reset_index(drop=True)


def _label_lookup(labels: Optional[Mapping[str, str]], label_for_key: Optional[Callable[[str], str]]) -> Callable[[str], str]:
    if label_for_key is not None:
        return lambda key: label_for_key(key) or key
    labels = labels or {}
    return lambda key: labels.get(key) or key


def _rank_totals(
    frame: pd.DataFrame,
    declared_keys: Sequence[str],
    label: Callable[[str], str],
) -> List[StackTotal]:
    sums = frame.groupby("key", sort=False)["value"].sum(min_count=1)
    totals = {str(k): clean_number(v) for k, v in sums.items()}
    return [StackTotal(key=k, label=label(k), total=totals[k]) for k in rank_keys(totals, declared_keys)]


def summarize_stack_totals(
    records: Sequence[Record],
    *,
    key_accessor: KeyAccessor,
    value_accessor: ValueAccessor,
    declared_keys: Sequence[str] = (),
    labels: Optional[Mapping[str, str]] = None,
    label_for_key: Optional[Callable[[str], str]] = None,
    excluded_keys: Optional[Iterable[str]] = None,
    allowed_keys: Optional[Iterable[str]] = None,
) -> List[StackTotal]:
    frame = _stack_frame(records, key_accessor, value_accessor)
    if frame.empty:
        return []
    ranked = _rank_totals(frame, declared_keys, _label_lookup(labels, label_for_key))
    request = build_key_request([t.key for t in ranked], excluded_keys=excluded_keys, allowed_keys=allowed_keys)
    keep = set(request.universe)
    return [t for t in ranked if t.key in keep]


def trim_incomplete_buckets(buckets: List[str], incomplete: Set[str], *, preserve_latest: bool = False) -> List[str]:
    """Drop leading and trailing incomplete buckets; interior ones stay."""
    start, end = 0, len(buckets)
    lead_limit = end - 1 if preserve_latest else end
    while start < lead_limit and buckets[start] in incomplete:
        start += 1
    if not preserve_latest:
        while end > start and buckets[end - 1] in incomplete:
            end -= 1
    return buckets[start:end]


def build_stack(
    records: Sequence[Record],
    *,
    native: str,
    key_accessor: KeyAccessor,
    value_accessor: ValueAccessor,
    period_grouping: Optional[str] = None,
    declared_keys: Sequence[str] = (),
    labels: Optional[Mapping[str, str]] = None,
    label_for_key: Optional[Callable[[str], str]] = None,
    selected_keys: Optional[Iterable[str]] = None,
    excluded_keys: Optional[Iterable[str]] = None,
    allowed_keys: Optional[Iterable[str]] = None,
    include_other: bool = False,
    top: Optional[int] = None,
    grouped_value_mode: str = SUM,
    drop_incomplete_periods: bool = False,
    preserve_latest_incomplete: bool = False,
    other_label: str = OTHER_LABEL,
) -> StackResult:
    if grouped_value_mode not in GROUPED_VALUE_MODES:
        raise ValueError(f"Unknown grouped value mode: {grouped_value_mode!r}")
    grouping = period_grouping or native
    if not is_coarser_or_equal(grouping, native):
        raise PeriodGranularityError(f"Cannot stack {native} data at finer granularity {grouping!r}")

    frame = _stack_frame(records, key_accessor, value_accessor)
    if frame.empty:
        return StackResult()

    frame["bucket"] = frame["period"].map(lambda p: group_period(p, grouping))
    label = _label_lookup(labels, label_for_key)

    totals = _rank_totals(frame, declared_keys, label)
    request = build_key_request(
        [t.key for t in totals],
        selected_keys=selected_keys,
        excluded_keys=excluded_keys,
        allowed_keys=allowed_keys,
        top=top,
    )
    active = resolve_active_keys(request)
    if not active:
        return StackResult(totals=totals)
    inactive = overflow_keys(request, active)

    if grouped_value_mode == LATEST:
        # records sharing a native period add up before the latest period is taken
        per_period = frame.groupby(["bucket", "period", "key"], sort=True)["value"].sum(min_count=1).reset_index()
        bucketed = combine_grouped(per_period["value"], [per_period["bucket"], per_period["key"]], LATEST)
    else:
        bucketed = combine_grouped(frame["value"], [frame["bucket"], frame["key"]], grouped_value_mode)
    wide = bucketed.unstack("key")
    buckets = sorted(frame["bucket"].unique())
    wide = wide.reindex(index=buckets, columns=list(dict.fromkeys([*active, *inactive])))

    keys = list(active)
    columns: Dict[str, pd.Series] = {k: wide[k] for k in active}
    if include_other and inactive:
        columns[OTHER_KEY] = wide[inactive].sum(axis=1, min_count=1)
        keys.append(OTHER_KEY)

    if drop_incomplete_periods:
        present = frame.groupby("bucket")["period"].nunique()
        incomplete = {b for b in buckets if int(present[b]) < periods_per_bucket(b, native)}
        buckets = trim_incomplete_buckets(buckets, incomplete, preserve_latest=preserve_latest_incomplete)

    series = [
        {"period": bucket, "values": {k: clean_number(columns[k].get(bucket)) for k in keys}}
        for bucket in buckets
    ]
    label_map = {k: (other_label if k == OTHER_KEY else label(k)) for k in keys}
    logger.debug("stack built: grouping=%s keys=%d rows=%d", grouping, len(keys), len(series))
    return StackResult(keys=keys, label_map=label_map, series=series, totals=totals)
