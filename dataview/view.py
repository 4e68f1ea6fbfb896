from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from dataview.aggregate import SUM, AggregateField, Record, ValueAccessor, aggregate_records, make_accessor, record_period
from dataview.dataset import Dataset, DatasetMeta, DimensionOption, build_key_label_map, coverage_label, parse_dataset
from dataview.keys import OTHER_LABEL, StackTotal
from dataview.period import DEFAULT_LOCALE, PeriodGroupingOption, get_period_grouping_options, group_period, sort_periods
from dataview.stack import StackResult, build_stack, summarize_stack_totals
from dataview.time_range import TimeRangeDefinition, TimeRangeOption, limit_periods, limit_time_range_options

logger = logging.getLogger(__name__)

KeySpec = Union[Callable[[Record], Any], str, None]


class DatasetView:
    """Immutable, chainable view over a dataset's records."""

    __slots__ = ("_meta", "_records")

    def __init__(self, meta: DatasetMeta, records: Iterable[Record] = ()):
        self._meta = meta
        self._records: Tuple[Record, ...] = tuple(records)

    def __repr__(self) -> str:
        return f"DatasetView(id={self._meta.id!r}, records={len(self._records)})"

    def __len__(self) -> int:
        return len(self._records)

    @property
    def meta(self) -> DatasetMeta:
        return self._meta

    @property
    def records(self) -> Tuple[Record, ...]:
        return self._records

    def to_dataset(self) -> Dataset:
        return Dataset(meta=self._meta, records=self._records)

    # ---- windowing ----

    def limit(self, option: TimeRangeOption = None) -> "DatasetView":
        keep = set(limit_periods((p for p in map(record_period, self._records) if p is not None), option))
        return DatasetView(self._meta, (r for r in self._records if record_period(r) in keep))

    def slice(self, start: Optional[str] = None, end: Optional[str] = None) -> "DatasetView":
        def inside(record: Record) -> bool:
            period = record_period(record)
            if period is None:
                return False
            if start and period < start:
                return False
            if end and period > end:
                return False
            return True

        return DatasetView(self._meta, (r for r in self._records if inside(r)))

    def periods(self, grouping: Optional[str] = None) -> List[str]:
        raw = (p for p in map(record_period, self._records) if p is not None)
        if grouping and grouping != self._meta.granularity:
            raw = (group_period(p, grouping) for p in raw)
        return sort_periods(raw)

    # ---- derived series ----

    def aggregate(
        self,
        fields: Sequence[Union[AggregateField, Mapping[str, Any]]],
        grouping: Optional[str] = None,
        filter: Optional[Callable[[Record], bool]] = None,
    ) -> List[Dict[str, Any]]:
        return aggregate_records(
            self._records,
            fields,
            native=self._meta.granularity,
            grouping=grouping,
            filter=filter,
            field_modes=self._meta.field_modes(),
        )

    def _stack_context(
        self,
        key_accessor: KeySpec,
        value_accessor: Union[ValueAccessor, str, None],
        dimension: Optional[str],
        dimension_options: Optional[Sequence[Any]],
    ) -> Tuple[Callable[[Record], Any], ValueAccessor, List[str], Dict[str, str]]:
        if key_accessor is None and not dimension:
            raise ValueError("Stacking needs a key_accessor or a dimension")
        keys = make_accessor(key_accessor, dimension)
        if value_accessor is None and not self._meta.metrics:
            raise ValueError("Stacking needs a value_accessor when the dataset declares no metrics")
        values = make_accessor(value_accessor, self._meta.metrics[0] if self._meta.metrics else None)
        if dimension_options is not None:
            labels = build_key_label_map(dimension_options)
            declared = list(labels)
        else:
            labels = self._meta.label_map(dimension)
            declared = self._meta.dimension_keys(dimension)
        return keys, values, declared, labels

    def view_as_stack(
        self,
        value_accessor: Union[ValueAccessor, str, None] = None,
        key_accessor: KeySpec = None,
        dimension: Optional[str] = None,
        period_grouping: Optional[str] = None,
        selected_keys: Optional[Iterable[str]] = None,
        excluded_keys: Optional[Iterable[str]] = None,
        include_other: bool = False,
        top: Optional[int] = None,
        grouped_value_mode: str = SUM,
        drop_incomplete_periods: bool = False,
        preserve_latest_incomplete: bool = False,
        allowed_keys: Optional[Iterable[str]] = None,
        label_for_key: Optional[Callable[[str], str]] = None,
        dimension_options: Optional[Sequence[Union[DimensionOption, Mapping[str, Any]]]] = None,
        other_label: str = OTHER_LABEL,
    ) -> StackResult:
        keys, values, declared, labels = self._stack_context(key_accessor, value_accessor, dimension, dimension_options)
        return build_stack(
            self._records,
            native=self._meta.granularity,
            key_accessor=keys,
            value_accessor=values,
            period_grouping=period_grouping,
            declared_keys=declared,
            labels=labels,
            label_for_key=label_for_key,
            selected_keys=selected_keys,
            excluded_keys=excluded_keys,
            allowed_keys=allowed_keys,
            include_other=include_other,
            top=top,
            grouped_value_mode=grouped_value_mode,
            drop_incomplete_periods=drop_incomplete_periods,
            preserve_latest_incomplete=preserve_latest_incomplete,
            other_label=other_label,
        )

    def summarize_stack(
        self,
        value_accessor: Union[ValueAccessor, str, None] = None,
        key_accessor: KeySpec = None,
        dimension: Optional[str] = None,
        excluded_keys: Optional[Iterable[str]] = None,
        allowed_keys: Optional[Iterable[str]] = None,
        label_for_key: Optional[Callable[[str], str]] = None,
        dimension_options: Optional[Sequence[Union[DimensionOption, Mapping[str, Any]]]] = None,
    ) -> List[StackTotal]:
        keys, values, declared, labels = self._stack_context(key_accessor, value_accessor, dimension, dimension_options)
        return summarize_stack_totals(
            self._records,
            key_accessor=keys,
            value_accessor=values,
            declared_keys=declared,
            labels=labels,
            label_for_key=label_for_key,
            excluded_keys=excluded_keys,
            allowed_keys=allowed_keys,
        )

    def totals_by_key(self, **kwargs: Any) -> Dict[str, Optional[float]]:
        return {t.key: t.total for t in self.summarize_stack(**kwargs)}

    # ---- control options ----

    def time_range_options(self) -> List[TimeRangeDefinition]:
        return limit_time_range_options(self._meta)

    def period_grouping_options(self) -> List[PeriodGroupingOption]:
        return get_period_grouping_options(self._meta.granularity)

    def coverage_label(self, locale: str = DEFAULT_LOCALE) -> str:
        return coverage_label(self._meta, locale=locale)


def create_dataset(
    data: Union[Dataset, Mapping[str, Any]],
    *,
    limit: TimeRangeOption = None,
    slice: Optional[Mapping[str, Optional[str]]] = None,
    default_id: str = "dataset",
) -> DatasetView:
    dataset = parse_dataset(data, default_id=default_id)
    view = DatasetView(dataset.meta, dataset.records)
    if limit is not None:
        view = view.limit(limit)
    if slice:
        view = view.slice(slice.get("start"), slice.get("end"))
    logger.debug("created %r", view)
    return view
