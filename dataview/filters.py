from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from dataview.dataset import DatasetMeta
from dataview.period import DEFAULT_LOCALE, get_period_grouping_options
from dataview.time_range import ALL, DEFAULT_TIME_RANGE, TimeRangeOption, limit_time_range_options, normalize_time_range

TOP_MIN = 1
TOP_MAX = 50
DEFAULT_TOP = 5
LOCALES = ("en", "sq")


@dataclass(frozen=True)
class ChartControls:
    period_grouping: Optional[str] = None
    time_range: TimeRangeOption = DEFAULT_TIME_RANGE
    metric: Optional[str] = None
    dimension: Optional[str] = None
    top: int = DEFAULT_TOP
    include_other: bool = True
    selected_keys: List[str] = field(default_factory=list)
    excluded_keys: List[str] = field(default_factory=list)
    locale: str = DEFAULT_LOCALE

    def stack_kwargs(self) -> Dict[str, Any]:
        return {
            "value_accessor": self.metric,
            "dimension": self.dimension,
            "period_grouping": self.period_grouping,
            "selected_keys": self.selected_keys or None,
            "excluded_keys": self.excluded_keys or None,
            "include_other": self.include_other,
            "top": self.top,
        }


def _as_str_list(values: Optional[Iterable[object]]) -> List[str]:
    if not values or isinstance(values, str):
        return []
    return [str(v) for v in values if v is not None and str(v).strip()]


def normalize_controls(raw: dict, *, meta: Optional[DatasetMeta] = None) -> ChartControls:
    """Validate raw UI input against what the dataset can actually show."""
    raw = raw or {}

    groupings = [opt.key for opt in get_period_grouping_options(meta.granularity if meta else None)]
    period_grouping = raw.get("period_grouping")
    if period_grouping not in groupings:
        period_grouping = meta.granularity if meta else None

    time_range = normalize_time_range(raw.get("time_range"), DEFAULT_TIME_RANGE)
    if meta is not None and time_range != ALL:
        allowed = {opt.key for opt in limit_time_range_options(meta)}
        if time_range not in allowed and meta.count is not None and time_range >= meta.count:
            time_range = ALL

    metrics = list(meta.metrics) if meta else []
    metric = raw.get("metric")
    if metrics and metric not in metrics:
        metric = metrics[0]

    dimensions = list(meta.dimensions) if meta else []
    dimension = raw.get("dimension")
    if dimensions and dimension not in dimensions:
        dimension = dimensions[0]

    top = raw.get("top", DEFAULT_TOP)
    try:
        top = int(top)
    except (TypeError, ValueError):
        top = DEFAULT_TOP
    top = max(TOP_MIN, min(TOP_MAX, top))

    locale = raw.get("locale") if raw.get("locale") in LOCALES else DEFAULT_LOCALE

    return ChartControls(
        period_grouping=period_grouping,
        time_range=time_range,
        metric=metric,
        dimension=dimension,
        top=top,
        include_other=bool(raw.get("include_other", True)),
        selected_keys=_as_str_list(raw.get("selected_keys")),
        excluded_keys=_as_str_list(raw.get("excluded_keys")),
        locale=locale,
    )
