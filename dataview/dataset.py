from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from dataview.aggregate import AVERAGE, record_period
from dataview.period import DEFAULT_LOCALE, GRANULARITIES, MONTHLY, detect_granularity, format_period, sort_periods

logger = logging.getLogger(__name__)

# value_type -> aggregation mode when a field does not say otherwise
VALUE_TYPE_MODES = {"stock": AVERAGE}

_KNOWN_META_KEYS = {
    "id",
    "time",
    "granularity",
    "nativeGranularity",
    "native_granularity",
    "fields",
    "metricFields",
    "metric_fields",
    "metrics",
    "dimensions",
    "generated_at",
    "generatedAt",
    "source",
    "periodCount",
    "period_count",
    "periods",
}


@dataclass(frozen=True)
class MetaField:
    key: str
    label: str
    unit: Optional[str] = None
    value_type: Optional[str] = None


@dataclass(frozen=True)
class DimensionOption:
    key: str
    label: str


@dataclass(frozen=True)
class DatasetMeta:
    id: str = "dataset"
    granularity: str = MONTHLY
    first: Optional[str] = None
    last: Optional[str] = None
    count: Optional[int] = None
    fields: Tuple[MetaField, ...] = ()
    metrics: Tuple[str, ...] = ()
    dimensions: Mapping[str, Tuple[DimensionOption, ...]] = field(default_factory=dict)
    generated_at: Optional[str] = None
    source: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def dimension_options(self, name: Optional[str]) -> Tuple[DimensionOption, ...]:
        if not name:
            return ()
        return tuple(self.dimensions.get(name, ()))

    def dimension_keys(self, name: Optional[str]) -> List[str]:
        return [opt.key for opt in self.dimension_options(name)]

    def label_map(self, name: Optional[str]) -> Dict[str, str]:
        return build_key_label_map(self.dimension_options(name))

    def field_modes(self) -> Dict[str, str]:
        return {f.key: VALUE_TYPE_MODES[f.value_type] for f in self.fields if f.value_type in VALUE_TYPE_MODES}

    def field_label(self, key: str) -> str:
        for f in self.fields:
            if f.key == key:
                return f.label
        return key


@dataclass(frozen=True)
class Dataset:
    meta: DatasetMeta
    records: Tuple[Mapping[str, Any], ...] = ()


def _resolve_label(key: str, label: Any) -> str:
    if isinstance(label, str) and label.strip():
        return label.strip()
    return key


def build_key_label_map(options: Iterable[Any]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for opt in options or ():
        if opt is None:
            continue
        if isinstance(opt, DimensionOption):
            key, label = opt.key, opt.label
        elif isinstance(opt, Mapping):
            key, label = opt.get("key"), opt.get("label")
        else:
            key, label = opt, None
        if key is None or key == "":
            continue
        out[str(key)] = _resolve_label(str(key), label)
    return out


def _parse_fields(raw: Any) -> Tuple[MetaField, ...]:
    out: List[MetaField] = []
    for item in raw or ():
        if isinstance(item, Mapping) and item.get("key"):
            key = str(item["key"])
            out.append(
                MetaField(
                    key=key,
                    label=_resolve_label(key, item.get("label")),
                    unit=item.get("unit"),
                    value_type=item.get("value_type") or item.get("valueType"),
                )
            )
        elif isinstance(item, str) and item:
            out.append(MetaField(key=item, label=item))
    return tuple(out)


def _parse_dimensions(raw: Any) -> Dict[str, Tuple[DimensionOption, ...]]:
    if not isinstance(raw, Mapping):
        if raw is not None:
            logger.warning("Ignoring malformed dimensions table of type %s", type(raw).__name__)
        return {}
    out: Dict[str, Tuple[DimensionOption, ...]] = {}
    for name, options in raw.items():
        if not isinstance(options, (list, tuple)):
            logger.warning("Ignoring malformed options for dimension %r", name)
            continue
        labels = build_key_label_map(options)
        out[str(name)] = tuple(DimensionOption(key=k, label=v) for k, v in labels.items())
    return out


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_meta(raw: Any, records: Sequence[Mapping[str, Any]] = (), *, default_id: str = "dataset") -> DatasetMeta:
    """Build a DatasetMeta from either the flat or the published nested shape.

    Missing pieces are derived from ``records`` where possible; nothing here
    raises on malformed input.
    """
    if not isinstance(raw, Mapping):
        if raw is not None:
            logger.warning("Dataset meta is not a mapping (%s); using defaults", type(raw).__name__)
        raw = {}
    time = raw.get("time") if isinstance(raw.get("time"), Mapping) else {}
    periods = sort_periods(p for p in (record_period(r) for r in records) if p is not None)

    granularity = (
        time.get("granularity")
        or raw.get("granularity")
        or raw.get("nativeGranularity")
        or raw.get("native_granularity")
    )
    if granularity not in GRANULARITIES:
        detected = detect_granularity(periods[0]) if periods else None
        logger.warning(
            "Dataset %r has unknown granularity %r; using %s",
            raw.get("id", default_id),
            granularity,
            detected or MONTHLY,
        )
        granularity = detected or MONTHLY

    count = _as_int(time.get("count"))
    if count is None:
        count = _as_int(raw.get("periodCount", raw.get("period_count", raw.get("periods"))))
    if count is None and periods:
        count = len(periods)

    fields = _parse_fields(raw.get("fields") or raw.get("metricFields") or raw.get("metric_fields"))
    metrics_raw = raw.get("metrics")
    if isinstance(metrics_raw, (list, tuple)) and metrics_raw:
        metrics = tuple(str(m) for m in metrics_raw if m)
    else:
        metrics = tuple(f.key for f in fields)

    return DatasetMeta(
        id=str(raw.get("id") or default_id),
        granularity=granularity,
        first=time.get("first") or (periods[0] if periods else None),
        last=time.get("last") or (periods[-1] if periods else None),
        count=count,
        fields=fields,
        metrics=metrics,
        dimensions=_parse_dimensions(raw.get("dimensions")),
        generated_at=raw.get("generated_at") or raw.get("generatedAt"),
        source=raw.get("source"),
        extra={k: v for k, v in raw.items() if k not in _KNOWN_META_KEYS},
    )


def parse_dataset(raw: Any, *, default_id: str = "dataset") -> Dataset:
    if isinstance(raw, Dataset):
        return raw
    if not isinstance(raw, Mapping):
        raise TypeError(f"Expected a dataset mapping, got {type(raw).__name__}")
    raw_records = raw.get("records") or ()
    records = tuple(r for r in raw_records if isinstance(r, Mapping))
    skipped = len(raw_records) - len(records)
    if skipped:
        logger.warning("Skipped %d non-object records in dataset %r", skipped, default_id)
    return Dataset(meta=parse_meta(raw.get("meta"), records, default_id=default_id), records=records)


def coverage_label(meta: DatasetMeta, *, locale: str = DEFAULT_LOCALE, separator: str = " – ") -> str:
    first = format_period(meta.first, meta.granularity, locale=locale) if meta.first else ""
    last = format_period(meta.last, meta.granularity, locale=locale) if meta.last else ""
    if not first and not last:
        return ""
    if not first or not last or first == last:
        return first or last
    return f"{first}{separator}{last}"
