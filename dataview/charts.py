from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import altair as alt
import pandas as pd

from dataview.aggregate import clean_number
from dataview.period import PeriodFormatter
from dataview.stack import StackResult

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def build_stacked_chart_data(
    stack: Optional[StackResult],
) -> Tuple[List[str], List[Dict[str, Any]], Dict[str, Dict[str, str]]]:
    """Flatten a stack into chart keys, ``{"period", key: value}`` rows and a label config."""
    if stack is None or not stack.keys or not stack.series:
        return [], [], {}
    chart_keys = [str(k) for k in stack.keys]
    chart_data = []
    for row in stack.series:
        flat: Dict[str, Any] = {"period": row["period"]}
        for key in stack.keys:
            flat[str(key)] = clean_number(row["values"].get(key))
        chart_data.append(flat)
    chart_config = {str(k): {"label": stack.label_map.get(k, str(k))} for k in stack.keys}
    return chart_keys, chart_data, chart_config


def stacked_frame(stack: StackResult, formatter: Optional[PeriodFormatter] = None) -> pd.DataFrame:
    fmt = formatter or (lambda p: p)
    rows = []
    for row in stack.series:
        for order, key in enumerate(stack.keys):
            rows.append(
                {
                    "period": row["period"],
                    "period_label": fmt(row["period"]),
                    "key": key,
                    "label": stack.label_map.get(key, key),
                    "value": row["values"].get(key),
                    "order": order,
                }
            )
    return pd.DataFrame(rows, columns=["period", "period_label", "key", "label", "value", "order"])


def stacked_area_chart(
    stack: StackResult,
    *,
    formatter: Optional[PeriodFormatter] = None,
    value_title: str = "Value",
    value_format: str = "~s",
    mark: str = "area",
    height: int = 320,
) -> alt.Chart:
    df = stacked_frame(stack, formatter)
    period_labels = list(dict.fromkeys(df["period_label"].tolist()))
    key_labels = [stack.label_map.get(k, k) for k in stack.keys]
    base = alt.Chart(df)
    marked = base.mark_bar() if mark == "bar" else base.mark_area(opacity=0.85)
    return marked.encode(
        x=alt.X("period_label:O", title=None, sort=period_labels, axis=alt.Axis(labelAngle=-45, grid=False)),
        y=alt.Y(
            "value:Q",
            stack="zero",
            title=value_title,
            axis=alt.Axis(format=value_format, gridDash=[4, 4], domain=False, ticks=False),
        ),
        color=alt.Color("label:N", title=None, sort=key_labels),
        order=alt.Order("order:Q"),
        tooltip=["period_label", "label", alt.Tooltip("value:Q", format=",.0f")],
    ).properties(height=height)


def aggregate_line_chart(
    rows: Sequence[Mapping[str, Any]],
    fields: Sequence[str],
    *,
    labels: Optional[Mapping[str, str]] = None,
    formatter: Optional[PeriodFormatter] = None,
    value_format: str = "~s",
    height: int = 260,
) -> alt.Chart:
    fmt = formatter or (lambda p: p)
    labels = labels or {}
    long_rows = [
        {"period_label": fmt(r["period"]), "field": labels.get(f, f), "value": r.get(f)}
        for r in rows
        for f in fields
    ]
    df = pd.DataFrame(long_rows, columns=["period_label", "field", "value"])
    period_labels = list(dict.fromkeys(df["period_label"].tolist()))
    return (
        alt.Chart(df)
        .mark_line(point={"filled": True, "size": 40})
        .encode(
            x=alt.X("period_label:O", title=None, sort=period_labels, axis=alt.Axis(labelAngle=-45, grid=False)),
            y=alt.Y("value:Q", title=None, axis=alt.Axis(format=value_format, gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("field:N", title=None),
            tooltip=["period_label", "field", alt.Tooltip("value:Q", format=",.2f")],
        )
        .properties(height=height)
    )
