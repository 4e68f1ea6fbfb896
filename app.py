import json
import logging
from contextlib import contextmanager
from dataclasses import asdict
from typing import Optional

import pandas as pd
import streamlit as st

from dataview.charts import aggregate_line_chart, build_stacked_chart_data, stacked_area_chart, to_vega_spec
from dataview.data import file_signature, get_data_dir, list_datasets, load_dataset_file
from dataview.dataset import Dataset
from dataview.filters import TOP_MAX, TOP_MIN, normalize_controls
from dataview.period import get_period_formatter
from dataview.view import DatasetView

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def window_label(view: DatasetView, locale: str) -> str:
    periods = view.periods()
    if not periods:
        return "empty"
    fmt = get_period_formatter(view.meta.granularity, locale=locale)
    return f"{fmt(periods[0])} – {fmt(periods[-1])}"


def render_chips(*chips: Optional[str]):
    html = "".join(f"<span class='chip'>{c}</span>" for c in chips if c)
    st.markdown(f"<div class='chip-row'>{html}</div>", unsafe_allow_html=True)


@st.cache_data(show_spinner=False)
def cached_dataset_ids():
    return list_datasets()


@st.cache_data(show_spinner=False)
def cached_dataset(path_str: str, mtime: float) -> Dataset:
    return load_dataset_file(path_str)


def get_view(dataset_id: str) -> DatasetView:
    dataset = cached_dataset(*file_signature(get_data_dir() / f"{dataset_id}.json"))
    return DatasetView(dataset.meta, dataset.records)


# ---------- UI setup ----------
st.set_page_config(page_title="Dataset Explorer", layout="wide")
inject_base_styles()
st.title("Dataset Explorer")
st.caption("Stacked and aggregated views over published dataset snapshots.")

dataset_ids = cached_dataset_ids()
if not dataset_ids:
    st.error("No dataset snapshots found. Place {meta, records} JSON files in the data directory or set DATASET_DIR.")
    st.stop()

with st.sidebar:
    st.markdown("### Dataset")
    dataset_id = st.selectbox("Dataset", dataset_ids, index=0)

try:
    base_view = get_view(dataset_id)
except Exception as exc:
    logger.exception("loading %s failed", dataset_id)
    st.error(f"Could not load {dataset_id}: {exc}")
    st.stop()

meta = base_view.meta
with st.sidebar:
    st.markdown("---")
    st.markdown("### Controls")
    grouping_options = base_view.period_grouping_options()
    period_grouping = st.selectbox(
        "Period",
        [o.key for o in grouping_options],
        format_func=lambda k: next(o.label for o in grouping_options if o.key == k),
    )
    range_options = base_view.time_range_options()
    time_range = st.selectbox(
        "Time range",
        [o.key for o in range_options],
        index=len(range_options) - 1,
        format_func=lambda k: next(o.label for o in range_options if o.key == k),
    )
    metric = st.selectbox("Metric", list(meta.metrics) or [None], format_func=lambda k: meta.field_label(k) if k else "-")
    dimension = st.selectbox("Dimension", list(meta.dimensions) or [None])
    top = st.slider("Top keys", min_value=TOP_MIN, max_value=min(TOP_MAX, 20), value=5)
    include_other = st.checkbox("Group the rest as Other", value=True)
    locale = st.radio("Labels", ["en", "sq"], horizontal=True)

controls = normalize_controls(
    {
        "period_grouping": period_grouping,
        "time_range": time_range,
        "metric": metric,
        "dimension": dimension,
        "top": top,
        "include_other": include_other,
        "locale": locale,
    },
    meta=meta,
)
view = base_view.limit(controls.time_range)
formatter = get_period_formatter(controls.period_grouping or meta.granularity, locale=controls.locale)

render_chips(
    f"Coverage: {base_view.coverage_label(controls.locale)}",
    f"Window: {window_label(view, controls.locale)}",
    f"Source: {meta.source}" if meta.source else None,
    f"Generated: {meta.generated_at}" if meta.generated_at else None,
)

if controls.dimension and controls.metric:
    totals = view.summarize_stack(value_accessor=controls.metric, dimension=controls.dimension)
    with st.sidebar:
        excluded = st.multiselect(
            "Hide keys",
            options=[t.key for t in totals],
            format_func=lambda k: next((t.label for t in totals if t.key == k), k),
        )
    controls = normalize_controls({**asdict(controls), "excluded_keys": excluded}, meta=meta)

    try:
        value_mode = "latest" if controls.metric in meta.field_modes() else "sum"
        stack = view.view_as_stack(**controls.stack_kwargs(), grouped_value_mode=value_mode)
    except ValueError as exc:
        logger.exception("stack failed for %s", dataset_id)
        st.error(str(exc))
        st.stop()

    left, right = st.columns([3, 1])
    with left:
        with card(f"{meta.field_label(controls.metric)} by {controls.dimension}"):
            if not stack.series:
                st.info("No data for the selected window.")
            else:
                chart = stacked_area_chart(stack, formatter=formatter, value_title=meta.field_label(controls.metric))
                st.altair_chart(chart, use_container_width=True)
                chart_keys, chart_rows, chart_config = build_stacked_chart_data(stack)
                stack_df = pd.DataFrame(chart_rows, columns=["period", *chart_keys]).rename(
                    columns={k: cfg["label"] for k, cfg in chart_config.items()}
                )
                export_left, export_right = st.columns(2)
                export_left.download_button(
                    "Export stack CSV",
                    data=stack_df.to_csv(index=False).encode("utf-8"),
                    file_name=f"{dataset_id}_{controls.dimension}.csv",
                    mime="text/csv",
                )
                export_right.download_button(
                    "Export Vega-Lite spec",
                    data=json.dumps(to_vega_spec(chart), default=str).encode("utf-8"),
                    file_name=f"{dataset_id}_{controls.dimension}.vl.json",
                    mime="application/json",
                )
    with right:
        with card("Totals"):
            totals_df = pd.DataFrame([{"Key": t.label, "Total": t.total} for t in totals])
            st.dataframe(totals_df, use_container_width=True, hide_index=True)

if meta.metrics:
    with card("Metric trend"):
        fields = list(meta.metrics)
        rows = view.aggregate([{"key": f} for f in fields], grouping=controls.period_grouping)
        if not rows:
            st.info("No records in the selected window.")
        else:
            st.altair_chart(
                aggregate_line_chart(rows, fields, labels={f: meta.field_label(f) for f in fields}, formatter=formatter),
                use_container_width=True,
            )
            st.download_button(
                "Export CSV",
                data=pd.DataFrame(rows).to_csv(index=False).encode("utf-8"),
                file_name=f"{dataset_id}.csv",
                mime="text/csv",
            )
