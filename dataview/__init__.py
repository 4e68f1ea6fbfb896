"""Dataset view engine (UI-agnostic).

This package contains:
- period model (granularities, grouping, labels)
- time-range options and trailing-window limiting
- aggregation and stacked (pivoted) series with top-K + "Other"
- the DatasetView facade over a {meta, records} snapshot
- snapshot loading (JSON -> Dataset) and control normalization
- chart helpers (Altair -> Vega-Lite spec dict)
"""
