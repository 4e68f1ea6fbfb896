import json
import unittest

import pandas as pd

from dataview.charts import (
    aggregate_line_chart,
    build_stacked_chart_data,
    stacked_area_chart,
    stacked_frame,
    to_vega_spec,
)
from dataview.period import MONTHLY, get_period_formatter
from dataview.stack import StackResult, build_stack

RECORDS = [
    {"period": "2024-01", "k": "A", "v": 3},
    {"period": "2024-01", "k": "B", "v": 1},
    {"period": "2024-02", "k": "A", "v": 4},
]


def sample_stack():
    return build_stack(
        RECORDS,
        native=MONTHLY,
        key_accessor=lambda r: r["k"],
        value_accessor=lambda r: r["v"],
        labels={"A": "Alpha"},
    )


class TestChartData(unittest.TestCase):
    def test_build_stacked_chart_data(self):
        keys, rows, config = build_stacked_chart_data(sample_stack())
        self.assertEqual(keys, ["A", "B"])
        self.assertEqual(rows, [{"period": "2024-01", "A": 3.0, "B": 1.0}, {"period": "2024-02", "A": 4.0, "B": None}])
        self.assertEqual(config, {"A": {"label": "Alpha"}, "B": {"label": "B"}})

    def test_empty_stack(self):
        self.assertEqual(build_stacked_chart_data(None), ([], [], {}))
        self.assertEqual(build_stacked_chart_data(StackResult()), ([], [], {}))

    def test_stacked_frame(self):
        frame = stacked_frame(sample_stack(), get_period_formatter(MONTHLY))
        self.assertEqual(len(frame), 4)
        self.assertEqual(frame.iloc[0]["period_label"], "Jan 2024")
        self.assertEqual(frame.iloc[0]["label"], "Alpha")


class TestCharts(unittest.TestCase):
    def test_stacked_area_spec(self):
        spec = to_vega_spec(stacked_area_chart(sample_stack(), value_title="Imports"))
        self.assertEqual(spec["mark"]["type"], "area")
        self.assertEqual(spec["encoding"]["y"]["title"], "Imports")
        self.assertEqual(spec["encoding"]["color"]["sort"], ["Alpha", "B"])

    def test_export_payloads(self):
        chart = stacked_area_chart(sample_stack())
        payload = json.loads(json.dumps(to_vega_spec(chart), default=str))
        self.assertEqual(payload["mark"]["type"], "area")
        keys, rows, config = build_stacked_chart_data(sample_stack())
        frame = pd.DataFrame(rows, columns=["period", *keys]).rename(columns={k: c["label"] for k, c in config.items()})
        self.assertEqual(list(frame.columns), ["period", "Alpha", "B"])
        self.assertEqual(frame.to_csv(index=False).splitlines()[1], "2024-01,3.0,1.0")

    def test_bar_mark(self):
        spec = to_vega_spec(stacked_area_chart(sample_stack(), mark="bar"))
        self.assertEqual(spec["mark"]["type"], "bar")

    def test_aggregate_line_spec(self):
        rows = [{"period": "2024-01", "v": 4.0}, {"period": "2024-02", "v": None}]
        spec = to_vega_spec(aggregate_line_chart(rows, ["v"], labels={"v": "Value"}))
        self.assertEqual(spec["mark"]["type"], "line")
        self.assertEqual(spec["encoding"]["x"]["sort"], ["2024-01", "2024-02"])


if __name__ == "__main__":
    unittest.main()
