import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from dataview.data import (
    DEFAULT_DATA_DIR,
    DatasetLoadError,
    clear_cache,
    get_data_dir,
    list_datasets,
    load_dataset,
    load_dataset_file,
    load_dataset_view,
)


def write_snapshot(root: Path, name: str, periods):
    payload = {
        "meta": {"id": name, "granularity": "monthly", "metrics": ["v"]},
        "records": [{"period": p, "k": "A", "v": i} for i, p in enumerate(periods, start=1)],
    }
    path = root / f"{name}.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


class TestDatasetLoading(unittest.TestCase):
    def setUp(self):
        clear_cache()
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)

    def tearDown(self):
        clear_cache()
        self._tmp.cleanup()

    def test_list_skips_bad_files(self):
        write_snapshot(self.root, "good", ["2024-01"])
        (self.root / "broken.json").write_text("{not json", encoding="utf-8")
        (self.root / "wrong.json").write_text("[1, 2]", encoding="utf-8")
        (self.root / "notes.txt").write_text("ignored", encoding="utf-8")
        with self.assertLogs("dataview.data", level="WARNING"):
            ids = list_datasets(self.root)
        self.assertEqual(ids, ["good"])

    def test_load_errors(self):
        (self.root / "broken.json").write_text("{not json", encoding="utf-8")
        with self.assertRaises(DatasetLoadError):
            load_dataset("broken", self.root)
        with self.assertRaises(FileNotFoundError):
            load_dataset("missing", self.root)

    def test_load_dataset_and_view(self):
        write_snapshot(self.root, "trade", ["2024-01", "2024-02", "2024-03"])
        dataset = load_dataset("trade", self.root)
        self.assertEqual(dataset.meta.id, "trade")
        self.assertEqual(dataset.meta.count, 3)
        view = load_dataset_view("trade", limit=2, data_dir=self.root)
        self.assertEqual(view.periods(), ["2024-02", "2024-03"])

    def test_cache_reuses_and_refreshes_on_change(self):
        path = write_snapshot(self.root, "trade", ["2024-01"])
        first = load_dataset_file(path)
        self.assertIs(load_dataset_file(path), first)
        write_snapshot(self.root, "trade", ["2024-01", "2024-02"])
        stat = path.stat()
        os.utime(path, (stat.st_atime, stat.st_mtime + 10))
        self.assertEqual(len(load_dataset_file(path).records), 2)

    def test_data_dir_from_env(self):
        with mock.patch.dict(os.environ, {"DATASET_DIR": str(self.root)}):
            self.assertEqual(get_data_dir(), self.root)
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(get_data_dir(), DEFAULT_DATA_DIR)
        self.assertEqual(get_data_dir("/tmp/x"), Path("/tmp/x"))

    def test_missing_dir_lists_nothing(self):
        self.assertEqual(list_datasets(self.root / "nope"), [])


class TestBundledSnapshots(unittest.TestCase):
    def test_sample_data_loads(self):
        clear_cache()
        ids = list_datasets(DEFAULT_DATA_DIR)
        self.assertIn("trade_imports_by_partner", ids)
        view = load_dataset_view("trade_imports_by_partner", limit=12, data_dir=DEFAULT_DATA_DIR)
        self.assertEqual(len(view.periods()), 12)
        result = view.view_as_stack(dimension="partner", top=3, include_other=True)
        self.assertEqual(len(result.keys), 4)

    def test_stock_snapshot_trend_is_period_total(self):
        clear_cache()
        view = load_dataset_view("labour_employment_by_activity", data_dir=DEFAULT_DATA_DIR)
        rows = view.aggregate([{"key": "employment"}])
        self.assertEqual(rows[0]["period"], "2022-Q1")
        self.assertAlmostEqual(rows[0]["employment"], 181.0)


if __name__ == "__main__":
    unittest.main()
