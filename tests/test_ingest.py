from __future__ import annotations

import json
import tempfile
from pathlib import Path

import pytest

from sheetpress.pipeline.ingest import load_dataset


def test_load_csv_skips_blank_rows() -> None:
    with tempfile.TemporaryDirectory() as temp_dir:
        path = Path(temp_dir) / "people.csv"
        path.write_text("Name, Price\nAda,12\n,\nAlan, 7 \n", encoding="utf-8")
        dataset = load_dataset(path)
        assert dataset.headers == ["Name", "Price"]
        assert dataset.rows == [{"Name": "Ada", "Price": "12"}, {"Name": "Alan", "Price": "7"}]


def test_load_json_rows() -> None:
    with tempfile.TemporaryDirectory() as temp_dir:
        path = Path(temp_dir) / "people.json"
        path.write_text(json.dumps({"rows": [{"Name": "Ada", "Age": 36}, {"Team": "x"}]}), encoding="utf-8")
        dataset = load_dataset(path)
        assert dataset.headers == ["Name", "Age", "Team"]
        assert dataset.rows[0]["Age"] == 36


def test_bad_inputs() -> None:
    with tempfile.TemporaryDirectory() as temp_dir:
        root = Path(temp_dir)
        with pytest.raises(FileNotFoundError):
            load_dataset(root / "missing.csv")
        (root / "data.xlsx").write_bytes(b"")
        with pytest.raises(ValueError):
            load_dataset(root / "data.xlsx")
        (root / "empty.csv").write_text("Name\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_dataset(root / "empty.csv")
        (root / "bad.json").write_text('{"rows": 3}', encoding="utf-8")
        with pytest.raises(ValueError):
            load_dataset(root / "bad.json")
