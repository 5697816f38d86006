from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any, Dict, List

from ..document import Dataset


SUPPORTED_SUFFIXES = (".csv", ".json")


def _load_csv(path: Path) -> Dataset:
    with path.open("r", encoding="utf-8-sig", newline="") as handle:
        reader = csv.DictReader(handle)
        if reader.fieldnames is None:
            raise ValueError("CSV has no header")
        headers = [name.strip() for name in reader.fieldnames]
        rows: List[Dict[str, Any]] = []
        for raw in reader:
            values = [value for value in raw.values() if isinstance(value, str)]
            if not any(value.strip() for value in values):
                continue
            rows.append({header: (raw.get(name) or "").strip() for header, name in zip(headers, reader.fieldnames)})
    return Dataset(headers=headers, rows=rows)


def _load_json(path: Path) -> Dataset:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON data file: {exc}") from exc
    if isinstance(data, dict):
        data = data.get("rows")
    if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
        raise ValueError("JSON data must be a list of objects (or {\"rows\": [...]})")
    return Dataset.from_rows(data)


def load_dataset(path: Path) -> Dataset:
    """Load spreadsheet rows from a CSV (header row) or JSON file."""
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ValueError(f"Unsupported data file type: {suffix or path.name}")
    dataset = _load_csv(path) if suffix == ".csv" else _load_json(path)
    if not dataset.rows:
        raise ValueError("Data file has no data rows")
    return dataset
