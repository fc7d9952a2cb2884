"""Tabular file readers shared by the region loaders."""

from __future__ import annotations

import csv
import math
from pathlib import Path
from typing import Any, Optional

from openpyxl import load_workbook

TABLE_SUFFIXES = (".csv", ".xlsx")


def coerce_float(value: Any) -> Optional[float]:
    """Parse a numeric cell, returning None for blanks and non-numeric values."""
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        number = float(value)
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _read_csv(path: Path) -> tuple[list[str], list[dict[str, Any]]]:
    with path.open(mode="r", encoding="utf-8-sig", newline="") as handle:
        reader = csv.DictReader(handle)
        if not reader.fieldnames:
            raise ValueError(f"Table '{path}' is missing a header row.")
        headers = [name.strip() for name in reader.fieldnames]
        rows = [
            {header: row.get(raw) for header, raw in zip(headers, reader.fieldnames)}
            for row in reader
        ]
    return headers, rows


def _read_xlsx(path: Path) -> tuple[list[str], list[dict[str, Any]]]:
    wb = load_workbook(path, data_only=True, read_only=True)
    try:
        sheet = wb.active
        rows = sheet.iter_rows(min_row=1, values_only=True)
        header = next(rows, None)
        if header is None:
            raise ValueError(f"Workbook '{path}' is empty.")
        headers = [_cell_text(name) for name in header]
        # Only trailing padding is dropped; a blank pivot corner stays column 0.
        while headers and not headers[-1]:
            headers.pop()
        records = []
        for row in rows:
            if row is None or all(cell is None for cell in row):
                continue
            records.append({name: row[idx] if idx < len(row) else None for idx, name in enumerate(headers)})
        return headers, records
    finally:
        wb.close()


def read_table(path: Path) -> tuple[list[str], list[dict[str, Any]]]:
    """Return ``(headers, rows)`` for a CSV or XLSX file."""
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return _read_csv(path)
    if suffix == ".xlsx":
        return _read_xlsx(path)
    raise ValueError(f"Unsupported table format '{path.suffix}' for {path}")


def find_table(directory: Path, stem: str) -> Optional[Path]:
    for suffix in TABLE_SUFFIXES:
        candidate = directory / f"{stem}{suffix}"
        if candidate.exists():
            return candidate
    return None


def list_tables(directory: Path) -> list[Path]:
    if not directory.is_dir():
        return []
    return sorted(
        path for path in directory.iterdir() if path.is_file() and path.suffix.lower() in TABLE_SUFFIXES
    )
