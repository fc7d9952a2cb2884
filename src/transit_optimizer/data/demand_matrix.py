"""Origin-destination demand table parsing.

Demand files come in two shapes: tuple rows with explicit origin,
destination and value columns, or a pivot table whose first column names the
origin and whose remaining columns are destinations. The layout is detected
once from the header and the rows are then parsed against it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence, Union

from ..models.domain import DemandMatrix
from .tables import coerce_float

ORIGIN_COLUMNS = ("Origin", "HOME_AREA")
DESTINATION_COLUMNS = ("Destination", "WORK_AREA")
VALUE_COLUMNS = ("Mobility_Percentage", "mobility", "percentage")

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class PairsLayout:
    origin_column: str
    destination_column: str
    value_column: str


@dataclass(slots=True, frozen=True)
class PivotLayout:
    origin_column: str
    destination_columns: tuple[str, ...]


MatrixLayout = Union[PairsLayout, PivotLayout]


def _first_present(headers: Sequence[str], candidates: Sequence[str]) -> str | None:
    for candidate in candidates:
        if candidate in headers:
            return candidate
    return None


def detect_layout(headers: Sequence[str]) -> MatrixLayout:
    if not headers:
        raise ValueError("Demand table has no columns.")

    origin_column = _first_present(headers, ORIGIN_COLUMNS)
    destination_column = _first_present(headers, DESTINATION_COLUMNS)
    if origin_column and destination_column:
        value_column = _first_present(headers, VALUE_COLUMNS)
        if value_column is None:
            raise ValueError(
                f"Demand table has origin/destination columns but no value column "
                f"(expected one of: {', '.join(VALUE_COLUMNS)})."
            )
        return PairsLayout(origin_column, destination_column, value_column)

    if len(headers) < 2:
        raise ValueError("Pivot demand table needs an origin column and at least one destination column.")
    return PivotLayout(headers[0], tuple(name for name in headers[1:] if name))


def _origin_name(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def parse_demand_rows(layout: MatrixLayout, rows: Sequence[Mapping[str, Any]]) -> DemandMatrix:
    """Build a demand matrix, skipping blank, non-numeric and non-positive cells."""

    matrix = DemandMatrix()
    skipped = 0
    match layout:
        case PairsLayout(origin_column, destination_column, value_column):
            for row in rows:
                origin = _origin_name(row.get(origin_column))
                destination = _origin_name(row.get(destination_column))
                mobility = coerce_float(row.get(value_column))
                if not origin or not destination or mobility is None or mobility <= 0:
                    skipped += 1
                    continue
                matrix.set(origin, destination, mobility)
        case PivotLayout(origin_column, destination_columns):
            for row in rows:
                origin = _origin_name(row.get(origin_column))
                if not origin:
                    skipped += 1
                    continue
                for destination in destination_columns:
                    mobility = coerce_float(row.get(destination))
                    if mobility is None or mobility <= 0:
                        continue
                    matrix.set(origin, destination, mobility)
    if skipped:
        logger.debug(f"Skipped {skipped} demand rows without a usable origin, destination or value")
    return matrix


def parse_demand_table(headers: Sequence[str], rows: Sequence[Mapping[str, Any]]) -> DemandMatrix:
    return parse_demand_rows(detect_layout(headers), rows)
