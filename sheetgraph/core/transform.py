"""
Derived table views: sort, filter and pivot.

All functions return a new table and leave the source untouched. Row 0 is
the header row and is carried over unchanged; out-of-range column indexes
read as absent cells.
"""

import copy
import math
from functools import cmp_to_key

from .constants import AGGREGATIONS, SORT_DIRECTIONS
from .types import Cell, Table
from .utils import validate_choice


def cell_value(row: list[Cell], index: int):
    """Value of the cell at index, or None when absent."""
    if 0 <= index < len(row):
        return row[index].get("value")
    return None


def cell_text(value) -> str:
    """String form of a cell value (whole floats lose their '.0')."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def as_number(value) -> int | float | None:
    """Numeric form of a cell value, or None when it is not a finite number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def _split(table: Table) -> tuple[Table, list[Cell] | None, list[list[Cell]]]:
    result = copy.deepcopy(table)
    rows = result["rows"]
    if not rows:
        return result, None, []
    return result, rows[0], rows[1:]


def _compare_values(a, b) -> int:
    if isinstance(a, (int, float)) and isinstance(b, (int, float)) \
            and not isinstance(a, bool) and not isinstance(b, bool):
        return (a > b) - (a < b)
    a, b = str(a), str(b)
    return (a > b) - (a < b)


def sort_table(table: Table, column_index: int, direction: str = "asc") -> Table:
    """Stable sort of the data rows by one column; absent values always last."""
    validate_choice("sort direction", direction, SORT_DIRECTIONS)
    result, header, data = _split(table)
    if header is None:
        return result

    present = [row for row in data if cell_value(row, column_index) is not None]
    absent = [row for row in data if cell_value(row, column_index) is None]

    key = cmp_to_key(lambda a, b: _compare_values(cell_value(a, column_index), cell_value(b, column_index)))
    present.sort(key=key, reverse=(direction == "desc"))

    result["rows"] = [header, *present, *absent]
    return result


def _matches(cell, operator: str, value: str, target: int | float | None) -> bool:
    number = as_number(cell)
    both_numeric = number is not None and target is not None

    if operator == "==":
        return number == target if both_numeric else cell_text(cell) == value
    if operator == "!=":
        return number != target if both_numeric else cell_text(cell) != value
    if operator == ">":
        return both_numeric and number > target
    if operator == "<":
        return both_numeric and number < target
    if operator == ">=":
        return both_numeric and number >= target
    if operator == "<=":
        return both_numeric and number <= target
    if operator == "contains":
        return value.lower() in cell_text(cell).lower()
    return False


def filter_table(table: Table, column_index: int, operator: str, value: str) -> Table:
    """Keep data rows whose cell satisfies `<cell> <operator> <value>`."""
    result, header, data = _split(table)
    if header is None:
        return result

    target = as_number(value)
    kept = [
        row for row in data
        if cell_value(row, column_index) is not None
        and _matches(cell_value(row, column_index), operator, value, target)
    ]

    result["rows"] = [header, *kept]
    return result


def pivot_table(
    table: Table,
    group_column_index: int,
    value_column_index: int,
    aggregation: str,
) -> Table:
    """
    Two-column summary grouped by one column's string form.

    Groups appear in first-seen order; non-numeric values are skipped and
    an average over zero values is 0.
    """
    validate_choice("aggregation", aggregation, AGGREGATIONS)
    rows = table["rows"]
    header = rows[0] if rows else []

    groups: dict[str, dict[str, int | float]] = {}
    for row in rows[1:]:
        key = cell_value(row, group_column_index)
        if key is None:
            continue
        bucket = groups.setdefault(cell_text(key), {"sum": 0, "count": 0})
        number = as_number(cell_value(row, value_column_index))
        if number is not None:
            bucket["sum"] += number
            bucket["count"] += 1

    group_header = cell_value(header, group_column_index)
    value_header = cell_value(header, value_column_index)

    pivot_rows: list[list[Cell]] = [[
        {"address": "A1", "value": group_header if group_header not in (None, "") else "Category"},
        {"address": "B1", "value": f"{aggregation.upper()} of {'' if value_header is None else value_header}"},
    ]]

    for i, (key, bucket) in enumerate(groups.items(), start=2):
        if aggregation == "sum":
            aggregate = bucket["sum"]
        elif aggregation == "average":
            aggregate = bucket["sum"] / bucket["count"] if bucket["count"] else 0
        else:
            aggregate = bucket["count"]
        pivot_rows.append([
            {"address": f"A{i}", "value": key},
            {"address": f"B{i}", "value": aggregate},
        ])

    return {"name": f"Pivot of {table['name']}", "rows": pivot_rows}
