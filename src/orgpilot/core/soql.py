"""
Query text helpers for the query explorer.
"""

import json
import re
from typing import List, Optional, Sequence

from .result import Err, Ok, Result
from .types import ATTRIBUTES_KEY, Record, record_type

_FROM_PATTERN = re.compile(r"FROM\s+(\w+)", re.IGNORECASE)


def quote_literal(value: str) -> str:
    """Single-quoted string literal with backslashes and quotes escaped."""
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def extract_from_entity(query: str) -> Optional[str]:
    """Entity named by the first FROM clause, if any."""
    match = _FROM_PATTERN.search(query)
    return match.group(1) if match else None


def expand_fields(query: str, cursor: int, field_names: Sequence[str]) -> str:
    """Insert every field name, comma separated, at the cursor."""
    if not field_names:
        return query
    cursor = max(0, min(cursor, len(query)))
    return query[:cursor] + ", ".join(field_names) + query[cursor:]


def infer_record_type(record: Record, query: str) -> Result[str, str]:
    """
    Entity of a result row: its attributes block first, else the FROM clause.
    """
    declared = record_type(record)
    if declared:
        return Ok(declared)
    from_entity = extract_from_entity(query)
    if from_entity:
        return Ok(from_entity)
    return Err("Cannot determine object type for detail view.")


def _csv_cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":")).replace(",", ";")
    if isinstance(value, bool):
        value = "true" if value else "false"
    return '"' + str(value).replace('"', '""') + '"'


def records_to_csv(records: List[Record]) -> str:
    """
    Export rows as CSV.

    Headers come from the first row; nested values are JSON with commas
    swapped for semicolons, scalars are always quoted.
    """
    if not records:
        return ""
    headers = [k for k in records[0] if k != ATTRIBUTES_KEY]
    lines = [",".join(headers)]
    for row in records:
        lines.append(",".join(_csv_cell(row.get(h)) for h in headers))
    return "\n".join(lines)
