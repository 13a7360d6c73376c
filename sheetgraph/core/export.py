"""JSON and YAML renderings of a graph + tables dataset."""

import json

import yaml

from .exceptions import SheetGraphError
from .types import Graph, Table

EXPORT_FORMATS = ("json", "yaml")

MEDIA_TYPES = {
    "json": "application/json",
    "yaml": "application/x-yaml",
}


def export_dataset(graph: Graph, tables: list[Table], fmt: str = "json") -> str:
    """Render {"graph", "tables"} as pretty-printed JSON or block-style YAML."""
    data = {"graph": graph, "tables": tables}
    if fmt == "json":
        return json.dumps(data, indent=2, ensure_ascii=False)
    if fmt == "yaml":
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)
    raise ValueError(f"Invalid export format '{fmt}', must be one of {EXPORT_FORMATS}")


def parse_export(text: str, fmt: str = "json") -> dict:
    """Read an exported dataset back into {"graph", "tables"}."""
    try:
        if fmt == "json":
            data = json.loads(text)
        elif fmt == "yaml":
            data = yaml.safe_load(text)
        else:
            raise ValueError(f"Invalid export format '{fmt}', must be one of {EXPORT_FORMATS}")
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise SheetGraphError(f"Unreadable {fmt} export: {e}") from e

    if not isinstance(data, dict) or "graph" not in data or not isinstance(data.get("tables"), list):
        raise SheetGraphError(f"{fmt} export must contain 'graph' and 'tables'")
    return data
