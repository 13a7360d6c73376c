#!/usr/bin/env python3
"""
SheetGraph MCP Server
Exposes one in-memory spreadsheet graph workspace over MCP stdio:
dataset import, graph edits with undo/redo, table views, export and query.
"""

import asyncio
import json
import logging
import os
import sys
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from .core import (
    AGGREGATIONS,
    EXPORT_FORMATS,
    FILTER_OPERATORS,
    SORT_DIRECTIONS,
    ContentCache,
    FileCacheStorage,
    SheetGraphConfig,
    SheetGraphError,
    TagOwner,
    parse_export,
)
from .web.store import Workspace

# Configure logging to stderr (never stdout for MCP)
log_level = os.getenv("SG_LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stderr
)
logger = logging.getLogger(__name__)


# ============================================================================
# Tool dispatch
# ============================================================================

def _summary(state: dict) -> dict:
    """Edit result without the full graph, to keep tool output small."""
    graph = state["graph"] or {"nodes": [], "links": []}
    return {
        "changed": state.get("changed", False),
        "can_undo": state["can_undo"],
        "can_redo": state["can_redo"],
        "nodes": len(graph["nodes"]),
        "links": len(graph["links"]),
    }


def dispatch(workspace: Workspace, name: str, arguments: dict) -> dict:
    """Run one tool against a workspace and return its JSON-able result."""
    if name == "sg_load_dataset":
        if "content" in arguments:
            data = parse_export(arguments["content"], arguments.get("format", "json"))
        else:
            data = {"graph": arguments["graph"], "tables": arguments.get("tables", [])}
        workspace.load_dataset(data["graph"], data["tables"])
        return {**_summary(workspace.state()), "tables": len(workspace.tables)}

    elif name == "sg_read":
        return {**workspace.state(), "tables": workspace.tables}

    elif name == "sg_rename_node":
        return _summary(workspace.rename_node(arguments["id"], arguments["label"]))

    elif name == "sg_create_link":
        result = workspace.create_link(
            arguments["source"],
            arguments["target"],
            arguments.get("label"),
            strict=arguments.get("strict", False),
        )
        return {**_summary(result), "link": result["link"]}

    elif name == "sg_set_tags":
        if "owner_id" in arguments:
            owner = arguments["owner_id"]
        else:
            owner = TagOwner(arguments["owner_type"], arguments["sheet_name"], arguments.get("address"))
        return _summary(workspace.set_tags(owner, arguments["tags"]))

    elif name == "sg_delete_node":
        return _summary(workspace.delete_node(arguments["id"]))

    elif name == "sg_add_node":
        return _summary(workspace.add_node(arguments["node"]))

    elif name == "sg_update_item":
        item = arguments["item"]
        if "id" not in item:
            raise SheetGraphError("Item must have an 'id'")
        return _summary(workspace.update_item(item))

    elif name == "sg_delete_link":
        return _summary(workspace.delete_link(arguments["id"]))

    elif name == "sg_undo":
        return _summary(workspace.undo())

    elif name == "sg_redo":
        return _summary(workspace.redo())

    elif name == "sg_list_tables":
        return {"tables": workspace.tables}

    elif name == "sg_reset_tables":
        return {"tables": workspace.reset_tables()}

    elif name == "sg_sort":
        table = workspace.sort_table(
            arguments["table"],
            arguments["column"],
            arguments.get("direction", "asc"),
        )
        return {"table": table}

    elif name == "sg_filter":
        table = workspace.filter_table(
            arguments["table"],
            arguments["column"],
            arguments["operator"],
            str(arguments["value"]),
        )
        return {"table": table}

    elif name == "sg_pivot":
        table = workspace.pivot_table(
            arguments["table"],
            arguments["group_column"],
            arguments["value_column"],
            arguments.get("aggregation", "sum"),
        )
        return {"table": table, "index": len(workspace.tables) - 1}

    elif name == "sg_export":
        return {"content": workspace.export(arguments.get("format", "json"))}

    elif name == "sg_query":
        return {"results": workspace.query(arguments["query"])}

    elif name == "sg_ping":
        graph = workspace.graph
        return {
            "status": "ok",
            "loaded": graph is not None,
            "nodes": len(graph["nodes"]) if graph else 0,
            "links": len(graph["links"]) if graph else 0,
            "tables": len(workspace.tables),
        }

    raise SheetGraphError(f"Unknown tool: {name}")


# ============================================================================
# MCP Server
# ============================================================================

# Initialize server
app = Server("sheetgraph")

# Global workspace instance
workspace: Workspace | None = None

_TABLE_ARGS = {
    "table": {"type": "integer", "description": "Table index"},
    "column": {"type": "integer", "description": "Column index (0-based)"},
}


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available spreadsheet graph tools."""
    return [
        Tool(
            name="sg_load_dataset",
            description="Load a graph and its tables, replacing the current dataset and clearing undo history. Pass either graph/tables or the content of a previous sg_export.",
            inputSchema={
                "type": "object",
                "properties": {
                    "graph": {"type": "object", "description": "Graph with 'nodes' and 'links'"},
                    "tables": {"type": "array", "items": {"type": "object"}, "description": "Tables as {name, rows}"},
                    "content": {"type": "string", "description": "Exported dataset text"},
                    "format": {"type": "string", "enum": list(EXPORT_FORMATS), "description": "Format of content"}
                }
            }
        ),
        Tool(
            name="sg_read",
            description="Read the current graph, tables and undo/redo availability.",
            inputSchema={
                "type": "object",
                "properties": {}
            }
        ),
        Tool(
            name="sg_rename_node",
            description="Change a node's label. Undoable.",
            inputSchema={
                "type": "object",
                "properties": {
                    "id": {"type": "string", "description": "Node ID"},
                    "label": {"type": "string", "description": "New label"}
                },
                "required": ["id", "label"]
            }
        ),
        Tool(
            name="sg_create_link",
            description="Link two nodes. Undoable.",
            inputSchema={
                "type": "object",
                "properties": {
                    "source": {"type": "string", "description": "Source node ID"},
                    "target": {"type": "string", "description": "Target node ID"},
                    "label": {"type": "string", "description": "Relationship label (default RELATED_TO)"},
                    "strict": {"type": "boolean", "description": "Fail if an endpoint does not exist"}
                },
                "required": ["source", "target"]
            }
        ),
        Tool(
            name="sg_set_tags",
            description="Set the complete tag list of a node, or of a sheet/cell/range coordinate. Undoable.",
            inputSchema={
                "type": "object",
                "properties": {
                    "tags": {"type": "array", "items": {"type": "string"}, "description": "Tag labels"},
                    "owner_id": {"type": "string", "description": "Existing node ID"},
                    "owner_type": {"type": "string", "description": "Coordinate kind, e.g. 'Cell'"},
                    "sheet_name": {"type": "string", "description": "Sheet of the coordinate"},
                    "address": {"type": "string", "description": "Cell or range address"}
                },
                "required": ["tags"]
            }
        ),
        Tool(
            name="sg_delete_node",
            description="Delete a node and its connected links. Undoable.",
            inputSchema={
                "type": "object",
                "properties": {
                    "id": {"type": "string", "description": "Node ID to delete"}
                },
                "required": ["id"]
            }
        ),
        Tool(
            name="sg_add_node",
            description="Add a node. Fails if the ID is taken. Undoable.",
            inputSchema={
                "type": "object",
                "properties": {
                    "node": {"type": "object", "description": "Node with id, type and label"}
                },
                "required": ["node"]
            }
        ),
        Tool(
            name="sg_update_item",
            description="Replace a node (has 'type') or link by ID with a complete record. Undoable.",
            inputSchema={
                "type": "object",
                "properties": {
                    "item": {"type": "object", "description": "Complete node or link record"}
                },
                "required": ["item"]
            }
        ),
        Tool(
            name="sg_delete_link",
            description="Delete a link. Undoable.",
            inputSchema={
                "type": "object",
                "properties": {
                    "id": {"type": "string", "description": "Link ID to delete"}
                },
                "required": ["id"]
            }
        ),
        Tool(
            name="sg_undo",
            description="Step back one graph edit.",
            inputSchema={
                "type": "object",
                "properties": {}
            }
        ),
        Tool(
            name="sg_redo",
            description="Step forward one graph edit.",
            inputSchema={
                "type": "object",
                "properties": {}
            }
        ),
        Tool(
            name="sg_list_tables",
            description="Read the current table views.",
            inputSchema={
                "type": "object",
                "properties": {}
            }
        ),
        Tool(
            name="sg_reset_tables",
            description="Discard every sort, filter and pivot and restore the tables as loaded.",
            inputSchema={
                "type": "object",
                "properties": {}
            }
        ),
        Tool(
            name="sg_sort",
            description="Sort a table's data rows by one column. Empty cells stay last.",
            inputSchema={
                "type": "object",
                "properties": {
                    **_TABLE_ARGS,
                    "direction": {"type": "string", "enum": list(SORT_DIRECTIONS)}
                },
                "required": ["table", "column"]
            }
        ),
        Tool(
            name="sg_filter",
            description="Keep the data rows whose cell matches a condition.",
            inputSchema={
                "type": "object",
                "properties": {
                    **_TABLE_ARGS,
                    "operator": {"type": "string", "enum": list(FILTER_OPERATORS)},
                    "value": {"type": "string", "description": "Value to compare against"}
                },
                "required": ["table", "column", "operator", "value"]
            }
        ),
        Tool(
            name="sg_pivot",
            description="Summarize a table by one column; the result is added as a new table.",
            inputSchema={
                "type": "object",
                "properties": {
                    "table": {"type": "integer", "description": "Table index"},
                    "group_column": {"type": "integer", "description": "Column to group by"},
                    "value_column": {"type": "integer", "description": "Column to aggregate"},
                    "aggregation": {"type": "string", "enum": list(AGGREGATIONS)}
                },
                "required": ["table", "group_column", "value_column"]
            }
        ),
        Tool(
            name="sg_export",
            description="Export the graph and tables as JSON or YAML text.",
            inputSchema={
                "type": "object",
                "properties": {
                    "format": {"type": "string", "enum": list(EXPORT_FORMATS)}
                }
            }
        ),
        Tool(
            name="sg_query",
            description="Run a Cypher-like query, e.g. 'MATCH (f:Formula) RETURN f LIMIT 3'.",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Query text"}
                },
                "required": ["query"]
            }
        ),
        Tool(
            name="sg_ping",
            description="Health check for MCP connectivity. Returns dataset statistics.",
            inputSchema={
                "type": "object",
                "properties": {}
            }
        )
    ]


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> list[TextContent]:
    """Handle tool calls with uniform error handling."""
    try:
        result = dispatch(workspace, name, arguments or {})
        return [TextContent(type="text", text=json.dumps(result, indent=2))]

    except (SheetGraphError, ValueError) as e:
        # Structured error response for known errors
        logger.warning(f"SheetGraph error in {name}: {e}")
        return [TextContent(type="text", text=json.dumps({"error": str(e)}))]

    except Exception as e:
        # Unexpected errors
        logger.error(f"Unexpected error in {name}: {e}", exc_info=True)
        return [TextContent(type="text", text=json.dumps({"error": f"Internal error: {str(e)}"}))]


async def main():
    """Main entry point."""
    global workspace

    # Load configuration from environment
    config = SheetGraphConfig.from_env()

    cache = ContentCache(FileCacheStorage(config.cache_dir, config.cache_max_bytes))
    workspace = Workspace(cache, history_size=config.history_size, repair_graphs=config.repair_graphs)

    logger.info("Starting SheetGraph MCP Server...")

    async with stdio_server() as (read_stream, write_stream):
        await app.run(read_stream, write_stream, app.create_initialization_options())


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
