"""Best-effort pattern matcher behind the query console."""

import logging
import re

from .constants import DEFAULT_LINK_RESULTS, DEFAULT_NODE_RESULTS, NODE_TYPES
from .types import Graph

logger = logging.getLogger(__name__)

_TYPED_MATCH = re.compile(r"match\s*\(\s*(\w+)\s*:\s*(\w+)\s*\)")
_LINK_MATCH = re.compile(r"match\s*\(\s*(\w+)\s*\)\s*-\s*\[\s*(\w+)\s*\]\s*->\s*\(\s*(\w+)\s*\)")
_LIMIT = re.compile(r"\blimit\s+(\d+)")

_TYPES_BY_NAME = {t.lower(): t for t in NODE_TYPES}


def run_query(graph: Graph, query: str) -> list[dict]:
    """
    Answer a Cypher-like query with a few recognized shapes.

    (x:<Type>) lists nodes of that type, (a)-[r]->(b) lists links with
    their endpoint labels, anything else lists the first nodes.
    """
    text = query.lower()
    limit_match = _LIMIT.search(text)
    limit = int(limit_match.group(1)) if limit_match else None

    typed = _TYPED_MATCH.search(text)
    pattern = _LINK_MATCH.search(text)

    if typed and typed.group(2) in _TYPES_BY_NAME:
        var, node_type = typed.group(1), _TYPES_BY_NAME[typed.group(2)]
        rows = []
        for node in graph["nodes"]:
            if node["type"] != node_type:
                continue
            row = {f"{var}.label": node["label"], f"{var}.description": node.get("description")}
            if node_type == "Formula":
                row[f"{var}.formula"] = node.get("formula")
            rows.append(row)
        results = rows if limit is None else rows[:limit]

    elif pattern:
        a, r, b = pattern.groups()
        labels = {n["id"]: n["label"] for n in graph["nodes"]}
        links = graph["links"][: limit or DEFAULT_LINK_RESULTS]
        results = [
            {f"{a}.label": labels.get(l["source"]), f"type({r})": l["label"], f"{b}.label": labels.get(l["target"])}
            for l in links
        ]

    else:
        results = [
            {"n.label": n["label"], "n.type": n["type"], "n.description": n.get("description")}
            for n in graph["nodes"][: limit or DEFAULT_NODE_RESULTS]
        ]

    logger.info(f"Query returned {len(results)} results")
    return results
