"""Validation and repair of externally supplied graphs."""

import logging

from .constants import NODE_TYPES
from .exceptions import MalformedGraphError
from .types import Graph

logger = logging.getLogger(__name__)

_NODE_FIELDS = ("id", "type", "label")
_LINK_FIELDS = ("id", "source", "target", "label")


def _record_problem(record, fields: tuple[str, ...], kind: str, index: int) -> str | None:
    if not isinstance(record, dict):
        return f"{kind} #{index} is not an object"
    for field in fields:
        if not isinstance(record.get(field), str):
            return f"{kind} #{index} has no string '{field}'"
    return None


def _scan(raw) -> tuple[list[str], Graph]:
    """Collect problems and build the repaired graph in one pass."""
    if not isinstance(raw, dict):
        raise MalformedGraphError(["graph is not an object"])
    if not isinstance(raw.get("nodes"), list) or not isinstance(raw.get("links"), list):
        raise MalformedGraphError(["graph is missing its 'nodes' or 'links' array"])

    problems: list[str] = []
    nodes = []
    node_ids: set[str] = set()

    for i, node in enumerate(raw["nodes"]):
        problem = _record_problem(node, _NODE_FIELDS, "node", i)
        if problem is None and node["type"] not in NODE_TYPES:
            problem = f"node '{node['id']}' has unknown type '{node['type']}'"
        if problem is None and node["id"] in node_ids:
            problem = f"duplicate node id '{node['id']}'"
        if problem:
            problems.append(problem)
            continue
        node_ids.add(node["id"])
        nodes.append(node)

    links = []
    link_ids: set[str] = set()

    for i, link in enumerate(raw["links"]):
        problem = _record_problem(link, _LINK_FIELDS, "link", i)
        if problem is None and link["id"] in link_ids:
            problem = f"duplicate link id '{link['id']}'"
        if problem is None:
            for ref in (link["source"], link["target"]):
                if ref not in node_ids:
                    problem = f"link '{link['id']}' references missing node '{ref}'"
                    break
        if problem:
            problems.append(problem)
            continue
        link_ids.add(link["id"])
        links.append(link)

    return problems, {"nodes": nodes, "links": links}


def validate_graph(raw) -> list[str]:
    """
    Return the list of integrity problems in a graph (empty when clean).
    Raises MalformedGraphError when the graph is not even shaped like one.
    """
    problems, _ = _scan(raw)
    return problems


def ingest_graph(raw, repair: bool = False) -> Graph:
    """
    Accept an externally supplied graph.

    Without repair any problem raises MalformedGraphError. With repair,
    malformed records, later duplicates and dangling links are dropped.
    """
    problems, graph = _scan(raw)
    if not problems:
        return graph

    if not repair:
        raise MalformedGraphError(problems)

    for problem in problems:
        logger.warning(f"Repaired graph on ingestion: dropped {problem}")
    logger.info(f"Ingested graph with {len(problems)} repairs: {len(graph['nodes'])} nodes, {len(graph['links'])} links")
    return graph
