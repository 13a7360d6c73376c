"""
Graph edit reducers.

Every function takes a graph and an edit intent and returns a new graph;
the input graph is never modified. Nodes and links are replaced wholesale,
untouched records are shared between the old and new graph.
"""

import logging
from dataclasses import dataclass

from .constants import HAS_TAG, RELATED_TO, TAG_NODE_TYPE, TAG_OWNER_TYPES
from .exceptions import DanglingLinkError, DuplicateIdError, NodeNotFoundError
from .types import Graph, Link, Node
from .utils import (
    find_node,
    is_tag_link,
    is_tag_node,
    new_link_id,
    owner_node_id,
    tag_link_id,
    tag_node_id,
    validate_choice,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TagOwner:
    """Grid coordinate that tags can attach to before it has a node."""
    type: str
    sheet_name: str
    address: str | None = None

    def __post_init__(self):
        validate_choice("tag owner type", self.type, TAG_OWNER_TYPES)

    @property
    def node_id(self) -> str:
        return owner_node_id(self.type, self.sheet_name, self.address)

    def to_node(self) -> Node:
        if self.type == "Sheet":
            label = self.sheet_name
        else:
            label = f"{self.type} {self.address or ''}".strip()
        node: Node = {"id": self.node_id, "type": self.type, "label": label, "tags": []}
        if self.address:
            node["address"] = self.address
        return node


def _missing_endpoints(graph: Graph, link: Link) -> list[str]:
    node_ids = {n["id"] for n in graph["nodes"]}
    return [ref for ref in (link["source"], link["target"]) if ref not in node_ids]


def rename_node(graph: Graph, node_id: str, label: str) -> Graph:
    """Replace a node's label. Unknown ids leave the graph unchanged."""
    nodes = [{**n, "label": label} if n["id"] == node_id else n for n in graph["nodes"]]
    return {**graph, "nodes": nodes}


def create_link(
    graph: Graph,
    source_id: str,
    target_id: str,
    label: str = RELATED_TO,
    *,
    strict: bool = False,
) -> Graph:
    """
    Append a link with a fresh id.

    With strict=False the link is created even when an endpoint does not
    exist; strict=True raises DanglingLinkError instead.
    """
    link: Link = {
        "id": new_link_id(source_id, target_id),
        "source": source_id,
        "target": target_id,
        "label": label,
    }

    missing = _missing_endpoints(graph, link)
    if missing:
        if strict:
            raise DanglingLinkError(link["id"], missing)
        logger.warning(f"Creating link {link['id']} with missing endpoint(s): {', '.join(missing)}")

    return {**graph, "links": [*graph["links"], link]}


def set_editable_item(graph: Graph, item: Node | Link) -> Graph:
    """
    Replace one node or link by id with a complete replacement record.

    Records carrying a 'type' field are nodes, anything else is a link.
    A node keeps its stored 'tags' (set_tags owns that field).
    """
    if "type" in item:
        existing = find_node(graph, item["id"])
        if existing is None:
            return graph

        replacement = {k: v for k, v in item.items() if k != "tags"}
        if "tags" in existing:
            replacement["tags"] = existing["tags"]

        nodes = [replacement if n["id"] == item["id"] else n for n in graph["nodes"]]
        return {**graph, "nodes": nodes}

    if not any(l["id"] == item["id"] for l in graph["links"]):
        return graph

    missing = _missing_endpoints(graph, item)
    if missing:
        raise DanglingLinkError(item["id"], missing)

    links = [dict(item) if l["id"] == item["id"] else l for l in graph["links"]]
    return {**graph, "links": links}


def set_tags(graph: Graph, owner: str | TagOwner, tags: list[str]) -> Graph:
    """
    Reconcile an owner's HAS_TAG links to exactly the given tag labels.

    `owner` is the id of an existing node or a TagOwner coordinate; a
    coordinate without a backing node gets one. Labels mapping to the same
    tag id collapse to the first one. Tag nodes losing their last link are
    left in place.
    """
    if isinstance(owner, TagOwner):
        owner_id = owner.node_id
        owner_node = find_node(graph, owner_id) or owner.to_node()
    else:
        owner_id = owner
        owner_node = find_node(graph, owner_id)
        if owner_node is None:
            raise NodeNotFoundError(owner_id)

    wanted: dict[str, str] = {}
    for label in tags:
        label = label.strip()
        if label:
            wanted.setdefault(tag_node_id(label), label)

    current = {
        l["target"] for l in graph["links"]
        if l["source"] == owner_id and is_tag_link(l)
    }
    to_add = [(tag_id, label) for tag_id, label in wanted.items() if tag_id not in current]
    to_remove = current - wanted.keys()

    nodes = list(graph["nodes"])
    if find_node(graph, owner_id) is None:
        nodes.append(owner_node)
        logger.debug(f"Materialized tag owner '{owner_id}'")

    node_ids = {n["id"] for n in nodes}
    link_ids = {l["id"] for l in graph["links"]}
    new_links: list[Link] = []

    for tag_id, label in to_add:
        if tag_id not in node_ids:
            nodes.append({"id": tag_id, "type": TAG_NODE_TYPE, "label": label})
            node_ids.add(tag_id)

        link_id = tag_link_id(owner_id, tag_id)
        if link_id not in link_ids:
            new_links.append({"id": link_id, "source": owner_id, "target": tag_id, "label": HAS_TAG})
            link_ids.add(link_id)

    links = [
        l for l in graph["links"]
        if not (l["source"] == owner_id and is_tag_link(l) and l["target"] in to_remove)
    ]
    links.extend(new_links)

    labels = list(wanted.values())
    nodes = [{**n, "tags": labels} if n["id"] == owner_id else n for n in nodes]

    if to_add or to_remove:
        logger.debug(f"Tags on '{owner_id}': +{len(to_add)} -{len(to_remove)}")

    return {**graph, "nodes": nodes, "links": links}


def add_node(graph: Graph, node: Node) -> Graph:
    """Append a node. Raises DuplicateIdError if the id is taken."""
    if find_node(graph, node["id"]) is not None:
        raise DuplicateIdError("node", node["id"])
    return {**graph, "nodes": [*graph["nodes"], dict(node)]}


def _strip_owner_tags(nodes: list[Node], removed: list[Link]) -> list[Node]:
    """Drop labels of removed HAS_TAG links from their owners' tag lists."""
    dropped: dict[str, set[str]] = {}
    for link in removed:
        if is_tag_link(link):
            dropped.setdefault(link["source"], set()).add(link["target"])

    if not dropped:
        return nodes

    result = []
    for node in nodes:
        tag_ids = dropped.get(node["id"])
        if tag_ids and "tags" in node:
            kept = [t for t in node["tags"] if tag_node_id(t) not in tag_ids]
            node = {**node, "tags": kept}
        result.append(node)
    return result


def delete_node(graph: Graph, node_id: str) -> Graph:
    """Delete a node and its connected links. Unknown ids are a no-op."""
    node = find_node(graph, node_id)
    if node is None:
        return graph

    removed = [l for l in graph["links"] if l["source"] == node_id or l["target"] == node_id]
    links = [l for l in graph["links"] if l["source"] != node_id and l["target"] != node_id]
    nodes = [n for n in graph["nodes"] if n["id"] != node_id]

    if is_tag_node(node):
        nodes = _strip_owner_tags(nodes, removed)

    logger.debug(f"Deleted node '{node_id}' and {len(removed)} links")
    return {**graph, "nodes": nodes, "links": links}


def delete_link(graph: Graph, link_id: str) -> Graph:
    """Delete a link. Unknown ids are a no-op."""
    removed = [l for l in graph["links"] if l["id"] == link_id]
    if not removed:
        return graph

    links = [l for l in graph["links"] if l["id"] != link_id]
    nodes = _strip_owner_tags(graph["nodes"], removed)
    return {**graph, "nodes": nodes, "links": links}
