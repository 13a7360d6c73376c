"""Utility functions for spreadsheet graph operations."""

import uuid

from .constants import HAS_TAG, TAG_NODE_TYPE


def normalize_id_part(text: str) -> str:
    """Lowercase, trim and collapse whitespace runs into single underscores."""
    return "_".join(str(text).lower().split())


def owner_node_id(owner_type: str, sheet_name: str, address: str | None = None) -> str:
    """Derive the id of a tag owner from its grid coordinate."""
    parts = (normalize_id_part(p) for p in (owner_type, sheet_name, address or ""))
    return "_".join(p for p in parts if p)


def tag_node_id(label: str) -> str:
    """Derive the id of the Tag node for a label."""
    return f"tag_{normalize_id_part(label)}"


def tag_link_id(owner_id: str, tag_id: str) -> str:
    """Derive the id of the HAS_TAG link between an owner and a tag."""
    return f"link_{owner_id}_{tag_id}"


def new_link_id(source_id: str, target_id: str) -> str:
    """Generate a fresh, unique link id."""
    return f"link_{source_id}_{target_id}_{uuid.uuid4().hex[:12]}"


def is_tag_node(node: dict) -> bool:
    """Check if a node is a Tag node."""
    return node.get("type") == TAG_NODE_TYPE


def is_tag_link(link: dict) -> bool:
    """Check if a link is a HAS_TAG link."""
    return link.get("label") == HAS_TAG


def find_node(graph: dict, node_id: str) -> dict | None:
    """Return the node with the given id, or None."""
    for node in graph["nodes"]:
        if node["id"] == node_id:
            return node
    return None


def validate_choice(name: str, value: str, choices: tuple[str, ...]):
    """Validate an enumerated parameter. Raises ValueError if invalid."""
    if value not in choices:
        raise ValueError(f"Invalid {name} '{value}', must be one of {choices}")
