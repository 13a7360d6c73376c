"""Type definitions for spreadsheet graphs and tables."""

from typing import TypedDict, NotRequired


class Node(TypedDict):
    """Node in the spreadsheet graph."""
    id: str
    type: str  # one of NODE_TYPES
    label: str
    description: NotRequired[str]
    tags: NotRequired[list[str]]  # denormalized, written only by set_tags
    formula: NotRequired[str]
    value: NotRequired[str | int | float]
    address: NotRequired[str]


class Link(TypedDict):
    """Directed link between two nodes."""
    id: str
    source: str
    target: str
    label: str


class Graph(TypedDict):
    """Complete graph structure."""
    nodes: list[Node]
    links: list[Link]


class Cell(TypedDict):
    """One spreadsheet cell."""
    address: str
    value: str | int | float | None
    formula: NotRequired[str]


class Table(TypedDict):
    """Named grid of cells; row 0 is the header row."""
    name: str
    rows: list[list[Cell]]


class CacheMetadata(TypedDict):
    key: str
    generated_at: str


class CacheEntry(TypedDict):
    """Persisted analysis result."""
    metadata: CacheMetadata
    graph: Graph
    tables: list[Table]
