"""Core spreadsheet graph components."""

from .types import Node, Link, Graph, Cell, Table, CacheEntry
from .constants import *
from .exceptions import *
from .config import SheetGraphConfig
from .history import HistoryStore
from .persistence import CacheStorage, MemoryCacheStorage, FileCacheStorage
from .cache import ContentCache, fingerprint, canonical_json
from .mutator import (
    TagOwner,
    rename_node,
    create_link,
    set_editable_item,
    set_tags,
    add_node,
    delete_node,
    delete_link,
)
from .validation import validate_graph, ingest_graph
from .transform import sort_table, filter_table, pivot_table
from .analysis import (
    AnalysisConfig,
    ProgressLine,
    Analyzer,
    QueryTranslator,
    AnalysisRunner,
    validate_analysis_result,
)
from .export import EXPORT_FORMATS, export_dataset, parse_export
from .query import run_query
from .logbuffer import RecentLogHandler
from .utils import normalize_id_part, owner_node_id, tag_node_id, tag_link_id, new_link_id

__all__ = [
    # Types
    "Node",
    "Link",
    "Graph",
    "Cell",
    "Table",
    "CacheEntry",
    # Constants
    "MAX_HISTORY_SIZE",
    "SESSION_ID_LENGTH",
    "SESSION_TTL_SECONDS",
    "NODE_TYPES",
    "TAG_NODE_TYPE",
    "TAG_OWNER_TYPES",
    "CONTAINS",
    "REFERENCES",
    "HAS_TAG",
    "RELATED_TO",
    "PERFORMS",
    "SORT_DIRECTIONS",
    "FILTER_OPERATORS",
    "AGGREGATIONS",
    "ANALYSIS_DEPTHS",
    "EXPORT_FORMATS",
    # Exceptions
    "SheetGraphError",
    "MalformedGraphError",
    "DanglingLinkError",
    "DuplicateIdError",
    "NodeNotFoundError",
    "TableNotFoundError",
    "NoDatasetError",
    "StorageQuotaError",
    "AnalysisError",
    "AnalysisCancelledError",
    "QueryTranslationError",
    "CollaboratorUnavailableError",
    "SessionNotFoundError",
    # Classes
    "SheetGraphConfig",
    "HistoryStore",
    "CacheStorage",
    "MemoryCacheStorage",
    "FileCacheStorage",
    "ContentCache",
    "TagOwner",
    "AnalysisConfig",
    "ProgressLine",
    "Analyzer",
    "QueryTranslator",
    "AnalysisRunner",
    "RecentLogHandler",
    # Functions
    "fingerprint",
    "canonical_json",
    "rename_node",
    "create_link",
    "set_editable_item",
    "set_tags",
    "add_node",
    "delete_node",
    "delete_link",
    "validate_graph",
    "ingest_graph",
    "sort_table",
    "filter_table",
    "pivot_table",
    "validate_analysis_result",
    "export_dataset",
    "parse_export",
    "run_query",
    "normalize_id_part",
    "owner_node_id",
    "tag_node_id",
    "tag_link_id",
    "new_link_id",
]
