"""Content-addressed cache of analysis results."""

import hashlib
import json
import logging
from datetime import datetime, timezone

from .exceptions import SheetGraphError
from .persistence import CacheStorage
from .types import CacheEntry, Graph, Table

logger = logging.getLogger(__name__)


def canonical_json(data) -> str:
    """Serialize with object keys sorted at every level; list order is kept."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def fingerprint(tables: list[Table]) -> str:
    """SHA-256 hex digest of the canonical serialization of a table sequence."""
    return hashlib.sha256(canonical_json(tables).encode("utf-8")).hexdigest()


def _is_valid_entry(entry) -> bool:
    if not isinstance(entry, dict):
        return False
    metadata = entry.get("metadata")
    graph = entry.get("graph")
    return (
        isinstance(metadata, dict)
        and isinstance(metadata.get("key"), str)
        and isinstance(graph, dict)
        and isinstance(graph.get("nodes"), list)
        and isinstance(graph.get("links"), list)
        and isinstance(entry.get("tables"), list)
    )


class ContentCache:
    """Maps table fingerprints to previously produced graph + tables bundles."""

    def __init__(self, storage: CacheStorage):
        self.storage = storage

    def get(self, key: str) -> CacheEntry | None:
        """
        Look up an entry by fingerprint.
        Corrupt or partially written entries are purged and reported absent.
        """
        raw = self.storage.get(key)
        if raw is None:
            return None

        try:
            entry = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Discarding unparsable cache entry {key}: {e}")
            self.storage.delete(key)
            return None

        if not _is_valid_entry(entry):
            logger.warning(f"Discarding malformed cache entry {key}")
            self.storage.delete(key)
            return None

        logger.debug(f"Cache hit for {key}")
        return entry

    def put(self, key: str, graph: Graph, tables: list[Table]) -> bool:
        """
        Store an entry, replacing any previous one under the same key.
        Returns True on success, False on failure.
        """
        entry: CacheEntry = {
            "metadata": {
                "key": key,
                "generated_at": datetime.now(timezone.utc).isoformat(),
            },
            "graph": graph,
            "tables": tables,
        }

        try:
            self.storage.set(key, json.dumps(entry))
        except (TypeError, ValueError, OSError, SheetGraphError) as e:
            logger.warning(f"Failed to cache analysis {key}: {e}")
            return False

        logger.info(f"Cached analysis {key}: {len(graph['nodes'])} nodes, {len(graph['links'])} links")
        return True

    def delete(self, key: str):
        self.storage.delete(key)

    def clear(self) -> int:
        """Remove every entry. Returns the number removed."""
        keys = self.storage.keys()
        for key in keys:
            self.storage.delete(key)
        logger.info(f"Cleared {len(keys)} cache entries")
        return len(keys)
