"""Per-session spreadsheet graph workspaces."""

import logging
import threading
from typing import Callable

from ..core import (
    AnalysisConfig,
    AnalysisRunner,
    Analyzer,
    CollaboratorUnavailableError,
    ContentCache,
    Graph,
    HistoryStore,
    MalformedGraphError,
    MAX_HISTORY_SIZE,
    NoDatasetError,
    ProgressLine,
    QueryTranslator,
    RELATED_TO,
    Table,
    TableNotFoundError,
    TagOwner,
    export_dataset,
    fingerprint,
    ingest_graph,
    run_query,
)
from ..core import mutator, transform
from .session_manager import HTTPSessionManager

logger = logging.getLogger(__name__)


class Workspace:
    """
    One user's dataset.

    Holds the graph history, the derived tables and the analysis runner.
    Writes are serialized through `lock`; the analysis itself is awaited
    outside the lock and its result committed under it.
    """

    def __init__(
        self,
        cache: ContentCache,
        analyzer: Analyzer | None = None,
        history_size: int = MAX_HISTORY_SIZE,
        repair_graphs: bool = True,
    ):
        self.cache = cache
        self.runner = AnalysisRunner(analyzer) if analyzer else None
        self.repair_graphs = repair_graphs
        self.history: HistoryStore[Graph | None] = HistoryStore(None, capacity=history_size)
        self.source_tables: list[Table] = []
        self.tables: list[Table] = []
        self.lock = threading.RLock()

    # ========================================================================
    # Dataset lifecycle
    # ========================================================================

    @property
    def graph(self) -> Graph | None:
        return self.history.current

    async def analyze(
        self,
        tables: list[Table],
        config: AnalysisConfig,
        on_progress: Callable[[ProgressLine], None] | None = None,
    ) -> dict:
        """
        Produce a graph for the tables, from cache when possible.
        Returns {"graph", "tables", "fingerprint", "cached", "warnings"}.
        """
        warnings: list[str] = []
        key = fingerprint(tables) if config.use_cache else None

        hit = self._from_cache(key) if key else None
        if hit is not None:
            graph, cached_tables = hit
            # The hit replaces the dataset, so a pending analysis must not land after it
            self.cancel_analysis()
            if on_progress:
                on_progress(ProgressLine("Found cached knowledge graph."))
            self._load(graph, cached_tables)
            logger.info(f"Loaded cached analysis {key}")
            return {"graph": graph, "tables": self.tables, "fingerprint": key, "cached": True, "warnings": warnings}

        if self.runner is None:
            raise CollaboratorUnavailableError("analysis")

        raw = await self.runner.run(tables, config, on_progress)
        graph = ingest_graph(raw, repair=self.repair_graphs)

        if key and not self.cache.put(key, graph, tables):
            warnings.append("Analysis result could not be cached")

        self._load(graph, tables)
        return {"graph": graph, "tables": self.tables, "fingerprint": key, "cached": False, "warnings": warnings}

    def _from_cache(self, key: str) -> tuple[Graph, list[Table]] | None:
        """Cached graph and tables, or None. Entries failing ingestion are purged."""
        entry = self.cache.get(key)
        if entry is None:
            return None
        try:
            graph = ingest_graph(entry["graph"], repair=self.repair_graphs)
        except MalformedGraphError as e:
            logger.warning(f"Discarding cache entry {key} that fails validation: {e}")
            self.cache.delete(key)
            return None
        return graph, entry["tables"]

    def cancel_analysis(self) -> bool:
        if self.runner is None:
            return False
        return self.runner.cancel()

    def load_dataset(self, graph: dict, tables: list[Table]) -> Graph:
        """Import an externally supplied dataset (e.g. a previous export)."""
        clean = ingest_graph(graph, repair=self.repair_graphs)
        self.cancel_analysis()
        self._load(clean, tables)
        return clean

    def _load(self, graph: Graph, tables: list[Table]):
        with self.lock:
            self.history.reset(graph)
            self.source_tables = list(tables)
            self.tables = list(tables)
        logger.info(f"Dataset loaded: {len(graph['nodes'])} nodes, {len(graph['links'])} links, {len(tables)} tables")

    # ========================================================================
    # Graph edits
    # ========================================================================

    def _edit(self, reducer: Callable[[Graph], Graph]) -> dict:
        with self.lock:
            if self.history.current is None:
                raise NoDatasetError()
            changed = self.history.set(reducer)
            return {**self.state(), "changed": changed}

    def rename_node(self, node_id: str, label: str) -> dict:
        return self._edit(lambda g: mutator.rename_node(g, node_id, label))

    def create_link(self, source_id: str, target_id: str, label: str | None = None, strict: bool = False) -> dict:
        with self.lock:
            result = self._edit(
                lambda g: mutator.create_link(g, source_id, target_id, label or RELATED_TO, strict=strict)
            )
            result["link"] = self.graph["links"][-1]
            return result

    def update_item(self, item: dict) -> dict:
        return self._edit(lambda g: mutator.set_editable_item(g, item))

    def set_tags(self, owner: str | TagOwner, tags: list[str]) -> dict:
        return self._edit(lambda g: mutator.set_tags(g, owner, tags))

    def add_node(self, node: dict) -> dict:
        return self._edit(lambda g: mutator.add_node(g, node))

    def delete_node(self, node_id: str) -> dict:
        return self._edit(lambda g: mutator.delete_node(g, node_id))

    def delete_link(self, link_id: str) -> dict:
        return self._edit(lambda g: mutator.delete_link(g, link_id))

    def undo(self) -> dict:
        with self.lock:
            moved = self.history.undo()
            return {**self.state(), "changed": moved}

    def redo(self) -> dict:
        with self.lock:
            moved = self.history.redo()
            return {**self.state(), "changed": moved}

    def state(self) -> dict:
        with self.lock:
            return {
                "graph": self.history.current,
                "can_undo": self.history.can_undo,
                "can_redo": self.history.can_redo,
                "history_size": len(self.history),
            }

    # ========================================================================
    # Table views
    # ========================================================================

    def _table(self, index: int) -> Table:
        if not 0 <= index < len(self.tables):
            raise TableNotFoundError(index, len(self.tables))
        return self.tables[index]

    def sort_table(self, index: int, column_index: int, direction: str = "asc") -> Table:
        with self.lock:
            result = transform.sort_table(self._table(index), column_index, direction)
            self.tables[index] = result
            return result

    def filter_table(self, index: int, column_index: int, operator: str, value: str) -> Table:
        with self.lock:
            result = transform.filter_table(self._table(index), column_index, operator, value)
            self.tables[index] = result
            return result

    def pivot_table(self, index: int, group_column_index: int, value_column_index: int, aggregation: str) -> Table:
        with self.lock:
            result = transform.pivot_table(self._table(index), group_column_index, value_column_index, aggregation)
            self.tables.append(result)
            return result

    def reset_tables(self) -> list[Table]:
        """Drop every sort, filter and pivot; back to the tables as loaded."""
        with self.lock:
            self.tables = list(self.source_tables)
            logger.debug(f"Tables reset to {len(self.tables)} loaded tables")
            return self.tables

    # ========================================================================
    # Read-only views
    # ========================================================================

    def export(self, fmt: str = "json") -> str:
        with self.lock:
            if self.graph is None:
                raise NoDatasetError()
            return export_dataset(self.graph, self.tables, fmt)

    def query(self, query: str) -> list[dict]:
        with self.lock:
            if self.graph is None:
                raise NoDatasetError()
            return run_query(self.graph, query)


class WorkspaceStore:
    """Maps sessions to their workspaces; all sessions share one content cache."""

    def __init__(
        self,
        cache: ContentCache,
        session_manager: HTTPSessionManager,
        analyzer: Analyzer | None = None,
        translator: QueryTranslator | None = None,
        history_size: int = MAX_HISTORY_SIZE,
        repair_graphs: bool = True,
    ):
        self.cache = cache
        self.session_manager = session_manager
        self.analyzer = analyzer
        self.translator = translator
        self.history_size = history_size
        self.repair_graphs = repair_graphs
        self.workspaces: dict[str, Workspace] = {}
        self.lock = threading.RLock()

    def get(self, session_id: str) -> Workspace:
        """Workspace for a live session, created on first use."""
        with self.lock:
            self.session_manager.touch(session_id)
            workspace = self.workspaces.get(session_id)
            if workspace is None:
                workspace = Workspace(self.cache, self.analyzer, self.history_size, self.repair_graphs)
                self.workspaces[session_id] = workspace
                logger.debug(f"Created workspace for session {session_id}")
            return workspace

    async def translate(self, question: str) -> str:
        if self.translator is None:
            raise CollaboratorUnavailableError("query translation")
        return await self.translator.translate(question)

    def cleanup_expired(self) -> int:
        """Drop workspaces of expired sessions. Returns count removed."""
        with self.lock:
            expired = self.session_manager.cleanup_expired()
            for session_id in expired:
                workspace = self.workspaces.pop(session_id, None)
                if workspace is not None:
                    workspace.cancel_analysis()
            return len(expired)

