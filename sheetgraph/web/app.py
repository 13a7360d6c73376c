"""FastAPI HTTP server for spreadsheet graph workspaces."""

import asyncio
import logging
import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Response, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from .. import __version__
from ..core import (
    AnalysisCancelledError,
    AnalysisConfig,
    AnalysisError,
    CollaboratorUnavailableError,
    ContentCache,
    FileCacheStorage,
    MalformedGraphError,
    NoDatasetError,
    NodeNotFoundError,
    ProgressLine,
    QueryTranslationError,
    RecentLogHandler,
    SessionNotFoundError,
    SheetGraphConfig,
    SheetGraphError,
    TableNotFoundError,
    TagOwner,
)
from ..core.export import MEDIA_TYPES
from .clients import HTTPAnalyzer, HTTPQueryTranslator
from .session_manager import HTTPSessionManager
from .store import WorkspaceStore
from .websocket import ConnectionManager

# Configure logging
log_level = os.getenv("SG_LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stderr
)
logger = logging.getLogger(__name__)


# ============================================================================
# Request/Response Models
# ============================================================================

class SessionRegisterResponse(BaseModel):
    """Response from session registration."""
    session_id: str
    start_ts: float


class AnalyzeRequest(BaseModel):
    """Request to turn tables into a graph."""
    tables: list[dict] = Field(..., description="Tables as {name, rows}; row 0 is the header")
    depth: str = Field("deep", description="Analysis depth: 'quick' or 'deep'")
    use_cache: bool = Field(True, description="Reuse a cached graph for identical tables")
    verbose_log: bool = Field(False, description="Forward detail-level progress lines")


class DatasetRequest(BaseModel):
    """Request to import a graph and its tables."""
    graph: dict = Field(..., description="Graph with 'nodes' and 'links'")
    tables: list[dict] = Field(default_factory=list, description="Source tables")


class RenameRequest(BaseModel):
    """Request to relabel a node."""
    label: str = Field(..., description="New node label")


class LinkRequest(BaseModel):
    """Request to create a link."""
    source: str = Field(..., description="Source node ID")
    target: str = Field(..., description="Target node ID")
    label: str | None = Field(None, description="Relationship label (default RELATED_TO)")
    strict: bool = Field(False, description="Reject links whose endpoints do not exist")


class ItemRequest(BaseModel):
    """Request to replace a node or link wholesale."""
    item: dict = Field(..., description="Complete node (has 'type') or link record")


class NodeRequest(BaseModel):
    """Request to add a node."""
    node: dict = Field(..., description="Node record with id, type and label")


class TagsRequest(BaseModel):
    """Request to set the tags of a node or grid coordinate."""
    tags: list[str] = Field(..., description="Complete list of tag labels")
    owner_id: str | None = Field(None, description="ID of an existing node")
    owner_type: str | None = Field(None, description="Owner kind when tagging a coordinate, e.g. 'Cell'")
    sheet_name: str | None = Field(None, description="Sheet of the coordinate")
    address: str | None = Field(None, description="Cell or range address of the coordinate")


class SortRequest(BaseModel):
    column_index: int
    direction: str = "asc"


class FilterRequest(BaseModel):
    column_index: int
    operator: str
    value: str


class PivotRequest(BaseModel):
    group_column_index: int
    value_column_index: int
    aggregation: str = "sum"


class QueryRequest(BaseModel):
    """Request to run a graph query."""
    query: str = Field(..., description="Cypher-like query text")


class TranslateRequest(BaseModel):
    """Request to translate a question into a graph query."""
    question: str = Field(..., description="Natural-language question")


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    active_sessions: int
    active_connections: int
    analyzer: bool
    translator: bool


# ============================================================================
# Global State
# ============================================================================

store: WorkspaceStore | None = None
session_manager: HTTPSessionManager | None = None
connection_manager: ConnectionManager | None = None
log_handler: RecentLogHandler | None = None


def build_analyzer(config: SheetGraphConfig) -> HTTPAnalyzer | None:
    if not config.analyzer_url:
        return None
    return HTTPAnalyzer(config.analyzer_url, timeout=config.collaborator_timeout)


def build_translator(config: SheetGraphConfig) -> HTTPQueryTranslator | None:
    if not config.translator_url:
        return None
    return HTTPQueryTranslator(config.translator_url, timeout=config.collaborator_timeout)


async def _periodic_cleanup(interval: float):
    """Background task dropping the workspaces of expired sessions."""
    while True:
        await asyncio.sleep(interval)
        if not store:
            continue
        try:
            removed = store.cleanup_expired()
            if removed:
                logger.info(f"Dropped {removed} expired session workspace(s)")
        except Exception as e:
            logger.error(f"Session cleanup failed: {e}", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    global store, session_manager, connection_manager, log_handler

    # Startup
    logger.info("Starting SheetGraph HTTP Server...")

    config = SheetGraphConfig.from_env()

    log_handler = RecentLogHandler()
    logging.getLogger().addHandler(log_handler)

    session_manager = HTTPSessionManager(config.session_ttl)
    connection_manager = ConnectionManager()

    cache = ContentCache(FileCacheStorage(config.cache_dir, config.cache_max_bytes))
    store = WorkspaceStore(
        cache,
        session_manager,
        analyzer=build_analyzer(config),
        translator=build_translator(config),
        history_size=config.history_size,
        repair_graphs=config.repair_graphs,
    )

    cleanup_task = asyncio.create_task(_periodic_cleanup(config.cleanup_interval))

    logger.info(f"Server ready (cache: {config.cache_dir})")

    yield

    # Shutdown
    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass

    if store:
        for workspace in store.workspaces.values():
            workspace.cancel_analysis()

    logging.getLogger().removeHandler(log_handler)
    logger.info("Server stopped")


# Create FastAPI app
app = FastAPI(
    title="SheetGraph Server",
    description="Spreadsheet knowledge graph workspaces with undo/redo and table views",
    version=__version__,
    lifespan=lifespan
)


def _http_error(e: Exception, action: str) -> HTTPException:
    """Map a failure to the HTTP status it should surface as."""
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, (SessionNotFoundError, NodeNotFoundError, TableNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (NoDatasetError, AnalysisCancelledError)):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, MalformedGraphError):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, CollaboratorUnavailableError):
        return HTTPException(status_code=503, detail=str(e))
    if isinstance(e, (AnalysisError, QueryTranslationError)):
        return HTTPException(status_code=502, detail=str(e))
    if isinstance(e, (SheetGraphError, ValueError)):
        return HTTPException(status_code=400, detail=str(e))

    logger.error(f"Error {action}: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=str(e))


def _require_store() -> WorkspaceStore:
    if not store:
        raise HTTPException(status_code=500, detail="Store not initialized")
    return store


# ============================================================================
# API Endpoints
# ============================================================================

@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": __version__,
        "active_sessions": session_manager.count() if session_manager else 0,
        "active_connections": connection_manager.count() if connection_manager else 0,
        "analyzer": bool(store and store.analyzer),
        "translator": bool(store and store.translator),
    }


@app.get("/api/logs")
async def recent_logs():
    """Newest log records first."""
    return {"records": log_handler.records() if log_handler else []}


@app.post("/api/sessions/register", response_model=SessionRegisterResponse)
async def register_session():
    """Register a new session. Returns session_id and start_ts."""
    if not session_manager:
        raise HTTPException(status_code=500, detail="Session manager not initialized")

    return session_manager.register()


@app.post("/api/sessions/{session_id}/analyze")
async def analyze(session_id: str, request: AnalyzeRequest):
    """
    Analyze tables into a graph and load it as the session's dataset.
    Progress lines go to the session's websocket and are returned as well.
    """
    progress: list[dict] = []

    def on_progress(line: ProgressLine):
        progress.append({"message": line.message, "level": line.level})
        if connection_manager:
            asyncio.ensure_future(connection_manager.send_progress(session_id, line))

    try:
        workspace = _require_store().get(session_id)
        config = AnalysisConfig(depth=request.depth, use_cache=request.use_cache, verbose_log=request.verbose_log)
        result = await workspace.analyze(request.tables, config, on_progress)
        return {**result, "progress": progress}
    except Exception as e:
        raise _http_error(e, "analyzing tables")


@app.post("/api/sessions/{session_id}/analyze/cancel")
async def cancel_analysis(session_id: str):
    """Cancel the session's in-flight analysis."""
    try:
        return {"cancelled": _require_store().get(session_id).cancel_analysis()}
    except Exception as e:
        raise _http_error(e, "cancelling analysis")


@app.post("/api/sessions/{session_id}/dataset")
async def load_dataset(session_id: str, request: DatasetRequest):
    """Import a graph and tables, replacing the session's dataset."""
    try:
        workspace = _require_store().get(session_id)
        workspace.load_dataset(request.graph, request.tables)
        return {**workspace.state(), "tables": workspace.tables}
    except Exception as e:
        raise _http_error(e, "loading dataset")


@app.get("/api/sessions/{session_id}/graph")
async def read_graph(session_id: str):
    """Current graph and undo/redo availability."""
    try:
        return _require_store().get(session_id).state()
    except Exception as e:
        raise _http_error(e, "reading graph")


@app.post("/api/sessions/{session_id}/nodes")
async def add_node(session_id: str, request: NodeRequest):
    """Add a node."""
    try:
        return _require_store().get(session_id).add_node(request.node)
    except Exception as e:
        raise _http_error(e, "adding node")


@app.post("/api/sessions/{session_id}/nodes/{node_id}/rename")
async def rename_node(session_id: str, node_id: str, request: RenameRequest):
    """Relabel a node."""
    try:
        return _require_store().get(session_id).rename_node(node_id, request.label)
    except Exception as e:
        raise _http_error(e, "renaming node")


@app.delete("/api/sessions/{session_id}/nodes/{node_id}")
async def delete_node(session_id: str, node_id: str):
    """Delete a node and its connected links."""
    try:
        return _require_store().get(session_id).delete_node(node_id)
    except Exception as e:
        raise _http_error(e, "deleting node")


@app.post("/api/sessions/{session_id}/links")
async def create_link(session_id: str, request: LinkRequest):
    """Create a link between two nodes."""
    try:
        return _require_store().get(session_id).create_link(
            request.source, request.target, request.label, strict=request.strict
        )
    except Exception as e:
        raise _http_error(e, "creating link")


@app.delete("/api/sessions/{session_id}/links/{link_id}")
async def delete_link(session_id: str, link_id: str):
    """Delete a link."""
    try:
        return _require_store().get(session_id).delete_link(link_id)
    except Exception as e:
        raise _http_error(e, "deleting link")


@app.put("/api/sessions/{session_id}/items")
async def update_item(session_id: str, request: ItemRequest):
    """Replace a node or link by id."""
    try:
        if "id" not in request.item:
            raise HTTPException(status_code=400, detail="Item must have an 'id'")
        return _require_store().get(session_id).update_item(request.item)
    except Exception as e:
        raise _http_error(e, "updating item")


@app.put("/api/sessions/{session_id}/tags")
async def set_tags(session_id: str, request: TagsRequest):
    """Set the complete tag list of a node or grid coordinate."""
    try:
        if request.owner_id:
            owner = request.owner_id
        elif request.owner_type and request.sheet_name:
            owner = TagOwner(request.owner_type, request.sheet_name, request.address)
        else:
            raise HTTPException(status_code=400, detail="Provide owner_id or owner_type and sheet_name")
        return _require_store().get(session_id).set_tags(owner, request.tags)
    except Exception as e:
        raise _http_error(e, "setting tags")


@app.post("/api/sessions/{session_id}/undo")
async def undo(session_id: str):
    """Step back one edit."""
    try:
        return _require_store().get(session_id).undo()
    except Exception as e:
        raise _http_error(e, "undoing")


@app.post("/api/sessions/{session_id}/redo")
async def redo(session_id: str):
    """Step forward one edit."""
    try:
        return _require_store().get(session_id).redo()
    except Exception as e:
        raise _http_error(e, "redoing")


@app.get("/api/sessions/{session_id}/tables")
async def list_tables(session_id: str):
    """Current table views."""
    try:
        return {"tables": _require_store().get(session_id).tables}
    except Exception as e:
        raise _http_error(e, "listing tables")


@app.post("/api/sessions/{session_id}/tables/reset")
async def reset_tables(session_id: str):
    """Discard sorts, filters and pivots; restore the tables as loaded."""
    try:
        return {"tables": _require_store().get(session_id).reset_tables()}
    except Exception as e:
        raise _http_error(e, "resetting tables")


@app.post("/api/sessions/{session_id}/tables/{index}/sort")
async def sort_table(session_id: str, index: int, request: SortRequest):
    try:
        table = _require_store().get(session_id).sort_table(index, request.column_index, request.direction)
        return {"table": table}
    except Exception as e:
        raise _http_error(e, "sorting table")


@app.post("/api/sessions/{session_id}/tables/{index}/filter")
async def filter_table(session_id: str, index: int, request: FilterRequest):
    try:
        table = _require_store().get(session_id).filter_table(
            index, request.column_index, request.operator, request.value
        )
        return {"table": table}
    except Exception as e:
        raise _http_error(e, "filtering table")


@app.post("/api/sessions/{session_id}/tables/{index}/pivot")
async def pivot_table(session_id: str, index: int, request: PivotRequest):
    """Summarize a table; the pivot is appended as a new table."""
    try:
        workspace = _require_store().get(session_id)
        table = workspace.pivot_table(
            index, request.group_column_index, request.value_column_index, request.aggregation
        )
        return {"table": table, "index": len(workspace.tables) - 1}
    except Exception as e:
        raise _http_error(e, "pivoting table")


@app.get("/api/sessions/{session_id}/export")
async def export_dataset(session_id: str, format: str = "json"):
    """Download the graph and tables as JSON or YAML."""
    try:
        content = _require_store().get(session_id).export(format)
        return Response(content=content, media_type=MEDIA_TYPES[format])
    except Exception as e:
        raise _http_error(e, "exporting dataset")


@app.post("/api/sessions/{session_id}/query")
async def run_query(session_id: str, request: QueryRequest):
    """Run a Cypher-like query against the session's graph."""
    try:
        return {"results": _require_store().get(session_id).query(request.query)}
    except Exception as e:
        raise _http_error(e, "running query")


@app.post("/api/translate")
async def translate(request: TranslateRequest):
    """Translate a natural-language question into a graph query."""
    try:
        return {"query": await _require_store().translate(request.question)}
    except Exception as e:
        raise _http_error(e, "translating question")


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, session_id: str):
    """
    WebSocket endpoint for analysis progress.
    Clients connect with: ws://localhost:8765/ws?session_id=xxx
    """
    if not connection_manager or not session_manager:
        await websocket.close(code=1011, reason="Server not initialized")
        return

    # Verify session exists
    if not session_manager.is_valid(session_id):
        await websocket.close(code=1008, reason="Invalid session_id")
        return

    await connection_manager.connect(websocket, session_id)

    try:
        # Keep connection alive and receive messages (for heartbeat/ping)
        while True:
            data = await websocket.receive_text()
            await websocket.send_json({"type": "pong", "message": data})

    except WebSocketDisconnect:
        connection_manager.disconnect(session_id)
    except Exception as e:
        logger.error(f"WebSocket error for {session_id}: {e}")
        connection_manager.disconnect(session_id)
