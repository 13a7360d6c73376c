"""HTTP server components for spreadsheet graph workspaces."""

from .session_manager import HTTPSessionManager
from .store import Workspace, WorkspaceStore
from .clients import HTTPAnalyzer, HTTPQueryTranslator

__all__ = [
    "HTTPSessionManager",
    "Workspace",
    "WorkspaceStore",
    "HTTPAnalyzer",
    "HTTPQueryTranslator",
]
