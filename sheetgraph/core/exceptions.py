"""Custom exceptions for spreadsheet graph operations."""


class SheetGraphError(Exception):
    """Base exception for spreadsheet graph operations."""
    pass


class MalformedGraphError(SheetGraphError):
    """Raised when a graph violates its structural invariants."""
    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        summary = "; ".join(self.problems[:5])
        if len(self.problems) > 5:
            summary += f" (+{len(self.problems) - 5} more)"
        super().__init__(f"Malformed graph: {summary}")


class DanglingLinkError(MalformedGraphError):
    """Raised when a link references a node that does not exist."""
    def __init__(self, link_id: str, missing: list[str]):
        self.link_id = link_id
        self.missing = list(missing)
        super().__init__([f"link '{link_id}' references missing node '{node_id}'" for node_id in missing])


class DuplicateIdError(MalformedGraphError):
    """Raised when a node or link id is already taken."""
    def __init__(self, kind: str, item_id: str):
        self.kind = kind
        self.item_id = item_id
        super().__init__([f"duplicate {kind} id '{item_id}'"])


class NodeNotFoundError(SheetGraphError):
    """Raised when a node is not found."""
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' not found in graph")


class TableNotFoundError(SheetGraphError):
    """Raised when a table index is out of range."""
    def __init__(self, index: int, count: int):
        self.index = index
        self.count = count
        super().__init__(f"Table {index} not found ({count} tables loaded)")


class NoDatasetError(SheetGraphError):
    """Raised when a graph edit is attempted before any dataset is loaded."""
    def __init__(self):
        super().__init__("No dataset loaded; analyze or import one first")


class StorageQuotaError(SheetGraphError):
    """Raised by cache storage when a write would exceed its quota."""
    def __init__(self, needed: int, limit: int):
        self.needed = needed
        self.limit = limit
        super().__init__(f"Cache storage quota exceeded: {needed} bytes needed, limit is {limit}")


class AnalysisError(SheetGraphError):
    """Raised when the analysis collaborator fails or returns an invalid graph."""
    pass


class AnalysisCancelledError(AnalysisError):
    """Raised to the caller of an analysis that was cancelled or superseded."""
    pass


class QueryTranslationError(SheetGraphError):
    """Raised when natural-language query translation fails."""
    pass


class CollaboratorUnavailableError(SheetGraphError):
    """Raised when no external collaborator is configured for a request."""
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"No {name} collaborator configured")


class SessionNotFoundError(SheetGraphError):
    """Raised when a session is not found."""
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Unknown session: {session_id}")
