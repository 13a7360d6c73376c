"""Constants for spreadsheet graph operations."""

# History
MAX_HISTORY_SIZE = 11  # 10 undo steps + the current state

# Session
SESSION_ID_LENGTH = 8
SESSION_TTL_SECONDS = 24 * 60 * 60  # 24 hours

# Node kinds
NODE_TYPES = (
    "Spreadsheet",
    "Sheet",
    "Table",
    "Cell",
    "Formula",
    "Analysis",
    "Tag",
    "Row",
    "Column",
)
TAG_NODE_TYPE = "Tag"
TAG_OWNER_TYPES = ("Sheet", "Row", "Column", "Cell")

# Relationship labels
CONTAINS = "CONTAINS"
REFERENCES = "REFERENCES"
HAS_TAG = "HAS_TAG"
RELATED_TO = "RELATED_TO"
PERFORMS = "PERFORMS"

# Table transforms
SORT_DIRECTIONS = ("asc", "desc")
FILTER_OPERATORS = ("==", "!=", ">", "<", ">=", "<=", "contains")
AGGREGATIONS = ("sum", "average", "count")

# Analysis
ANALYSIS_DEPTHS = ("quick", "deep")
PROGRESS_LEVELS = ("info", "detail")

# Query console defaults
DEFAULT_NODE_RESULTS = 5
DEFAULT_LINK_RESULTS = 10

# Log buffer
MAX_LOG_RECORDS = 200
