"""Spreadsheet knowledge graphs: undo/redo history, analysis cache, graph edits and table views."""

__version__ = "0.1.0"
