"""Shared fixtures and fake collaborators."""

import asyncio
import copy

import pytest

from sheetgraph.core import AnalysisConfig, ContentCache, MemoryCacheStorage, ProgressLine
from sheetgraph.web.store import Workspace


SAMPLE_GRAPH = {
    "nodes": [
        {"id": "sheet_sales", "type": "Sheet", "label": "Sales"},
        {"id": "cell_sales_a2", "type": "Cell", "label": "A2", "value": 10, "address": "A2"},
        {"id": "cell_sales_b2", "type": "Cell", "label": "B2", "value": 5, "address": "B2"},
        {"id": "formula_sales_c2", "type": "Formula", "label": "Total", "formula": "=A2+B2",
         "description": "Row total"},
    ],
    "links": [
        {"id": "l1", "source": "sheet_sales", "target": "cell_sales_a2", "label": "CONTAINS"},
        {"id": "l2", "source": "sheet_sales", "target": "cell_sales_b2", "label": "CONTAINS"},
        {"id": "l3", "source": "formula_sales_c2", "target": "cell_sales_a2", "label": "REFERENCES"},
        {"id": "l4", "source": "formula_sales_c2", "target": "cell_sales_b2", "label": "REFERENCES"},
    ],
}


def make_table(name: str, header: list, *rows: list) -> dict:
    """Build a table with spreadsheet addresses from plain values."""
    grid = [header, *rows]
    return {
        "name": name,
        "rows": [
            [{"address": f"{chr(65 + c)}{r + 1}", "value": value} for c, value in enumerate(row)]
            for r, row in enumerate(grid)
        ],
    }


def column(table: dict, index: int) -> list:
    """Values of one column of the data rows."""
    return [row[index]["value"] if index < len(row) else None for row in table["rows"][1:]]


@pytest.fixture
def sample_graph():
    return copy.deepcopy(SAMPLE_GRAPH)


@pytest.fixture
def sales_table():
    return make_table(
        "Sales",
        ["Region", "Amount"],
        ["north", 5],
        ["south", 2],
        ["north", "7"],
        ["east", None],
        ["south", "n/a"],
    )


@pytest.fixture
def sample_tables(sales_table):
    return [sales_table]


class FakeAnalyzer:
    """Analysis collaborator returning a canned graph."""

    def __init__(self, graph: dict | None = None, error: Exception | None = None):
        self.graph = graph if graph is not None else copy.deepcopy(SAMPLE_GRAPH)
        self.error = error
        self.calls: list[tuple[list, AnalysisConfig]] = []
        self.gate: asyncio.Event | None = None

    async def analyze(self, tables, config, on_progress):
        self.calls.append((tables, config))
        on_progress(ProgressLine("Reading sheets..."))
        on_progress(ProgressLine("Sheet Sales: 3 formulas", "detail"))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return copy.deepcopy(self.graph)


class FakeTranslator:
    """Query translator answering every question with the same query."""

    def __init__(self, query: str = "MATCH (f:Formula) RETURN f", error: Exception | None = None):
        self.query = query
        self.error = error
        self.questions: list[str] = []

    async def translate(self, question):
        self.questions.append(question)
        if self.error is not None:
            raise self.error
        return self.query


@pytest.fixture
def analyzer():
    return FakeAnalyzer()


@pytest.fixture
def cache():
    return ContentCache(MemoryCacheStorage())


@pytest.fixture
def workspace(cache, analyzer):
    return Workspace(cache, analyzer)


@pytest.fixture
def loaded_workspace(workspace, sample_graph, sample_tables):
    workspace.load_dataset(sample_graph, sample_tables)
    return workspace
