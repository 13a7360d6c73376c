"""
Request/response contract around the external analysis collaborator.

The collaborator turns tables into an initial graph. It is slow, billed and
non-deterministic, so a workspace keeps at most one request in flight: a new
request cancels the previous one, and the cancelled caller gets an
AnalysisCancelledError instead of a stale graph.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Callable, Protocol

from .constants import ANALYSIS_DEPTHS, PROGRESS_LEVELS
from .exceptions import AnalysisCancelledError, AnalysisError
from .types import Graph, Table
from .utils import validate_choice

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisConfig:
    """Options forwarded to the analysis collaborator."""
    depth: str = "deep"
    use_cache: bool = True
    verbose_log: bool = False

    def __post_init__(self):
        validate_choice("analysis depth", self.depth, ANALYSIS_DEPTHS)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ProgressLine:
    """Human-readable progress message from an analysis."""
    message: str
    level: str = "info"

    def __post_init__(self):
        validate_choice("progress level", self.level, PROGRESS_LEVELS)


ProgressCallback = Callable[[ProgressLine], None]


class Analyzer(Protocol):
    async def analyze(
        self,
        tables: list[Table],
        config: AnalysisConfig,
        on_progress: ProgressCallback,
    ) -> dict: ...


class QueryTranslator(Protocol):
    async def translate(self, question: str) -> str: ...


def validate_analysis_result(payload) -> Graph:
    """Check the collaborator returned a graph-shaped object."""
    if not isinstance(payload, dict) \
            or not isinstance(payload.get("nodes"), list) \
            or not isinstance(payload.get("links"), list):
        raise AnalysisError("Invalid graph structure received from analyzer")
    return payload


class AnalysisRunner:
    """Runs analyses one at a time, cancelling whatever is still running."""

    def __init__(self, analyzer: Analyzer):
        self.analyzer = analyzer
        self._task: asyncio.Task | None = None
        self._generation = 0

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    def cancel(self) -> bool:
        """
        Cancel the current analysis, if any. Returns True if one was cancelled.
        An analysis whose result is ready but not yet handed back counts too.
        """
        self._generation += 1
        task = self._task
        if task is None:
            return False
        if not task.done():
            task.cancel()
        logger.warning("Cancelled in-flight analysis")
        return True

    async def run(
        self,
        tables: list[Table],
        config: AnalysisConfig,
        on_progress: ProgressCallback | None = None,
    ) -> Graph:
        """
        Submit tables for analysis and wait for the graph.
        Raises AnalysisError on collaborator failure, AnalysisCancelledError
        when a newer request (or cancel()) took over.
        """
        self.cancel()
        generation = self._generation

        emit = self._progress_emitter(config, on_progress)
        task = asyncio.ensure_future(self._invoke(tables, config, emit))
        self._task = task

        try:
            graph = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                raise AnalysisCancelledError("Analysis was cancelled by a newer request") from None
            raise
        finally:
            if self._task is task:
                self._task = None

        # The task may have finished just before a newer request took over
        if generation != self._generation:
            raise AnalysisCancelledError("Analysis was superseded before its result was used")
        return graph

    @staticmethod
    def _progress_emitter(config: AnalysisConfig, on_progress: ProgressCallback | None) -> ProgressCallback:
        def emit(line: ProgressLine):
            if line.level == "detail":
                logger.debug(f"Analysis: {line.message}")
                if not config.verbose_log:
                    return
            else:
                logger.info(f"Analysis: {line.message}")
            if on_progress:
                on_progress(line)
        return emit

    async def _invoke(self, tables: list[Table], config: AnalysisConfig, emit: ProgressCallback) -> Graph:
        emit(ProgressLine(f"Starting {config.depth} analysis of {len(tables)} tables..."))
        try:
            payload = await self.analyzer.analyze(tables, config, emit)
        except AnalysisError:
            raise
        except Exception as e:
            logger.error(f"Analysis collaborator failed: {e}", exc_info=True)
            raise AnalysisError(str(e) or e.__class__.__name__) from e

        graph = validate_analysis_result(payload)
        emit(ProgressLine(f"Received graph: {len(graph['nodes'])} nodes, {len(graph['links'])} links", "detail"))
        emit(ProgressLine("Analysis complete!"))
        return graph
