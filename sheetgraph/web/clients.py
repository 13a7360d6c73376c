"""HTTP clients for the external analysis and query-translation services."""

import json
import logging

import httpx

from ..core.analysis import AnalysisConfig, ProgressCallback, ProgressLine
from ..core.exceptions import AnalysisError, QueryTranslationError
from ..core.types import Table

logger = logging.getLogger(__name__)


class HTTPAnalyzer:
    """
    Analysis collaborator reached over HTTP.

    POST {base_url}/analyze with {"tables", "config"}; the response body is
    newline-delimited JSON messages:

        {"type": "progress", "payload": {"message": ..., "level": "info"|"detail"}}
        {"type": "result", "payload": {"nodes": [...], "links": [...]}}
        {"type": "error", "payload": "human readable message"}
    """

    def __init__(self, base_url: str, timeout: float = 120.0, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def analyze(self, tables: list[Table], config: AnalysisConfig, on_progress: ProgressCallback) -> dict:
        request = {"tables": tables, "config": config.to_dict()}
        result = None

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                async with client.stream("POST", f"{self.base_url}/analyze", json=request) as response:
                    if response.status_code != 200:
                        body = (await response.aread()).decode("utf-8", errors="replace")
                        raise AnalysisError(f"Analyzer returned HTTP {response.status_code}: {body[:200]}")

                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue
                        message = json.loads(line)
                        kind = message.get("type")
                        payload = message.get("payload")

                        if kind == "progress":
                            on_progress(ProgressLine(payload["message"], payload.get("level", "info")))
                        elif kind == "result":
                            result = payload
                        elif kind == "error":
                            raise AnalysisError(str(payload))
                        else:
                            logger.debug(f"Ignoring analyzer message of type {kind!r}")
        except httpx.HTTPError as e:
            raise AnalysisError(f"Analyzer request failed: {e}") from e
        except (ValueError, KeyError, TypeError) as e:
            raise AnalysisError(f"Unreadable analyzer response: {e}") from e

        if result is None:
            raise AnalysisError("Analyzer finished without a result")
        return result


class HTTPQueryTranslator:
    """Natural-language to query translation over HTTP."""

    def __init__(self, base_url: str, timeout: float = 30.0, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def translate(self, question: str) -> str:
        logger.info(f"Translating {question!r} to a graph query")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(f"{self.base_url}/translate", json={"question": question})
                response.raise_for_status()
                query = response.json()["query"]
        except httpx.HTTPError as e:
            raise QueryTranslationError(f"Failed to translate query: {e}") from e
        except (ValueError, KeyError, TypeError) as e:
            raise QueryTranslationError(f"Unreadable translator response: {e}") from e

        if not isinstance(query, str) or not query.strip():
            raise QueryTranslationError("Translator returned an empty query")

        logger.info(f"Generated query: {query}")
        return query.strip()
