"""
gratitude_graph/api/client.py — HTTP client for graph data and story generation.

Two calls leave the graph core:
    GET  {base}/api/graph           → {nodes, links}
    POST {base}/api/generate-wiki   {"slug": ...} → {"success": true, ...} | {"error": "..."}

Graph data failures are never shown to the user: GraphDataSource falls back
to the last good data set (initially the seed graph). Story generation
failures come back as a GenerationOutcome carrying the server's error text.

Uses only Python stdlib (urllib.request); async callers run the blocking
request in a worker thread.
"""

import asyncio
import http.client
import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Callable, Optional

from gratitude_graph.graph.builder import SEED_GRAPH
from gratitude_graph.graph.model import GraphData, GraphDataError, parse_graph_data

logger = logging.getLogger(__name__)

GRAPH_PATH = "/api/graph"
GENERATE_PATH = "/api/generate-wiki"
NETWORK_ERROR = "Network error"

# urlopen wraps only connect errors in URLError; read failures raise raw.
TRANSPORT_ERRORS = (OSError, http.client.HTTPException, ValueError)


class GraphFetchError(RuntimeError):
    """Graph data could not be fetched or decoded."""


class StoryGenerationError(ValueError):
    """A story request could not be issued (caller error, e.g. empty slug)."""


@dataclass(frozen=True)
class GenerationOutcome:
    """
    Fields:
        success: True if the server produced (or already had) a story.
        error:   Server-provided error text, or NETWORK_ERROR.
        payload: Decoded response body.
    """

    success: bool
    error: Optional[str] = None
    payload: dict = field(default_factory=dict)


def _request_json(
    url: str,
    method: str = "GET",
    body: Optional[dict] = None,
    timeout: float = 30.0,
) -> tuple[int, dict]:
    """
    Perform one JSON request.

    HTTP error statuses are returned (status, decoded body) rather than
    raised, so callers can read the server's error message.

    Raises:
        OSError:                    network failure (URLError, reset, timeout).
        http.client.HTTPException:  malformed or truncated response.
        ValueError:                 response body is not JSON.
    """
    data = json.dumps(body).encode("utf-8") if body is not None else None
    req = urllib.request.Request(
        url,
        data=data,
        method=method,
        headers={"Accept": "application/json", "Content-Type": "application/json"},
    )
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            decoded = json.loads(resp.read() or b"{}")
            return resp.status, decoded if isinstance(decoded, dict) else {}
    except urllib.error.HTTPError as exc:
        raw = exc.read()
        try:
            decoded = json.loads(raw) if raw else {}
        except ValueError:
            decoded = {}
        return exc.code, decoded if isinstance(decoded, dict) else {}


def fetch_graph_data(url: str, timeout: float = 30.0) -> GraphData:
    """
    GET the graph data set.

    Raises:
        GraphFetchError: network error, non-2xx status, bad JSON or an
                         invalid payload.
    """
    try:
        status, payload = _request_json(url, timeout=timeout)
    except TRANSPORT_ERRORS as exc:
        raise GraphFetchError(f"Graph fetch failed for {url}: {exc}") from exc
    if status >= 400:
        raise GraphFetchError(f"Graph fetch failed for {url}: HTTP {status}")
    try:
        return parse_graph_data(payload)
    except GraphDataError as exc:
        raise GraphFetchError(f"Invalid graph payload from {url}: {exc}") from exc


class GraphDataSource:
    """
    Graph data with graceful degradation.

    load() returns the freshly fetched data set when it has nodes; otherwise
    (fetch failure or an empty graph) it returns the last good data set,
    which starts out as `fallback`.

    Args:
        url:      Full URL of GET /api/graph.
        fetch:    Fetch function (url → GraphData); injectable for tests.
        fallback: Data set served before the first successful fetch.
    """

    def __init__(
        self,
        url: str,
        fetch: Callable[[str], GraphData] = fetch_graph_data,
        fallback: GraphData = SEED_GRAPH,
    ):
        self.url = url
        self._fetch = fetch
        self._cached = fallback

    @property
    def cached(self) -> GraphData:
        return self._cached

    def load(self) -> GraphData:
        try:
            data = self._fetch(self.url)
        except GraphFetchError as exc:
            logger.warning("Keeping cached graph data: %s", exc)
            return self._cached
        if data.is_empty:
            logger.info("Graph endpoint returned no nodes; keeping cached data set.")
            return self._cached
        self._cached = data
        return data

    async def load_async(self) -> GraphData:
        return await asyncio.to_thread(self.load)


class StoryClient:
    """
    Issues story generation requests.

    Instances are awaitable callables (slug → GenerationOutcome), which is
    the shape DiveController expects.

    Args:
        base_url: Site root, e.g. "https://example.org".
        timeout:  Request timeout in seconds (generation is slow).
    """

    def __init__(self, base_url: str, timeout: float = 120.0):
        self.url = base_url.rstrip("/") + GENERATE_PATH
        self.timeout = timeout

    def request(self, slug: str) -> GenerationOutcome:
        if not slug:
            raise StoryGenerationError("Missing slug")
        try:
            status, payload = _request_json(
                self.url, method="POST", body={"slug": slug}, timeout=self.timeout
            )
        except TRANSPORT_ERRORS as exc:
            logger.warning("Story request for '%s' failed: %s", slug, exc)
            return GenerationOutcome(success=False, error=NETWORK_ERROR)

        if status < 400 and (payload.get("success") or payload.get("wiki")):
            return GenerationOutcome(success=True, payload=payload)
        error = payload.get("error") or f"Request failed (HTTP {status})"
        return GenerationOutcome(success=False, error=str(error), payload=payload)

    async def __call__(self, slug: str) -> GenerationOutcome:
        return await asyncio.to_thread(self.request, slug)
