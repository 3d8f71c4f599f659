"""
gratitude_graph/api/endpoints.py — FastAPI endpoints behind the graph page.

Endpoint summary:
    GET  /api/health         — Liveness probe.
    GET  /api/graph          — {nodes, links} for the force graph (empty graph on any failure).
    GET  /api/stats          — Counts for the hero stats bar.
    GET  /api/funding        — Story fund transparency numbers.
    POST /api/generate-wiki  — Generate a backstory for a package slug.

Error bodies are {"error": "<message>"}; the dive panel shows that text verbatim.

Story generation itself (prompting an LLM with npm/GitHub context) is an
injected collaborator: any callable taking the package row dict and returning
a GeneratedStory.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from gratitude_graph import __version__
from gratitude_graph.funding.ledger import FundingLedger
from gratitude_graph.graph.builder import GraphTables, graph_stats
from gratitude_graph.graph.model import EMPTY_GRAPH, graph_data_to_dict

logger = logging.getLogger(__name__)

FUND_EMPTY_ERROR = "The story fund is empty. Chip in to keep the stories coming."


@dataclass(frozen=True)
class GeneratedStory:
    """
    Output of a story generator.

    Fields:
        sections:     Named narrative sections (who, the_moment, what_it_does, ...).
        title:        Creator name or "The <package> Team".
        subtitle:     One-line summary.
        location:     Creator location or "Open Source".
        generated_by: Model identifier.
        tokens_in, tokens_out, cost_usd: Usage recorded against the fund.
    """

    sections: dict
    title: str
    subtitle: str = ""
    location: str = "Open Source"
    generated_by: str = "unknown"
    tokens_in: int = 0
    tokens_out: int = 0
    cost_usd: float = 0.0
    creator_name: Optional[str] = None
    extra: dict = field(default_factory=dict)

    def backstory(self) -> dict:
        return {**self.sections, "title": self.title, "subtitle": self.subtitle, "location": self.location}


StoryGenerator = Callable[[dict], GeneratedStory]


class GenerateRequest(BaseModel):
    """Request body for POST /api/generate-wiki."""
    slug: Optional[str] = None


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": message})


def create_app(
    tables: GraphTables,
    ledger: Optional[FundingLedger] = None,
    story_generator: Optional[StoryGenerator] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        tables:          Application tables (graph source, backstory store).
        ledger:          Funding pool; a fresh empty ledger if omitted.
        story_generator: Callable producing a GeneratedStory from a package
                         row. Without one, generation answers 503.

    Returns:
        Configured FastAPI application instance.
    """
    ledger = ledger if ledger is not None else FundingLedger()

    app = FastAPI(
        title="Gratitude Graph API",
        version=__version__,
        description="Graph data, stats, funding pool and story generation for the dependency graph.",
    )

    # ── Routes ────────────────────────────────────────────────────────────────

    @app.get("/api/health", tags=["system"])
    async def health() -> dict:
        """Liveness probe — returns service status and version."""
        return {"status": "ok", "version": __version__}

    @app.get("/api/graph", tags=["graph"])
    def get_graph() -> dict:
        """Graph data set. Never fails: an unreadable store yields an empty graph."""
        try:
            data = tables.graph_data()
        except Exception:  # noqa: BLE001
            logger.exception("Graph data unavailable; serving an empty graph.")
            data = EMPTY_GRAPH
        return graph_data_to_dict(data)

    @app.get("/api/stats", tags=["graph"])
    def get_stats() -> dict:
        """Counts for the stats bar. Never fails: an unreadable store yields zeros."""
        try:
            data = tables.graph_data()
        except Exception:  # noqa: BLE001
            logger.exception("Graph data unavailable; serving zero stats.")
            data = EMPTY_GRAPH
        return graph_stats(data)

    @app.get("/api/funding", tags=["funding"])
    def get_funding():
        """Story fund balance and per-story cost figures."""
        try:
            return ledger.stats().as_dict()
        except Exception:  # noqa: BLE001
            logger.exception("Funding stats error.")
            return _error(500, "Failed to fetch funding stats")

    @app.post("/api/generate-wiki", tags=["stories"])
    def generate_wiki(body: GenerateRequest):
        """
        Generate a backstory for one package.

        Responses:
            200 {"success": true, "wiki": {...}, "generatedBy": ...}
            200 {"message": "Wiki already verified", "wiki": {...}}
            400 missing slug · 404 unknown package · 402 fund empty
            503 no generator configured · 500 generation failed
        """
        slug = (body.slug or "").strip()
        if not slug:
            return _error(400, "Missing slug")

        package = tables.find_package(slug)
        if package is None:
            return _error(404, "Package not found")

        if package.get("backstory_md") and package.get("backstory_verified"):
            return {"message": "Wiki already verified", "wiki": json.loads(package["backstory_md"])}

        if story_generator is None:
            return _error(503, "Story generation is not configured")

        if not ledger.can_generate():
            logger.warning("Story request for '%s' refused: fund balance %s.", slug, ledger.balance())
            return _error(402, FUND_EMPTY_ERROR)

        try:
            story = story_generator(package)
        except Exception:  # noqa: BLE001
            logger.exception("Wiki generation error for '%s'.", slug)
            return _error(500, "Failed to generate wiki")

        ledger.record_usage(
            package_name=str(package.get("name") or slug),
            package_slug=slug,
            tokens_in=story.tokens_in,
            tokens_out=story.tokens_out,
            cost_usd=story.cost_usd,
            model=story.generated_by,
        )
        backstory = story.backstory()
        tables.store_backstory(
            slug,
            json.dumps(backstory),
            generated_by=story.generated_by,
            creator_name=story.creator_name or story.title,
        )
        return {"success": True, "wiki": backstory, "generatedBy": story.generated_by}

    return app
