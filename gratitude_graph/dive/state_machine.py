"""
gratitude_graph/dive/state_machine.py — Hero ↔ dive mode controller.

States:
    hero         Graph is a dimmed, non-interactive backdrop under the
                 call-to-action overlay. Page scrolls normally.
    interactive  Graph is fullscreen and takes pointer input; overlay hidden;
                 page scroll locked.
    selected     Sub-state of interactive: a NodeActionPanel is open for
                 exactly one node.

Transitions:
    hero        --explore()-->      interactive   (locks scroll, surface interactive)
    interactive --select(node)-->   selected
    selected    --select(other)-->  selected      (new panel replaces the old one)
    selected    --close_panel()-->  interactive
    interactive/selected --exit()--> hero         (clears panel + message, unlocks scroll)
    any         --unmount()-->      hero          (unlocks scroll, detaches surface)

Generation:
    generate() runs the story request for the open panel. The result is only
    applied if that same panel object is still open when the request
    resolves; otherwise it is discarded silently.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from gratitude_graph.api.client import GenerationOutcome, StoryGenerationError
from gratitude_graph.config import DEFAULT_CONFIG, GraphConfig
from gratitude_graph.dive.panel import GENERATE, READ, NodeActionPanel
from gratitude_graph.dive.scroll_lock import ScrollLock
from gratitude_graph.graph.model import GraphNode
from gratitude_graph.render.surface import RenderSurface

logger = logging.getLogger(__name__)

StoryRequester = Callable[[str], Awaitable[GenerationOutcome]]

SUCCESS_MESSAGE = "Story generated! Opening it now..."
FALLBACK_ERROR = "Failed to generate story"


class DiveState(str, Enum):
    HERO = "hero"
    INTERACTIVE = "interactive"
    SELECTED = "selected"


class DiveController:
    """
    Orchestrates the hero backdrop, dive mode and the node action panel.

    Args:
        surface:       RenderSurface showing the graph.
        request_story: async slug → GenerationOutcome (e.g. a StoryClient).
        navigate:      Called with a page path (story pages).
        scroll_lock:   Page scroll lock; a private one is created if omitted.
        sleep:         Awaitable delay, injectable for tests.
        config:        GraphConfig.
    """

    def __init__(
        self,
        surface: RenderSurface,
        request_story: StoryRequester,
        navigate: Callable[[str], None],
        scroll_lock: Optional[ScrollLock] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        config: GraphConfig = DEFAULT_CONFIG,
    ):
        self.surface = surface
        self.config = config
        self._request_story = request_story
        self._navigate = navigate
        self._sleep = sleep
        self.scroll_lock = scroll_lock if scroll_lock is not None else ScrollLock()
        self._state = DiveState.HERO
        self._panel: Optional[NodeActionPanel] = None
        self.surface.reconfigure(interactive=False, on_node_click=None)

    # ── Observable state ──────────────────────────────────────────────────────

    @property
    def state(self) -> DiveState:
        return self._state

    @property
    def panel(self) -> Optional[NodeActionPanel]:
        return self._panel

    @property
    def overlay_visible(self) -> bool:
        return self._state is DiveState.HERO

    @property
    def scroll_locked(self) -> bool:
        return self.scroll_lock.locked

    @property
    def in_dive_mode(self) -> bool:
        return self._state is not DiveState.HERO

    # ── Transitions ───────────────────────────────────────────────────────────

    def explore(self) -> None:
        """hero → interactive."""
        if self._state is not DiveState.HERO:
            logger.debug("explore() ignored in state '%s'.", self._state.value)
            return
        self.scroll_lock.acquire()
        self.surface.reconfigure(interactive=True, on_node_click=self.select)
        self._state = DiveState.INTERACTIVE
        logger.info("Entered dive mode.")

    def select(self, node: GraphNode) -> None:
        """interactive/selected → selected for `node` (replaces any open panel)."""
        if self._state is DiveState.HERO:
            logger.debug("select('%s') ignored outside dive mode.", node.id)
            return
        self._panel = NodeActionPanel(node=node)
        self._state = DiveState.SELECTED

    def close_panel(self) -> None:
        """selected → interactive."""
        if self._state is not DiveState.SELECTED:
            return
        self._panel = None
        self._state = DiveState.INTERACTIVE

    def exit(self) -> None:
        """interactive/selected → hero."""
        if self._state is DiveState.HERO:
            return
        self._panel = None
        self.surface.reconfigure(interactive=False, on_node_click=None)
        self._state = DiveState.HERO
        self.scroll_lock.release()
        logger.info("Left dive mode.")

    def unmount(self) -> None:
        """Host teardown: always restores scrolling, then detaches the surface."""
        try:
            self.exit()
        finally:
            self.scroll_lock.release()
            self.surface.unmount()

    def __enter__(self) -> "DiveController":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unmount()

    # ── Panel actions ─────────────────────────────────────────────────────────

    def read(self) -> None:
        """Primary action for nodes that already have a story."""
        panel = self._panel
        if panel is None or panel.primary_action != READ:
            return
        self._navigate(self.config.wiki_path(panel.node.slug))

    async def generate(self) -> None:
        """
        Request a story for the open panel's node.

        No-op when no panel is open, the node already has a story, or a
        request from this panel is still pending. On success the confirmation
        is shown and, after config.redirect_delay_s, the story page opens. On
        failure the server's error text is shown and the panel stays open for
        a retry. Results for a panel that is no longer open are dropped.
        """
        panel = self._panel
        if panel is None or panel.primary_action != GENERATE or panel.pending:
            return
        panel.pending = True
        panel.message = None
        slug = panel.node.slug

        try:
            outcome = await self._request_story(slug)
        except StoryGenerationError as exc:
            outcome = GenerationOutcome(success=False, error=str(exc))
        except BaseException:
            # An open panel must never stay disabled after its request died.
            panel.pending = False
            raise

        if panel is not self._panel:
            logger.debug("Discarding story result for '%s': panel no longer open.", slug)
            return

        if not outcome.success:
            logger.warning("Story generation failed for '%s': %s", slug, outcome.error)
            panel.show_error(outcome.error or FALLBACK_ERROR)
            return

        logger.info("Story generated for '%s'.", slug)
        panel.show_success(SUCCESS_MESSAGE)
        await self._sleep(self.config.redirect_delay_s)
        if panel is self._panel:
            self._navigate(self.config.wiki_path(slug))
