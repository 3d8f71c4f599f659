"""
gratitude_graph/tests/test_state_machine.py — Tests for gratitude_graph.dive.

Tests verify:
- hero / interactive / selected transitions and the scroll lock that goes with them.
- Hero and interactive are never observable at the same time (random walks).
- Generation: success redirect after the delay, server error shown verbatim,
  fallback message, pending guard, and results for a replaced panel dropped.
- Unmount always restores page scrolling.
"""

import asyncio
import http.client
import random

import pytest

from gratitude_graph.api import client
from gratitude_graph.api.client import NETWORK_ERROR, GenerationOutcome, StoryClient, StoryGenerationError
from gratitude_graph.dive.panel import GENERATE, READ, NodeActionPanel
from gratitude_graph.dive.scroll_lock import ScrollLock
from gratitude_graph.dive.state_machine import (
    FALLBACK_ERROR,
    SUCCESS_MESSAGE,
    DiveController,
    DiveState,
)
from gratitude_graph.graph.model import GraphData, GraphLink

from conftest import make_package, make_project

NO_WIKI = make_package("pkg-a", name="Alpha", slug="alpha")
WITH_WIKI = make_package("pkg-b", name="Beta", slug="beta", has_wiki=True, creator_name="Bea")
PROJECT = make_project("proj-c", name="Gamma", slug="project-c")


class StoryStub:
    """Awaitable story requester returning queued outcomes, optionally gated."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes) or [GenerationOutcome(success=True)]
        self.calls = []
        self.gate = None

    async def __call__(self, slug):
        self.calls.append(slug)
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class SleepRecorder:
    def __init__(self, during=None):
        self.delays = []
        self.during = during

    async def __call__(self, seconds):
        self.delays.append(seconds)
        if self.during is not None:
            self.during()


@pytest.fixture
def lock_changes():
    return []


@pytest.fixture
def make_controller(surface, navigator, lock_changes):
    surface.set_data(
        GraphData(nodes=(NO_WIKI, WITH_WIKI, PROJECT), links=(GraphLink("proj-c", "pkg-a"),))
    )

    def _make(story=None, sleep=None):
        return DiveController(
            surface,
            request_story=story or StoryStub(),
            navigate=navigator.append,
            scroll_lock=ScrollLock(on_change=lock_changes.append),
            sleep=sleep or SleepRecorder(),
        )

    return _make


def assert_consistent(ctl):
    hero = ctl.state is DiveState.HERO
    assert ctl.overlay_visible is hero
    assert ctl.scroll_locked is not hero
    assert ctl.surface.interactive is not hero
    assert not (ctl.overlay_visible and ctl.scroll_locked)
    assert (ctl.panel is not None) is (ctl.state is DiveState.SELECTED)


# ── Transitions ───────────────────────────────────────────────────────────────

class TestTransitions:

    def test_starts_in_hero(self, make_controller):
        ctl = make_controller()
        assert ctl.state is DiveState.HERO
        assert ctl.overlay_visible
        assert not ctl.scroll_locked
        assert not ctl.surface.interactive
        assert_consistent(ctl)

    def test_explore_locks_scroll(self, make_controller, lock_changes):
        ctl = make_controller()
        ctl.explore()
        assert ctl.state is DiveState.INTERACTIVE
        assert ctl.in_dive_mode
        assert lock_changes == [True]
        assert_consistent(ctl)

    def test_select_replaces_panel(self, make_controller):
        ctl = make_controller()
        ctl.explore()
        ctl.select(NO_WIKI)
        first = ctl.panel
        ctl.select(WITH_WIKI)
        assert ctl.state is DiveState.SELECTED
        assert ctl.panel is not first
        assert ctl.panel.node is WITH_WIKI

    def test_select_ignored_in_hero(self, make_controller):
        ctl = make_controller()
        ctl.select(NO_WIKI)
        assert ctl.state is DiveState.HERO
        assert ctl.panel is None

    def test_close_panel(self, make_controller):
        ctl = make_controller()
        ctl.explore()
        ctl.select(NO_WIKI)
        ctl.close_panel()
        assert ctl.state is DiveState.INTERACTIVE
        assert ctl.panel is None
        assert ctl.scroll_locked

    def test_exit_from_selected_clears_everything(self, make_controller, lock_changes):
        ctl = make_controller()
        ctl.explore()
        ctl.select(NO_WIKI)
        ctl.panel.show_error("boom")
        ctl.exit()
        assert ctl.state is DiveState.HERO
        assert ctl.panel is None
        assert lock_changes == [True, False]
        assert_consistent(ctl)

    def test_repeated_explore_and_exit_are_harmless(self, make_controller, lock_changes):
        ctl = make_controller()
        ctl.explore()
        ctl.explore()
        ctl.exit()
        ctl.exit()
        assert lock_changes == [True, False]

    @pytest.mark.parametrize("seed", range(5))
    def test_random_walks_never_mix_modes(self, make_controller, seed):
        rng = random.Random(seed)
        ctl = make_controller()
        actions = [
            ctl.explore,
            ctl.exit,
            ctl.close_panel,
            lambda: ctl.select(rng.choice([NO_WIKI, WITH_WIKI, PROJECT])),
            lambda: ctl.surface.click(rng.choice([NO_WIKI, WITH_WIKI])),
        ]
        for _ in range(200):
            rng.choice(actions)()
            assert_consistent(ctl)


# ── Surface integration ───────────────────────────────────────────────────────

class TestClickRouting:

    def test_hero_click_navigates(self, make_controller, navigator):
        ctl = make_controller()
        ctl.surface.click(WITH_WIKI)
        assert navigator == ["/wiki/beta"]
        assert ctl.state is DiveState.HERO

    def test_dive_click_selects(self, make_controller, navigator):
        ctl = make_controller()
        ctl.explore()
        ctl.surface.click(WITH_WIKI)
        assert navigator == []
        assert ctl.panel.node.id == "pkg-b"

    def test_exit_restores_navigation(self, make_controller, navigator):
        ctl = make_controller()
        ctl.explore()
        ctl.exit()
        ctl.surface.click(WITH_WIKI)
        assert navigator == ["/wiki/beta"]

    def test_wheel_follows_mode(self, make_controller):
        ctl = make_controller()
        assert ctl.surface.wheel(10, 10, -100) is False
        ctl.explore()
        assert ctl.surface.wheel(10, 10, -100) is True


# ── Panel ─────────────────────────────────────────────────────────────────────

class TestPanel:

    def test_read_action(self):
        panel = NodeActionPanel(WITH_WIKI)
        assert panel.primary_action == READ
        assert panel.action_label == "Read the story"
        assert panel.kind_label == "Package"
        assert panel.details == ("by Bea", "Story available")

    def test_generate_action(self):
        panel = NodeActionPanel(NO_WIKI)
        assert panel.primary_action == GENERATE
        assert panel.action_label == "Generate story"
        panel.pending = True
        assert panel.action_label == "Generating..."
        assert not panel.action_enabled

    def test_project_panel(self):
        panel = NodeActionPanel(PROJECT)
        assert panel.kind_label == "Project"
        assert panel.details == ("No story yet",)

    def test_read_navigates(self, make_controller, navigator):
        ctl = make_controller()
        ctl.explore()
        ctl.select(WITH_WIKI)
        ctl.read()
        assert navigator == ["/wiki/beta"]

    def test_read_ignored_without_story(self, make_controller, navigator):
        ctl = make_controller()
        ctl.explore()
        ctl.select(NO_WIKI)
        ctl.read()
        assert navigator == []


# ── Generation ────────────────────────────────────────────────────────────────

class TestGenerate:

    def test_success_redirects_after_delay(self, make_controller, navigator):
        story, sleep = StoryStub(GenerationOutcome(success=True)), SleepRecorder()
        ctl = make_controller(story, sleep)
        ctl.explore()
        ctl.select(NO_WIKI)
        asyncio.run(ctl.generate())
        assert story.calls == ["alpha"]
        assert sleep.delays == [1.5]
        assert ctl.panel.message == SUCCESS_MESSAGE
        assert not ctl.panel.message_is_error
        assert navigator == ["/wiki/alpha"]

    def test_server_error_shown_verbatim(self, make_controller, navigator):
        story = StoryStub(GenerationOutcome(success=False, error="The story fund is empty."))
        ctl = make_controller(story)
        ctl.explore()
        ctl.select(NO_WIKI)
        asyncio.run(ctl.generate())
        assert ctl.state is DiveState.SELECTED
        assert ctl.panel.message == "The story fund is empty."
        assert ctl.panel.message_is_error
        assert not ctl.panel.pending
        assert navigator == []

    def test_error_without_text_uses_fallback(self, make_controller):
        ctl = make_controller(StoryStub(GenerationOutcome(success=False)))
        ctl.explore()
        ctl.select(NO_WIKI)
        asyncio.run(ctl.generate())
        assert ctl.panel.message == FALLBACK_ERROR

    def test_failure_then_retry(self, make_controller, navigator):
        story = StoryStub(GenerationOutcome(success=False, error="Network error"), GenerationOutcome(success=True))
        ctl = make_controller(story)
        ctl.explore()
        ctl.select(NO_WIKI)
        asyncio.run(ctl.generate())
        asyncio.run(ctl.generate())
        assert len(story.calls) == 2
        assert navigator == ["/wiki/alpha"]

    def test_request_error_becomes_message(self, make_controller):
        ctl = make_controller(StoryStub(StoryGenerationError("Missing slug")))
        ctl.explore()
        ctl.select(NO_WIKI)
        asyncio.run(ctl.generate())
        assert ctl.panel.message == "Missing slug"
        assert ctl.panel.message_is_error

    def test_dropped_connection_shows_network_error(self, make_controller, monkeypatch, navigator):
        def hang_up(*args, **kwargs):
            raise http.client.RemoteDisconnected("Remote end closed connection without response")

        monkeypatch.setattr(client, "_request_json", hang_up)
        ctl = make_controller(StoryClient("https://example.org"))
        ctl.explore()
        ctl.select(NO_WIKI)
        asyncio.run(ctl.generate())
        assert ctl.panel.message == NETWORK_ERROR
        assert ctl.panel.message_is_error
        assert not ctl.panel.pending
        assert navigator == []

    def test_unexpected_error_propagates_and_reenables(self, make_controller):
        ctl = make_controller(StoryStub(RuntimeError("bug")))
        ctl.explore()
        ctl.select(NO_WIKI)
        with pytest.raises(RuntimeError):
            asyncio.run(ctl.generate())
        assert not ctl.panel.pending

    def test_noop_without_panel_or_for_existing_story(self, make_controller):
        story = StoryStub()
        ctl = make_controller(story)
        asyncio.run(ctl.generate())
        ctl.explore()
        ctl.select(WITH_WIKI)
        asyncio.run(ctl.generate())
        assert story.calls == []

    def test_pending_guard(self, make_controller):
        story = StoryStub()
        ctl = make_controller(story)
        ctl.explore()
        ctl.select(NO_WIKI)

        async def scenario():
            story.gate = asyncio.Event()
            first = asyncio.create_task(ctl.generate())
            await asyncio.sleep(0)
            assert ctl.panel.pending
            assert ctl.panel.action_label == "Generating..."
            await ctl.generate()
            story.gate.set()
            await first

        asyncio.run(scenario())
        assert story.calls == ["alpha"]

    def test_stale_result_does_not_touch_new_panel(self, make_controller, navigator):
        story = StoryStub(GenerationOutcome(success=True))
        ctl = make_controller(story)
        ctl.explore()
        ctl.select(NO_WIKI)

        async def scenario():
            story.gate = asyncio.Event()
            task = asyncio.create_task(ctl.generate())
            await asyncio.sleep(0)
            ctl.select(PROJECT)
            story.gate.set()
            await task

        asyncio.run(scenario())
        assert ctl.panel.node is PROJECT
        assert ctl.panel.message is None
        assert not ctl.panel.pending
        assert navigator == []

    def test_exit_during_redirect_delay_cancels_navigation(self, make_controller, navigator):
        holder = {}
        ctl = make_controller(StoryStub(GenerationOutcome(success=True)), SleepRecorder(during=lambda: holder["ctl"].exit()))
        holder["ctl"] = ctl
        ctl.explore()
        ctl.select(NO_WIKI)
        asyncio.run(ctl.generate())
        assert navigator == []
        assert ctl.state is DiveState.HERO


# ── Teardown ──────────────────────────────────────────────────────────────────

class TestUnmount:

    def test_unmount_in_dive_mode_restores_scroll(self, make_controller, lock_changes):
        ctl = make_controller()
        ctl.explore()
        ctl.select(NO_WIKI)
        ctl.unmount()
        assert not ctl.scroll_locked
        assert lock_changes == [True, False]
        assert ctl.surface.engine.is_empty

    def test_host_unmounts_surface_after_controller(self, make_controller):
        ctl = make_controller()
        ctl.explore()
        ctl.unmount()
        ctl.surface.unmount()
        ctl.unmount()
        assert not ctl.scroll_locked
        assert ctl.state is DiveState.HERO

    def test_context_manager(self, make_controller):
        with make_controller() as ctl:
            ctl.explore()
            assert ctl.scroll_locked
        assert not ctl.scroll_locked
        assert ctl.state is DiveState.HERO

    def test_scroll_lock_held_block(self):
        changes = []
        lock = ScrollLock(on_change=changes.append)
        with pytest.raises(ValueError):
            with lock.held():
                assert lock.locked
                raise ValueError("boom")
        assert not lock.locked
        assert changes == [True, False]
