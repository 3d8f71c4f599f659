"""
gratitude_graph/config.py — All tunable parameters for the graph core.

No force constant, radius rule, opacity or delay should be hardcoded in a
layout, render or dive module. Everything lives here so that a visual tuning
pass is a single-file diff.
"""

import math
from dataclasses import dataclass, field


_TAG_COLORS = {
    "edutech": "#10b981",
    "fintech": "#f59e0b",
    "healthtech": "#f43f5e",
    "saas": "#06b6d4",
    "game": "#ec4899",
    "tool": "#8b5cf6",
    "blog": "#6366f1",
    "other": "#64748b",
    "package": "#a78bfa",
    "project": "#06b6d4",
}


@dataclass(frozen=True)
class GraphConfig:
    """
    Immutable configuration for layout, rendering and dive mode.

    Override by constructing a new GraphConfig with the desired values, or
    with dataclasses.replace(DEFAULT_CONFIG, ...).
    """

    # ── Link force ────────────────────────────────────────────────────────────
    link_distance: float = 80.0
    # Target separation between linked nodes.

    link_strength: float = 0.4
    # Spring damping: fraction of the distance error corrected per tick (× alpha).

    # ── Many-body force ───────────────────────────────────────────────────────
    charge_strength: float = -200.0
    # Negative = repulsion. Velocity change is strength * alpha / distance.

    charge_distance_min: float = 1.0
    # Distances below this are clamped to avoid infinite kicks for near-coincident nodes.

    charge_distance_max: float = 400.0
    # Pairs farther apart than this do not interact.

    # ── Centering ─────────────────────────────────────────────────────────────
    center_strength: float = 0.05
    # Pull toward the viewport centre on each axis independently (× alpha).

    # ── Collision ─────────────────────────────────────────────────────────────
    collision_margin: float = 4.0
    # Extra clearance added to each node's rendered radius.

    collision_strength: float = 1.0
    collision_iterations: int = 1

    # ── Cooling schedule ──────────────────────────────────────────────────────
    alpha_start: float = 1.0
    alpha_min: float = 0.001
    # Simulation is considered cooled (and stops self-ticking) below this.

    alpha_decay: float = 1.0 - 0.001 ** (1.0 / 300.0)
    # Reaches alpha_min from 1.0 in ~300 ticks.

    velocity_decay: float = 0.4
    # Friction: fraction of velocity lost per tick.

    drag_alpha_target: float = 0.3
    # Heat target held while any node is being dragged.

    resize_alpha: float = 0.3
    # Energy injected when the viewport changes size.

    initial_radius: float = 10.0
    initial_angle: float = math.pi * (3.0 - math.sqrt(5.0))
    # Phyllotaxis placement for nodes without a seeded position.

    # ── Radius policy ─────────────────────────────────────────────────────────
    project_radius: float = 12.0
    package_base_radius: float = 6.0
    package_radius_per_user: float = 0.5
    package_radius_cap: float = 14.0
    # Package radius = base + min(userCount * per_user, cap) → never above 20.

    # ── Viewport ──────────────────────────────────────────────────────────────
    zoom_min: float = 0.3
    zoom_max: float = 4.0
    wheel_delta_factor: float = 0.002
    # Wheel zoom: scale *= 2 ** (-deltaY * factor).

    double_click_zoom: float = 2.0

    # ── Hover / highlight ─────────────────────────────────────────────────────
    hover_scale: float = 1.3
    hover_transition_s: float = 0.15
    link_opacity: float = 0.4
    link_opacity_highlight: float = 0.8
    link_opacity_dimmed: float = 0.15
    tooltip_offset: tuple = (16.0, -10.0)

    # ── Entrance animation ────────────────────────────────────────────────────
    fade_duration_s: float = 0.8
    fade_stagger_s: float = 0.03
    label_delay_s: float = 0.4
    label_offset: float = 14.0
    # Label baseline sits radius + label_offset below the node centre.

    # ── Dive mode ─────────────────────────────────────────────────────────────
    redirect_delay_s: float = 1.5
    # Time the "story generated" confirmation stays visible before navigating.

    wiki_path_prefix: str = "/wiki/"

    # ── Funding ───────────────────────────────────────────────────────────────
    min_generation_balance: float = 0.10
    default_story_cost: float = 0.03
    # Average cost estimate reported before any story has been generated.

    # ── Palette ───────────────────────────────────────────────────────────────
    tag_colors: dict = field(default_factory=lambda: dict(_TAG_COLORS))

    def wiki_path(self, slug: str) -> str:
        """Detail page path for a node slug."""
        return f"{self.wiki_path_prefix}{slug}"


# Singleton default — import this everywhere instead of constructing anew.
DEFAULT_CONFIG = GraphConfig()
