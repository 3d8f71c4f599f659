"""
gratitude_graph.dive — Hero backdrop ↔ fullscreen dive mode.

Modules:
    scroll_lock    — Idempotent page scroll lock with scoped acquisition.
    panel          — NodeActionPanel for the selected node (read / generate).
    state_machine  — DiveController: transitions, stale-result-safe story generation.
"""
