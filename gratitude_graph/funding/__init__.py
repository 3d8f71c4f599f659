"""
gratitude_graph.funding — Community funding pool that pays for story generation.

Modules:
    ledger — Append-only contributions/usage ledger; balance is a fold.
"""
