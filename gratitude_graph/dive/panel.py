"""
gratitude_graph/dive/panel.py — Side panel shown for the selected node in dive mode.

One NodeActionPanel exists per selection. Selecting another node creates a
new panel object, so an in-flight generation can tell by identity whether the
panel it started from is still the one on screen.

Primary action:
    has_wiki  → 'read'      navigate to the node's story page.
    otherwise → 'generate'  request a story; disabled while pending.
"""

from dataclasses import dataclass
from typing import Optional

from gratitude_graph.graph.model import GraphNode

READ = "read"
GENERATE = "generate"


@dataclass
class NodeActionPanel:
    """
    Fields:
        node:          The selected node (immutable record).
        pending:       True while a generation request is in flight.
        message:       Confirmation or error text, or None.
        message_is_error: True when `message` reports a failure.
    """

    node: GraphNode
    pending: bool = False
    message: Optional[str] = None
    message_is_error: bool = False

    @property
    def kind_label(self) -> str:
        return "Project" if self.node.kind == "project" else "Package"

    @property
    def details(self) -> tuple:
        """Lines shown under the node name."""
        lines = []
        if self.node.creator_name:
            lines.append(f"by {self.node.creator_name}")
        if self.node.thank_you_count > 0:
            lines.append(f"{self.node.thank_you_count} thank-yous")
        lines.append("Story available" if self.node.has_wiki else "No story yet")
        return tuple(lines)

    @property
    def primary_action(self) -> str:
        return READ if self.node.has_wiki else GENERATE

    @property
    def action_label(self) -> str:
        if self.primary_action == READ:
            return "Read the story"
        return "Generating..." if self.pending else "Generate story"

    @property
    def action_enabled(self) -> bool:
        return not self.pending

    def show_success(self, text: str) -> None:
        self.pending = False
        self.message = text
        self.message_is_error = False

    def show_error(self, text: str) -> None:
        self.pending = False
        self.message = text
        self.message_is_error = True
