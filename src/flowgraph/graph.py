"""Canonical graph model shared by flows and agents.

Flows persist their steps under ``nodes`` and agents under ``functions``; both
are reduced to the same ``CanonicalGraph`` before layout and rendering.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


def format_name(name: str) -> str:
    """``"send_welcome_email"`` → ``"Send Welcome Email"``."""
    if not name:
        return ""
    words = name.replace("_", " ").split(" ")
    return " ".join(word[:1].upper() + word[1:].lower() for word in words)


class NodeKind(str, Enum):
    """Polymorphic tag carried by every node (persisted as ``type``)."""

    FUNCTION = "function"
    CONDITION = "condition"
    ACTION = "action"
    AGENT = "agent"
    FLOW = "flow"

    @classmethod
    def parse(cls, raw: Any) -> NodeKind | None:
        """Map a persisted ``type`` value to a kind, or None if unrecognised."""
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, str):
            try:
                return cls(raw.strip().lower())
            except ValueError:
                return None
        return None


class HandleSide(str, Enum):
    """Side of a node box where edges attach."""

    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"


class SourceShape(str, Enum):
    """Which persisted shape a graph was read from."""

    FLOW = "flow"
    AGENT = "agent"
    EMPTY = "empty"


class IssueKind(str, Enum):
    MALFORMED_REFERENCE = "malformed_reference"
    AMBIGUOUS_SHAPE = "ambiguous_shape"
    MISSING_ID = "missing_id"
    DUPLICATE_ID = "duplicate_id"
    INVALID_ENTRY = "invalid_entry"
    INVALID_EDGE = "invalid_edge"


@dataclass(frozen=True)
class GraphIssue:
    """A non-fatal problem found while normalizing a document."""

    kind: IssueKind
    message: str


@dataclass
class Position:
    """Top-left corner of a node box."""

    x: float
    y: float

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass
class CanonicalNode:
    """One step of a flow or one function of an agent.

    ``metadata`` holds every persisted field the canonical model does not
    name (schemas, language, integrations, function code, ...) verbatim.
    ``typed`` is False when ``kind`` was defaulted because the persisted
    ``type`` was missing or unrecognised.
    """

    id: str
    name: str = ""
    description: str | None = None
    kind: NodeKind = NodeKind.FUNCTION
    position: Position | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    source_side: HandleSide | None = None
    target_side: HandleSide | None = None
    typed: bool = field(default=True, compare=False)

    @property
    def label(self) -> str:
        return format_name(self.name) if self.name else "Unnamed Node"


@dataclass
class CanonicalEdge:
    source: str
    target: str
    source_handle: str | None = None
    target_handle: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class CanonicalGraph:
    """Shape-agnostic graph used by layout and rendering.

    Invariant: every edge's ``source`` and ``target`` name a node in ``nodes``.

    ``shape`` and ``issues`` describe where the graph came from and are not
    part of its identity, so they are excluded from equality.
    """

    nodes: list[CanonicalNode] = field(default_factory=list)
    edges: list[CanonicalEdge] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    shape: SourceShape = field(default=SourceShape.FLOW, compare=False)
    issues: list[GraphIssue] = field(default_factory=list, compare=False)

    def node_ids(self) -> list[str]:
        return [node.id for node in self.nodes]

    def get_node(self, node_id: str) -> CanonicalNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def copy(self) -> CanonicalGraph:
        """Deep copy, so callers can position nodes without touching the original."""
        return copy.deepcopy(self)

    def is_empty(self) -> bool:
        return not self.nodes


def drop_dangling_edges(
    nodes: list[CanonicalNode],
    edges: list[CanonicalEdge],
    issues: list[GraphIssue] | None = None,
) -> list[CanonicalEdge]:
    """Keep only edges whose endpoints both name a node.

    Each dropped edge is logged and, when ``issues`` is given, recorded there.
    """
    ids = {node.id for node in nodes}
    kept: list[CanonicalEdge] = []
    for edge in edges:
        missing = [end for end in (edge.source, edge.target) if end not in ids]
        if not missing:
            kept.append(edge)
            continue
        message = f"Dropping edge {edge.source!r} -> {edge.target!r}: unknown node {missing[0]!r}"
        logger.warning(message)
        if issues is not None:
            issues.append(GraphIssue(kind=IssueKind.MALFORMED_REFERENCE, message=message))
    return kept
