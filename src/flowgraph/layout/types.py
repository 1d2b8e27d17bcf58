"""Layout IR types and constants."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

import networkx as nx

from flowgraph.graph import HandleSide

logger = logging.getLogger(__name__)

DUMMY_PREFIX = "__dummy_"


class Direction(str, Enum):
    """Reading direction of a layered drawing."""

    TOP_TO_BOTTOM = "top-to-bottom"
    LEFT_TO_RIGHT = "left-to-right"

    @property
    def is_horizontal(self) -> bool:
        return self is Direction.LEFT_TO_RIGHT

    @property
    def target_side(self) -> HandleSide:
        """Side where incoming edges attach."""
        return HandleSide.LEFT if self.is_horizontal else HandleSide.TOP

    @property
    def source_side(self) -> HandleSide:
        """Side where outgoing edges leave."""
        return HandleSide.RIGHT if self.is_horizontal else HandleSide.BOTTOM

    @classmethod
    def parse(cls, raw: Direction | str | None) -> Direction:
        """Accept members, their values, or dagre-style ``TB``/``LR``.

        Anything else falls back to top-to-bottom.
        """
        if isinstance(raw, cls):
            return raw
        if raw is None:
            return cls.TOP_TO_BOTTOM
        key = str(raw).strip().lower()
        alias = _DIRECTION_ALIASES.get(key)
        if alias is not None:
            return alias
        logger.warning("Unknown layout direction %r; using %s", raw, cls.TOP_TO_BOTTOM.value)
        return cls.TOP_TO_BOTTOM


_DIRECTION_ALIASES: dict[str, Direction] = {
    "top-to-bottom": Direction.TOP_TO_BOTTOM,
    "tb": Direction.TOP_TO_BOTTOM,
    "td": Direction.TOP_TO_BOTTOM,
    "vertical": Direction.TOP_TO_BOTTOM,
    "left-to-right": Direction.LEFT_TO_RIGHT,
    "lr": Direction.LEFT_TO_RIGHT,
    "horizontal": Direction.LEFT_TO_RIGHT,
}


@dataclass
class LayoutNode:
    """A positioned node in the layout.

    ``layer`` is the node's rank and ``order`` its slot within that rank.
    ``x``/``y`` are the top-left corner of the node box.
    """

    id: str
    layer: int
    order: int
    x: int
    y: int
    width: int
    height: int
    dummy: bool = False


@dataclass
class DummyEdge:
    """A long edge replaced by a chain of dummy nodes, one per skipped rank."""

    original_src: str
    original_tgt: str
    dummy_ids: list[str]


@dataclass
class AugmentedGraph:
    """The acyclic graph with dummy nodes inserted.

    Every edge connects nodes in adjacent layers.
    """

    graph: nx.DiGraph
    layers: dict[str, int]
    layer_count: int
    dummy_edges: list[DummyEdge]

    def is_dummy(self, node_id: str) -> bool:
        return bool(self.graph.nodes[node_id].get("dummy")) if node_id in self.graph else False
