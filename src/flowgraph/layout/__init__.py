"""Layered layout of canonical graphs."""

from flowgraph.layout.sugiyama import compute_layout, layout
from flowgraph.layout.types import Direction, LayoutNode

__all__ = [
    "Direction",
    "LayoutNode",
    "compute_layout",
    "layout",
]
