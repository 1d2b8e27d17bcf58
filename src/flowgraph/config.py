"""Layout geometry defaults and per-call overrides.

The defaults describe the card drawn for every node (280x120 logical units)
and the spacing the dashboard has always used around it.

Environment variables:
    FLOWGRAPH_NODE_WIDTH   - node box width
    FLOWGRAPH_NODE_HEIGHT  - node box height
    FLOWGRAPH_NODE_SEP     - gap between nodes in the same rank
    FLOWGRAPH_RANK_SEP     - gap between adjacent ranks
    FLOWGRAPH_MARGIN       - offset applied around the whole drawing
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace

logger = logging.getLogger(__name__)

NODE_WIDTH: int = 280
NODE_HEIGHT: int = 120
NODE_SEP: int = 80  # gap between neighbours within a rank
RANK_SEP: int = 120  # gap between consecutive ranks
MARGIN: int = 40
MAX_SWEEPS: int = 24  # crossing-minimisation sweep limit

_ENV_FIELDS: dict[str, str] = {
    "FLOWGRAPH_NODE_WIDTH": "node_width",
    "FLOWGRAPH_NODE_HEIGHT": "node_height",
    "FLOWGRAPH_NODE_SEP": "node_sep",
    "FLOWGRAPH_RANK_SEP": "rank_sep",
    "FLOWGRAPH_MARGIN": "margin",
}


@dataclass(frozen=True)
class LayoutOptions:
    """Geometry used by the layout engine.

    Attributes:
        node_width: Width of every node box (before axis swap).
        node_height: Height of every node box (before axis swap).
        node_sep: Gap between adjacent nodes of the same rank.
        rank_sep: Gap between adjacent ranks.
        margin: Offset of the top-left-most node from the origin.
        max_sweeps: Upper bound on crossing-minimisation sweeps.
    """

    node_width: int = NODE_WIDTH
    node_height: int = NODE_HEIGHT
    node_sep: int = NODE_SEP
    rank_sep: int = RANK_SEP
    margin: int = MARGIN
    max_sweeps: int = MAX_SWEEPS


DEFAULT_OPTIONS = LayoutOptions()


def options_from_env(base: LayoutOptions = DEFAULT_OPTIONS) -> LayoutOptions:
    """Return ``base`` with any FLOWGRAPH_* environment overrides applied.

    Values that are not non-negative integers are ignored with a warning.
    """
    overrides: dict[str, int] = {}
    for env_name, field_name in _ENV_FIELDS.items():
        raw = os.getenv(env_name)
        if raw is None:
            continue
        try:
            value = int(raw)
        except ValueError:
            logger.warning("Ignoring %s=%r: not an integer", env_name, raw)
            continue
        if value < 0:
            logger.warning("Ignoring %s=%r: must be non-negative", env_name, raw)
            continue
        overrides[field_name] = value
    return replace(base, **overrides) if overrides else base
