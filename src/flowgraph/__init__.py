"""flowgraph: normalize persisted flow/agent documents and lay them out.

    graph = normalize(document)
    positioned = layout(graph, "left-to-right")
"""

from flowgraph.config import LayoutOptions, options_from_env
from flowgraph.documents import (
    detect_shape,
    extract_edges,
    extract_nodes,
    filter_documents,
    format_name,
    get_display_id,
    is_agent_shaped,
    is_flow_shaped,
    matches_search,
    normalize,
    to_document,
)
from flowgraph.functions import FunctionSpec, function_specs
from flowgraph.graph import (
    CanonicalEdge,
    CanonicalGraph,
    CanonicalNode,
    GraphIssue,
    HandleSide,
    IssueKind,
    NodeKind,
    Position,
    SourceShape,
)
from flowgraph.layout import Direction, LayoutNode, compute_layout, layout

__all__ = [
    "CanonicalEdge",
    "CanonicalGraph",
    "CanonicalNode",
    "Direction",
    "FunctionSpec",
    "GraphIssue",
    "HandleSide",
    "IssueKind",
    "LayoutNode",
    "LayoutOptions",
    "NodeKind",
    "Position",
    "SourceShape",
    "compute_layout",
    "detect_shape",
    "extract_edges",
    "extract_nodes",
    "filter_documents",
    "format_name",
    "function_specs",
    "get_display_id",
    "is_agent_shaped",
    "is_flow_shaped",
    "layout",
    "matches_search",
    "normalize",
    "options_from_env",
    "to_document",
]
