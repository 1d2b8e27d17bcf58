"""Document normalization: persisted flow/agent documents → CanonicalGraph.

A persisted document is one of two near-identical shapes:

  - Flow-shaped:  ``{"nodes": [...], "edges": [...]?}``
  - Agent-shaped: ``{"functions": [...], "nodes": [...]?, "edges": [...]?}``

The shape is decided once by ``detect_shape`` and everything downstream works
on the canonical graph. Documents are treated as read-only: every value that
is carried through is deep-copied.

Malformed content never raises. Offending entries are skipped, logged, and
recorded on ``CanonicalGraph.issues``.
"""

from __future__ import annotations

import copy
import logging
import time
from collections.abc import Iterable, Mapping
from typing import Any

from flowgraph.graph import (
    CanonicalEdge,
    CanonicalGraph,
    CanonicalNode,
    GraphIssue,
    IssueKind,
    NodeKind,
    Position,
    SourceShape,
    drop_dangling_edges,
    format_name,
)

__all__ = [
    "detect_shape",
    "drop_dangling_edges",
    "edge_to_dict",
    "extract_edges",
    "extract_nodes",
    "filter_documents",
    "format_name",
    "get_display_id",
    "is_agent_shaped",
    "is_flow_shaped",
    "matches_search",
    "node_to_dict",
    "normalize",
    "to_document",
]

logger = logging.getLogger(__name__)

NODES_KEY = "nodes"
FUNCTIONS_KEY = "functions"
EDGES_KEY = "edges"
ID_KEY = "_id"
OID_KEY = "$oid"

_FALLBACK_KIND: dict[SourceShape, str] = {
    SourceShape.FLOW: "flow",
    SourceShape.AGENT: "agent",
    SourceShape.EMPTY: "item",
}


# ─── Shape Discrimination ─────────────────────────────────────────────────────


def is_flow_shaped(doc: Mapping[str, Any]) -> bool:
    """True iff the document carries a ``nodes`` field."""
    return doc.get(NODES_KEY) is not None


def is_agent_shaped(doc: Mapping[str, Any]) -> bool:
    """True iff the document carries a ``functions`` field."""
    return doc.get(FUNCTIONS_KEY) is not None


def detect_shape(doc: Mapping[str, Any]) -> SourceShape:
    """Discriminate the tagged union of source shapes.

    A document that is both flow- and agent-shaped is read as a flow.
    """
    if is_flow_shaped(doc):
        if is_agent_shaped(doc):
            logger.debug("Document %s has both nodes and functions; reading nodes", doc.get(ID_KEY))
        return SourceShape.FLOW
    if is_agent_shaped(doc):
        return SourceShape.AGENT
    return SourceShape.EMPTY


# ─── Identifiers and Search ───────────────────────────────────────────────────


def _plain_id(raw: Any) -> str | None:
    """Unwrap a stored identifier (``"abc"`` or ``{"$oid": "abc"}``) to a string."""
    if raw is None:
        return None
    if isinstance(raw, str):
        return raw or None
    if isinstance(raw, Mapping):
        oid = raw.get(OID_KEY)
        return str(oid) if oid else None
    return str(raw)


def get_display_id(doc: Mapping[str, Any], kind: str | None = None) -> str:
    """Return the document's persisted id as a plain string.

    Documents that were never persisted get ``"<kind>-<epoch ms>"``. That
    fallback changes on every call and must not be stored or used as a key
    beyond the current render pass.
    """
    plain = _plain_id(doc.get(ID_KEY))
    if plain is not None:
        return plain
    if kind is None:
        kind = _FALLBACK_KIND[detect_shape(doc)]
    return f"{kind}-{int(time.time() * 1000)}"


def matches_search(doc: Mapping[str, Any], term: str | None) -> bool:
    """Case-insensitive substring match against ``name`` or ``description``."""
    if not term:
        return True
    needle = term.lower()
    name = str(doc.get("name") or "")
    description = str(doc.get("description") or "")
    return needle in name.lower() or needle in description.lower()


def filter_documents(docs: Iterable[Mapping[str, Any]], term: str | None) -> list[Mapping[str, Any]]:
    return [doc for doc in docs if matches_search(doc, term)]


# ─── Node / Edge Extraction ───────────────────────────────────────────────────


def _record(issues: list[GraphIssue] | None, kind: IssueKind, message: str) -> None:
    logger.warning(message)
    if issues is not None:
        issues.append(GraphIssue(kind=kind, message=message))


def _as_entries(raw: Any, key: str, issues: list[GraphIssue] | None) -> list[Any]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return list(raw)
    kind = IssueKind.INVALID_EDGE if key == EDGES_KEY else IssueKind.INVALID_ENTRY
    _record(issues, kind, f"Ignoring {key!r}: expected a list, got {type(raw).__name__}")
    return []


def _parse_position(raw: Any) -> Position | None:
    if not isinstance(raw, Mapping):
        return None
    x, y = raw.get("x"), raw.get("y")
    if isinstance(x, bool) or isinstance(y, bool):
        return None
    if isinstance(x, (int, float)) and isinstance(y, (int, float)):
        return Position(x=x, y=y)
    return None


def _to_node(raw: Mapping[str, Any], node_id: str) -> CanonicalNode:
    consumed = {"id", "name", "description"}

    kind = NodeKind.parse(raw.get("type"))
    if kind is not None:
        consumed.add("type")
    elif raw.get("type") is not None:
        logger.debug("Node %s has unknown type %r; treating as function", node_id, raw.get("type"))

    position = _parse_position(raw.get("position"))
    if position is not None:
        consumed.add("position")

    name = raw.get("name")
    description = raw.get("description")
    return CanonicalNode(
        id=node_id,
        name="" if name is None else str(name),
        description=None if description is None else str(description),
        kind=kind or NodeKind.FUNCTION,
        typed=kind is not None,
        position=position,
        metadata={k: copy.deepcopy(v) for k, v in raw.items() if k not in consumed},
    )


def _nodes_for_shape(
    doc: Mapping[str, Any],
    shape: SourceShape,
    issues: list[GraphIssue] | None,
) -> list[CanonicalNode]:
    if shape is SourceShape.EMPTY:
        return []
    key = NODES_KEY if shape is SourceShape.FLOW else FUNCTIONS_KEY

    nodes: list[CanonicalNode] = []
    seen: set[str] = set()
    for index, raw in enumerate(_as_entries(doc.get(key), key, issues)):
        if not isinstance(raw, Mapping):
            _record(issues, IssueKind.INVALID_ENTRY, f"Skipping {key}[{index}]: not an object")
            continue
        node_id = _plain_id(raw.get("id")) or _plain_id(raw.get(ID_KEY))
        if node_id is None:
            _record(issues, IssueKind.MISSING_ID, f"Skipping {key}[{index}]: no id")
            continue
        if node_id in seen:
            _record(issues, IssueKind.DUPLICATE_ID, f"Skipping {key}[{index}]: duplicate id {node_id!r}")
            continue
        seen.add(node_id)
        nodes.append(_to_node(raw, node_id))
    return nodes


def extract_nodes(doc: Mapping[str, Any]) -> list[CanonicalNode]:
    """Return ``doc.nodes``, else ``doc.functions``, else ``[]`` as canonical nodes."""
    return _nodes_for_shape(doc, detect_shape(doc), None)


def _edges_of(doc: Mapping[str, Any], issues: list[GraphIssue] | None) -> list[CanonicalEdge]:
    edges: list[CanonicalEdge] = []
    for index, raw in enumerate(_as_entries(doc.get(EDGES_KEY), EDGES_KEY, issues)):
        if not isinstance(raw, Mapping):
            _record(issues, IssueKind.INVALID_EDGE, f"Skipping edges[{index}]: not an object")
            continue
        source = _plain_id(raw.get("source"))
        target = _plain_id(raw.get("target"))
        if source is None or target is None:
            _record(issues, IssueKind.INVALID_EDGE, f"Skipping edges[{index}]: missing source or target")
            continue
        source_handle = raw.get("sourceHandle")
        target_handle = raw.get("targetHandle")
        edges.append(
            CanonicalEdge(
                source=source,
                target=target,
                source_handle=None if source_handle is None else str(source_handle),
                target_handle=None if target_handle is None else str(target_handle),
                metadata={
                    k: copy.deepcopy(v)
                    for k, v in raw.items()
                    if k not in ("source", "target", "sourceHandle", "targetHandle")
                },
            )
        )
    return edges


def extract_edges(doc: Mapping[str, Any]) -> list[CanonicalEdge]:
    """Return ``doc.edges`` (or ``[]``) as canonical edges."""
    return _edges_of(doc, None)


# ─── Normalize / Denormalize ──────────────────────────────────────────────────


def normalize(doc: Mapping[str, Any]) -> CanonicalGraph:
    """Build a fresh CanonicalGraph from a persisted flow or agent document."""
    if not isinstance(doc, Mapping):
        raise TypeError(f"expected a mapping document, got {type(doc).__name__}")

    issues: list[GraphIssue] = []
    shape = detect_shape(doc)
    if shape is SourceShape.FLOW and is_agent_shaped(doc):
        issues.append(
            GraphIssue(
                kind=IssueKind.AMBIGUOUS_SHAPE,
                message="document has both nodes and functions; nodes were used",
            )
        )

    nodes = _nodes_for_shape(doc, shape, issues)
    edges = drop_dangling_edges(nodes, _edges_of(doc, issues), issues)

    used_key = FUNCTIONS_KEY if shape is SourceShape.AGENT else NODES_KEY
    metadata = {k: copy.deepcopy(v) for k, v in doc.items() if k not in (used_key, EDGES_KEY)}

    return CanonicalGraph(nodes=nodes, edges=edges, metadata=metadata, shape=shape, issues=issues)


def node_to_dict(node: CanonicalNode) -> dict[str, Any]:
    out: dict[str, Any] = {"id": node.id, "name": node.name}
    if node.description is not None:
        out["description"] = node.description
    if node.typed:
        out["type"] = node.kind.value
    for key, value in node.metadata.items():
        out[key] = copy.deepcopy(value)
    # A position assigned since reading replaces any unusable stored one.
    if node.position is not None:
        out["position"] = node.position.to_dict()
    return out


def edge_to_dict(edge: CanonicalEdge) -> dict[str, Any]:
    out: dict[str, Any] = {"source": edge.source, "target": edge.target}
    if edge.source_handle is not None:
        out["sourceHandle"] = edge.source_handle
    if edge.target_handle is not None:
        out["targetHandle"] = edge.target_handle
    out.update(copy.deepcopy(edge.metadata))
    return out


def to_document(graph: CanonicalGraph) -> dict[str, Any]:
    """Turn a canonical graph back into a persistable document.

    Nodes are written under the key they were read from (``functions`` for
    agents, ``nodes`` otherwise), so ``normalize(to_document(g)) == g``.
    """
    doc = copy.deepcopy(graph.metadata)
    key = FUNCTIONS_KEY if graph.shape is SourceShape.AGENT else NODES_KEY
    doc[key] = [node_to_dict(node) for node in graph.nodes]
    doc[EDGES_KEY] = [edge_to_dict(edge) for edge in graph.edges]
    return doc
