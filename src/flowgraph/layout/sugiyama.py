"""Sugiyama-style layered layout for canonical graphs.

Phases:
  1. Cycle removal (greedy-FAS)
  2. Layer assignment (longest path from sources)
  3. Dummy node insertion for edges spanning several layers
  4. Crossing minimization (median heuristic)
  5. Coordinate assignment (fixed node box)

Every call builds its own networkx graph, so layouts share no state and the
input CanonicalGraph is never modified.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import networkx as nx

from flowgraph.config import DEFAULT_OPTIONS, LayoutOptions
from flowgraph.graph import CanonicalGraph, Position, drop_dangling_edges
from flowgraph.layout.types import (
    DUMMY_PREFIX,
    AugmentedGraph,
    Direction,
    DummyEdge,
    LayoutNode,
)

logger = logging.getLogger(__name__)


def build_digraph(graph: CanonicalGraph) -> nx.DiGraph:
    """Directed view of a canonical graph, in node/edge order.

    Edges naming unknown nodes are skipped; parallel edges collapse.
    """
    g: nx.DiGraph = nx.DiGraph()
    for node in graph.nodes:
        g.add_node(node.id)
    for edge in graph.edges:
        if edge.source not in g or edge.target not in g:
            logger.warning("Layout ignoring edge %r -> %r: unknown node", edge.source, edge.target)
            continue
        g.add_edge(edge.source, edge.target)
    return g


# ─── Cycle Removal (Greedy-FAS) ───────────────────────────────────────────────


def greedy_fas_ordering(graph: nx.DiGraph) -> list[str]:
    """Order nodes so that as few edges as possible point backwards.

    Greedy heuristic of Eades, Lin and Smyth (1993). While nodes remain,
    sinks are peeled onto the tail; failing that, sources onto the head;
    failing that, the node with the largest out-degree surplus goes to the
    head. Degrees only count edges between remaining nodes.

    Candidates are scanned in node order, so ties resolve to the earliest node.
    """
    remaining: dict[str, None] = dict.fromkeys(graph.nodes)
    out_deg: dict[str, int] = dict(graph.out_degree())
    in_deg: dict[str, int] = dict(graph.in_degree())
    head: list[str] = []
    tail: list[str] = []

    def take(node: str) -> None:
        del remaining[node]
        for succ in graph.successors(node):
            if succ in remaining:
                in_deg[succ] -= 1
        for pred in graph.predecessors(node):
            if pred in remaining:
                out_deg[pred] -= 1

    while remaining:
        sinks = [n for n in remaining if out_deg[n] == 0]
        if sinks:
            for node in sinks:
                take(node)
            tail.extend(sinks)
            continue
        sources = [n for n in remaining if in_deg[n] == 0]
        if sources:
            for node in sources:
                take(node)
            head.extend(sources)
            continue
        best = max(remaining, key=lambda n: out_deg[n] - in_deg[n])
        take(best)
        head.append(best)

    return head + tail[::-1]


def remove_cycles(graph: nx.DiGraph) -> tuple[nx.DiGraph, set[tuple[str, str]]]:
    """Return an acyclic copy of ``graph`` and the set of edges reversed to get it.

    Back-edges (source after target in the greedy-FAS ordering) are reversed;
    self-loops are dropped from the copy but still reported as reversed.
    """
    rank = {node: i for i, node in enumerate(greedy_fas_ordering(graph))}
    dag: nx.DiGraph = nx.DiGraph()
    dag.add_nodes_from(graph.nodes(data=True))
    reversed_edges: set[tuple[str, str]] = set()

    for src, tgt in graph.edges():
        if rank[src] < rank[tgt]:
            dag.add_edge(src, tgt)
            continue
        reversed_edges.add((src, tgt))
        if src != tgt:
            dag.add_edge(tgt, src)

    if reversed_edges:
        logger.debug("Broke cycles by reversing %d edge(s)", len(reversed_edges))
    return dag, reversed_edges


# ─── Layer Assignment ─────────────────────────────────────────────────────────


class LayerAssignment:
    """Result of layer assignment: each node is assigned a layer (rank).

    Layer 0 is the first layer (top for top-to-bottom, left for left-to-right).

    Attributes:
        layers: Maps node id → layer index, in node order.
        layer_count: Total number of layers (0 for an empty graph).
        dag: The acyclic graph the layers were computed on.
        reversed_edges: Edges reversed during cycle removal.
    """

    def __init__(
        self,
        layers: dict[str, int],
        layer_count: int,
        dag: nx.DiGraph,
        reversed_edges: set[tuple[str, str]],
    ) -> None:
        self.layers = layers
        self.layer_count = layer_count
        self.dag = dag
        self.reversed_edges = reversed_edges

    @classmethod
    def assign(cls, graph: nx.DiGraph) -> LayerAssignment:
        """Rank every node by the longest path (in edges) from any source.

        Nodes without incoming edges, including isolated ones, get rank 0.
        """
        dag, reversed_edges = remove_cycles(graph)

        layers: dict[str, int] = dict.fromkeys(graph.nodes, 0)
        for node in nx.topological_sort(dag):
            for succ in dag.successors(node):
                if layers[succ] < layers[node] + 1:
                    layers[succ] = layers[node] + 1

        layer_count = (max(layers.values()) + 1) if layers else 0
        return cls(layers=layers, layer_count=layer_count, dag=dag, reversed_edges=reversed_edges)


# ─── Dummy Node Insertion ──────────────────────────────────────────────────────


def insert_dummy_nodes(la: LayerAssignment) -> AugmentedGraph:
    """Replace every edge u → v spanning more than one layer by a dummy chain.

        u → d₁ → d₂ → … → dₖ → v

    where each dᵢ lives in layer ``layer[u] + i``.
    """
    g: nx.DiGraph = nx.DiGraph()
    g.add_nodes_from(la.dag.nodes(data=True))

    layers: dict[str, int] = dict(la.layers)
    dummy_edges: list[DummyEdge] = []
    counter = 0

    for src_id, tgt_id in list(la.dag.edges()):
        span = layers[tgt_id] - layers[src_id]
        if span <= 1:
            g.add_edge(src_id, tgt_id)
            continue

        dummy_ids: list[str] = []
        chain_prev = src_id
        for i in range(span - 1):
            dummy_id = f"{DUMMY_PREFIX}{counter}"
            counter += 1
            while dummy_id in la.dag:
                dummy_id = f"{DUMMY_PREFIX}{counter}"
                counter += 1
            g.add_node(dummy_id, dummy=True)
            layers[dummy_id] = layers[src_id] + i + 1
            dummy_ids.append(dummy_id)
            g.add_edge(chain_prev, dummy_id)
            chain_prev = dummy_id
        g.add_edge(chain_prev, tgt_id)

        dummy_edges.append(DummyEdge(original_src=src_id, original_tgt=tgt_id, dummy_ids=dummy_ids))

    return AugmentedGraph(graph=g, layers=layers, layer_count=la.layer_count, dummy_edges=dummy_edges)


# ─── Crossing Minimization (Median) ───────────────────────────────────────────


def count_crossings(ordering: list[list[str]], graph: nx.DiGraph) -> int:
    """Count edge crossings between consecutive layers.

    Two edges cross when their endpoints are ordered one way in the upper
    layer and the other way in the lower layer. Edges sharing an endpoint
    never cross.
    """
    total = 0
    for upper, lower in zip(ordering, ordering[1:]):
        slot = {node_id: i for i, node_id in enumerate(lower)}
        spans = sorted(
            (i, slot[succ])
            for i, node_id in enumerate(upper)
            if node_id in graph
            for succ in graph.successors(node_id)
            if succ in slot
        )
        for k, (top, bottom) in enumerate(spans):
            total += sum(1 for other_top, other_bottom in spans[k + 1 :] if other_top > top and other_bottom < bottom)
    return total


def _median(node_id: str, graph: nx.DiGraph, neighbor_pos: dict[str, int], direction: str) -> float | None:
    """Median slot of a node's neighbours in the adjacent layer, or None if it has none.

    direction: "incoming" to look at predecessors, "outgoing" for successors.
    """
    neighbors = graph.predecessors(node_id) if direction == "incoming" else graph.successors(node_id)
    positions = sorted(neighbor_pos[nb] for nb in neighbors if nb in neighbor_pos)
    if not positions:
        return None
    mid = len(positions) // 2
    if len(positions) % 2:
        return float(positions[mid])
    return (positions[mid - 1] + positions[mid]) / 2


def _sort_layer(layer: list[str], graph: nx.DiGraph, neighbor_ids: list[str], direction: str) -> list[str]:
    neighbor_pos = {nid: i for i, nid in enumerate(neighbor_ids)}
    keys: dict[str, float] = {}
    for slot, node_id in enumerate(layer):
        median = _median(node_id, graph, neighbor_pos, direction)
        # Nodes with no neighbours in the adjacent layer hold their slot.
        keys[node_id] = float(slot) if median is None else median
    return sorted(layer, key=lambda nid: keys[nid])


def minimise_crossings(aug: AugmentedGraph, max_sweeps: int = DEFAULT_OPTIONS.max_sweeps) -> list[list[str]]:
    """Order every layer to reduce edge crossings.

    Starts from node order within each layer and alternates top-down and
    bottom-up median sweeps, keeping the best ordering seen. Stops when a
    sweep fails to improve the crossing count or after ``max_sweeps``.

    Returns one list of node ids per layer.
    """
    ordering: list[list[str]] = [[] for _ in range(aug.layer_count)]
    for node_id, layer in aug.layers.items():
        ordering[layer].append(node_id)

    best_ordering = [list(layer) for layer in ordering]
    best = count_crossings(ordering, aug.graph)

    for _sweep in range(max_sweeps):
        if best == 0:
            break

        for layer_idx in range(1, aug.layer_count):
            ordering[layer_idx] = _sort_layer(ordering[layer_idx], aug.graph, ordering[layer_idx - 1], "incoming")

        for layer_idx in range(aug.layer_count - 2, -1, -1):
            ordering[layer_idx] = _sort_layer(ordering[layer_idx], aug.graph, ordering[layer_idx + 1], "outgoing")

        new = count_crossings(ordering, aug.graph)
        if new >= best:
            break
        best = new
        best_ordering = [list(layer) for layer in ordering]

    return best_ordering


# ─── Coordinate Assignment ────────────────────────────────────────────────────


def assign_coordinates(
    ordering: list[list[str]],
    aug: AugmentedGraph,
    direction: Direction = Direction.TOP_TO_BOTTOM,
    options: LayoutOptions = DEFAULT_OPTIONS,
) -> list[LayoutNode]:
    """Assign top-left coordinates to every node of the augmented graph.

    Work happens in rank space: the "cross" axis runs along a layer and the
    "rank" axis across layers. For top-to-bottom, cross is x and rank is y;
    for left-to-right the axes and the node box dimensions are swapped.
    Dummy nodes take no cross-axis room beyond ``node_sep``.
    """
    horizontal = direction.is_horizontal
    cross_size = options.node_height if horizontal else options.node_width
    rank_size = options.node_width if horizontal else options.node_height
    gap = options.node_sep

    def extent(node_id: str) -> int:
        return 0 if aug.is_dummy(node_id) else cross_size

    layer_widths: list[int] = []
    for layer_nodes in ordering:
        total = sum(extent(nid) for nid in layer_nodes)
        layer_widths.append(total + max(0, len(layer_nodes) - 1) * gap)
    center = max(layer_widths, default=0) // 2

    cross: dict[str, int] = {}
    for layer_idx, layer_nodes in enumerate(ordering):
        c = center - layer_widths[layer_idx] // 2
        for node_id in layer_nodes:
            cross[node_id] = c
            c += extent(node_id) + gap

    def mid(node_id: str) -> int:
        return cross[node_id] + extent(node_id) // 2

    # Shift whole layers (never single nodes) so they sit under their parents
    # and over their children; only small corrections up to one gap.
    for layer_idx in range(1, len(ordering)):
        _shift_layer(ordering[layer_idx], aug, cross, mid, gap, "incoming")
    for layer_idx in range(len(ordering) - 2, -1, -1):
        _shift_layer(ordering[layer_idx], aug, cross, mid, gap, "outgoing")

    min_cross = min(cross.values(), default=0)

    nodes: list[LayoutNode] = []
    for layer_idx, layer_nodes in enumerate(ordering):
        rank_coord = options.margin + layer_idx * (rank_size + options.rank_sep)
        for order, node_id in enumerate(layer_nodes):
            is_dummy = aug.is_dummy(node_id)
            cross_coord = cross[node_id] - min_cross + options.margin
            x, y = (rank_coord, cross_coord) if horizontal else (cross_coord, rank_coord)
            nodes.append(
                LayoutNode(
                    id=node_id,
                    layer=layer_idx,
                    order=order,
                    x=x,
                    y=y,
                    width=0 if is_dummy else options.node_width,
                    height=0 if is_dummy else options.node_height,
                    dummy=is_dummy,
                )
            )
    return nodes


def _shift_layer(
    layer_nodes: list[str],
    aug: AugmentedGraph,
    cross: dict[str, int],
    mid: Callable[[str], int],
    gap: int,
    direction: str,
) -> None:
    """Move one layer so its centre lines up with its real neighbours' centres."""
    graph = aug.graph
    sum_own = 0
    sum_other = 0
    count = 0
    for node_id in layer_nodes:
        if aug.is_dummy(node_id):
            continue
        neighbors = graph.predecessors(node_id) if direction == "incoming" else graph.successors(node_id)
        for nb in neighbors:
            if aug.is_dummy(nb):
                continue
            sum_own += mid(node_id)
            sum_other += mid(nb)
            count += 1
    if count == 0:
        return
    shift = sum_other // count - sum_own // count
    if shift == 0 or abs(shift) > gap:
        return
    for node_id in layer_nodes:
        cross[node_id] += shift


# ─── Full Layout Pipeline ──────────────────────────────────────────────────────


def compute_layout(
    graph: CanonicalGraph,
    direction: Direction | str = Direction.TOP_TO_BOTTOM,
    options: LayoutOptions | None = None,
) -> list[LayoutNode]:
    """Run the layout pipeline and return one LayoutNode per real node, in node order."""
    direction = Direction.parse(direction)
    options = options or DEFAULT_OPTIONS

    digraph = build_digraph(graph)
    if digraph.number_of_nodes() == 0:
        return []

    la = LayerAssignment.assign(digraph)
    aug = insert_dummy_nodes(la)
    ordering = minimise_crossings(aug, options.max_sweeps)
    placed = {ln.id: ln for ln in assign_coordinates(ordering, aug, direction, options) if not ln.dummy}
    return [placed[node_id] for node_id in digraph.nodes]


def layout(
    graph: CanonicalGraph,
    direction: Direction | str = Direction.TOP_TO_BOTTOM,
    options: LayoutOptions | None = None,
) -> CanonicalGraph:
    """Return a positioned copy of ``graph``.

    Every node gets a position and the connection-point sides matching
    ``direction``. Edges naming a missing node are dropped and recorded on
    ``issues``. An empty graph comes back as an unchanged copy.
    """
    result = graph.copy()
    result.edges = drop_dangling_edges(result.nodes, result.edges, result.issues)
    if result.is_empty():
        return result

    direction = Direction.parse(direction)
    placed = {ln.id: ln for ln in compute_layout(result, direction, options)}
    for node in result.nodes:
        ln = placed[node.id]
        node.position = Position(x=ln.x, y=ln.y)
        node.target_side = direction.target_side
        node.source_side = direction.source_side
    return result
