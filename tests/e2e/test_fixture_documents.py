"""Run every stored document under tests/fixtures through normalize + layout."""

import json
from pathlib import Path

import pytest

from flowgraph import Direction, compute_layout, layout, normalize, to_document

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures"

# name → (node count, edge count, issue count)
EXPECTED: dict[str, tuple[int, int, int]] = {
    "onboarding_flow": (6, 7, 0),
    "research_agent": (4, 3, 0),
    "retry_loop_flow": (5, 5, 0),
    "legacy_mixed_document": (3, 2, 5),
    "empty_draft": (0, 0, 0),
}


def find_fixtures() -> list[tuple[str, Path]]:
    """Find all .json documents in the fixtures directory."""
    return [(path.stem, path) for path in sorted(FIXTURES_DIR.glob("*.json"))]


FIXTURES = find_fixtures()
DIRECTIONS = [Direction.TOP_TO_BOTTOM, Direction.LEFT_TO_RIGHT]


def load(path: Path) -> dict:
    return json.loads(path.read_text())


def test_every_fixture_has_expectations() -> None:
    assert sorted(EXPECTED) == [name for name, _ in FIXTURES]


@pytest.mark.parametrize("name,path", FIXTURES, ids=[f[0] for f in FIXTURES])
def test_normalize_counts(name: str, path: Path) -> None:
    """Each stored document normalizes to the expected node/edge/issue counts."""
    graph = normalize(load(path))
    assert (len(graph.nodes), len(graph.edges), len(graph.issues)) == EXPECTED[name]


@pytest.mark.parametrize("name,path", FIXTURES, ids=[f[0] for f in FIXTURES])
def test_round_trip(name: str, path: Path) -> None:
    """Persisting the canonical graph and reading it back changes nothing."""
    graph = normalize(load(path))
    assert normalize(to_document(graph)) == graph


@pytest.mark.parametrize("direction", DIRECTIONS, ids=[d.value for d in DIRECTIONS])
@pytest.mark.parametrize("name,path", FIXTURES, ids=[f[0] for f in FIXTURES])
def test_layout_invariants(name: str, path: Path, direction: Direction) -> None:
    """Positioned graphs keep referential integrity, place every node, and never overlap."""
    graph = normalize(load(path))
    positioned = layout(graph, direction)

    ids = set(positioned.node_ids())
    assert all(e.source in ids and e.target in ids for e in positioned.edges)
    assert all(n.position is not None for n in positioned.nodes)

    placed = compute_layout(graph, direction)
    cross_size = 120 if direction is Direction.LEFT_TO_RIGHT else 280
    for i, a in enumerate(placed):
        for b in placed[i + 1 :]:
            if a.layer == b.layer:
                gap = abs(a.y - b.y) if direction is Direction.LEFT_TO_RIGHT else abs(a.x - b.x)
                assert gap >= cross_size + 80, f"{a.id} and {b.id} overlap in {name}"


@pytest.mark.parametrize("name,path", FIXTURES, ids=[f[0] for f in FIXTURES])
def test_layout_deterministic(name: str, path: Path) -> None:
    doc = load(path)
    first = layout(normalize(doc), Direction.LEFT_TO_RIGHT)
    second = layout(normalize(doc), Direction.LEFT_TO_RIGHT)
    assert [n.position for n in first.nodes] == [n.position for n in second.nodes]


@pytest.mark.parametrize("name,path", FIXTURES, ids=[f[0] for f in FIXTURES])
def test_positioned_graph_persists(name: str, path: Path) -> None:
    """Positions written by layout survive to_document → normalize."""
    positioned = layout(normalize(load(path)))
    reloaded = normalize(to_document(positioned))
    assert [n.position for n in reloaded.nodes] == [n.position for n in positioned.nodes]
