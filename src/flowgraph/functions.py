"""Catalogue of executable functions carried by a graph's nodes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from flowgraph.graph import CanonicalGraph, CanonicalNode, NodeKind


@dataclass
class FunctionSpec:
    id: str
    name: str
    description: str = ""
    code: str | None = None
    language: str | None = None
    packages: list[str] = field(default_factory=list)
    integrations: list[str] = field(default_factory=list)


def _is_function(node: CanonicalNode) -> bool:
    # Only an explicit type counts; missing or unknown types default to FUNCTION.
    if node.typed and node.kind is NodeKind.FUNCTION:
        return True
    return "function" in node.metadata or "function_code" in node.metadata


def _names(raw: Any) -> list[str]:
    if not isinstance(raw, (list, tuple)):
        return []
    return [str(item) for item in raw]


def _to_spec(node: CanonicalNode) -> FunctionSpec:
    meta = node.metadata
    return FunctionSpec(
        id=node.id,
        name=node.name,
        description=node.description or "",
        code=meta.get("function_code"),
        language=meta.get("language"),
        packages=_names(meta.get("required_packages")),
        integrations=_names(meta.get("uses_integrations")),
    )


def function_specs(graph: CanonicalGraph, term: str | None = None) -> list[FunctionSpec]:
    """List the function nodes of ``graph``, optionally filtered by name/description."""
    specs = [_to_spec(node) for node in graph.nodes if _is_function(node)]
    if not term:
        return specs
    needle = term.lower()
    return [spec for spec in specs if needle in spec.name.lower() or needle in spec.description.lower()]
