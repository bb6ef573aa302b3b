"""
Graph Builder.

Two construction modes feed the layout engine:

- Dependency mode: an entity and the entities its reference fields point at.
- Process mode: an untrusted node/edge payload from the generator or the
  editor, normalized into canonical nodes and edges.

Positions are always left at the origin; only the layout engine writes them.
"""

import logging
from typing import Any, Dict, List, Optional

from ..config import MAX_DEPENDENCY_EDGES
from ..core.graph import DiagramGraph
from ..core.result import Err, Ok, Result
from ..core.types import (
    GraphEdge,
    GraphNode,
    NodeKind,
    ProcessDiagram,
    Rasci,
    ResourceAssignment,
    SObject,
)

logger = logging.getLogger(__name__)

DEFAULT_ACTIVITY_LABEL = "Activity"
DEFAULT_OUTCOME = "Done"
EMPTY_GENERATION_MESSAGE = "The generator returned no process steps. Please try again."

_KIND_ALIASES = {
    "start": NodeKind.START,
    "input": NodeKind.START,
    "end": NodeKind.END,
    "output": NodeKind.END,
    "decision": NodeKind.DECISION,
    "entity": NodeKind.ENTITY,
}


# =============================================================================
# Dependency Mode
# =============================================================================


def build_dependency_graph(entity: SObject) -> DiagramGraph:
    """
    Build the outgoing reference graph of an entity.

    Only the first target of a polymorphic reference is drawn, and at most
    ``MAX_DEPENDENCY_EDGES`` reference fields are considered.
    """
    graph = DiagramGraph()
    graph.add_node(GraphNode(id=entity.api_name, label=entity.label, type=NodeKind.ENTITY))

    for f in entity.reference_fields()[:MAX_DEPENDENCY_EDGES]:
        target = f.reference_to[0]
        if not graph.has_node(target):
            graph.add_node(GraphNode(id=target, label=target, type=NodeKind.ENTITY))
        graph.add_edge(GraphEdge(
            id=f"e-{f.api_name}",
            source=entity.api_name,
            target=target,
            label=f.label,
        ))

    logger.debug(f"Dependency graph for {entity.api_name}: {graph.node_count} nodes, {graph.edge_count} edges")
    return graph


# =============================================================================
# Process Mode
# =============================================================================


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _node_kind(raw_type: Any) -> NodeKind:
    if isinstance(raw_type, str):
        return _KIND_ALIASES.get(raw_type.lower(), NodeKind.PROCESS)
    return NodeKind.PROCESS


def _parse_resources(raw: Any) -> List[ResourceAssignment]:
    if not isinstance(raw, list):
        return []
    resources = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        resource_id = _as_text(item.get("resourceId") or item.get("resource_id"))
        if resource_id is None:
            continue
        flags = item.get("rasci") if isinstance(item.get("rasci"), dict) else {}
        rasci = Rasci(**{k: bool(flags.get(k)) for k in ("r", "a", "s", "c", "i")})
        resources.append(ResourceAssignment(resource_id=resource_id, rasci=rasci))
    return resources


def normalize_node(raw: Dict[str, Any]) -> Optional[GraphNode]:
    """Canonical node from one raw payload entry, or None when it has no id."""
    node_id = _as_text(raw.get("id"))
    if node_id is None:
        return None

    data = raw.get("data") if isinstance(raw.get("data"), dict) else {}
    return GraphNode(
        id=node_id,
        label=_as_text(data.get("label")) or _as_text(raw.get("label")) or DEFAULT_ACTIVITY_LABEL,
        type=_node_kind(raw.get("type")),
        outcome=_as_text(data.get("outcome")) or DEFAULT_OUTCOME,
        resources=_parse_resources(data.get("resources")),
    )


def normalize_edge(raw: Dict[str, Any]) -> Optional[GraphEdge]:
    source = _as_text(raw.get("source"))
    target = _as_text(raw.get("target"))
    if source is None or target is None:
        return None
    return GraphEdge(
        id=_as_text(raw.get("id")) or f"e-{source}-{target}",
        source=source,
        target=target,
        label=_as_text(raw.get("label")),
    )


def build_process_graph(raw: Optional[Dict[str, Any]]) -> Result[DiagramGraph, str]:
    """
    Normalize a generated or edited payload into a graph.

    Dangling and malformed edges are dropped. A payload with no usable nodes
    is a soft failure.
    """
    if not isinstance(raw, dict):
        return Err(EMPTY_GENERATION_MESSAGE)

    raw_nodes = raw.get("nodes") if isinstance(raw.get("nodes"), list) else []
    raw_edges = raw.get("edges") if isinstance(raw.get("edges"), list) else []

    graph = DiagramGraph()
    for item in raw_nodes:
        node = normalize_node(item) if isinstance(item, dict) else None
        if node is None:
            logger.warning(f"Skipping malformed node: {item!r}")
            continue
        if graph.has_node(node.id):
            logger.warning(f"Skipping duplicate node id {node.id}")
            continue
        graph.add_node(node)

    if graph.node_count == 0:
        return Err(EMPTY_GENERATION_MESSAGE)

    for item in raw_edges:
        edge = normalize_edge(item) if isinstance(item, dict) else None
        if edge is None:
            logger.warning(f"Skipping malformed edge: {item!r}")
            continue
        graph.add_edge(edge)

    if graph.dropped_edges:
        logger.warning(f"Dropped {graph.dropped_edges} edge(s) referencing unknown nodes")
    return Ok(graph)


def build_process_diagram(raw: Optional[Dict[str, Any]], diagram_id: str = "") -> Result[ProcessDiagram, str]:
    """Process-mode build that also keeps the payload's title and description."""
    result = build_process_graph(raw)
    if result.is_err():
        return result

    graph = result.unwrap()
    return Ok(ProcessDiagram(
        id=diagram_id,
        title=_as_text(raw.get("title")) or "",
        description=_as_text(raw.get("description")) or "",
        nodes=graph.nodes,
        edges=graph.edges,
    ))
