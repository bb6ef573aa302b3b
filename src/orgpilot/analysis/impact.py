"""
Impact Analysis.

Calculates which process steps sit downstream of a selected step and tags
every node with an impact tier for display.
"""

from collections import Counter, deque
from typing import Any, Dict, List, Optional, Sequence, Set

from ..core.graph import DiagramGraph
from ..core.types import GraphEdge, GraphNode, ImpactLevel


def downstream_ids(edges: Sequence[GraphEdge], start_id: str) -> List[str]:
    """
    Breadth-first walk along edges whose source is the current node.

    Returns visited ids in visit order, start included. Cycles are safe:
    a visited node is never queued again.
    """
    outgoing: Dict[str, List[str]] = {}
    for edge in edges:
        outgoing.setdefault(edge.source, []).append(edge.target)

    visited = [start_id]
    seen: Set[str] = {start_id}
    queue = deque([start_id])
    while queue:
        current = queue.popleft()
        for target in outgoing.get(current, []):
            if target not in seen:
                seen.add(target)
                visited.append(target)
                queue.append(target)
    return visited


def compute_impact(nodes: Sequence[GraphNode], edges: Sequence[GraphEdge], start_id: str) -> List[GraphNode]:
    """Start node is critical, every other reachable node high, the rest none."""
    reached = set(downstream_ids(edges, start_id))
    annotated = []
    for node in nodes:
        if node.id == start_id:
            level = ImpactLevel.CRITICAL
        elif node.id in reached:
            level = ImpactLevel.HIGH
        else:
            level = ImpactLevel.NONE
        annotated.append(node.with_impact(level))
    return annotated


def clear_impact(nodes: Sequence[GraphNode]) -> List[GraphNode]:
    return [node.with_impact(ImpactLevel.NONE) for node in nodes]


class ImpactAnalyzer:
    """
    Analyzes the downstream impact of changing a step in a diagram.
    """

    def __init__(self, graph: DiagramGraph):
        self.graph = graph
        self.start_id: Optional[str] = None

    def analyze(self, start_id: str) -> List[GraphNode]:
        if not self.graph.has_node(start_id):
            raise KeyError(f"Unknown node: {start_id}")
        self.start_id = start_id
        annotated = compute_impact(self.graph.nodes, self.graph.edges, start_id)
        for node in annotated:
            self.graph.add_node(node)
        return annotated

    def clear(self) -> List[GraphNode]:
        self.start_id = None
        cleared = clear_impact(self.graph.nodes)
        for node in cleared:
            self.graph.add_node(node)
        return cleared

    def summary(self) -> Dict[str, Any]:
        levels = Counter(node.impact_level.value for node in self.graph.iter_nodes())
        impacted = sorted(
            node.id for node in self.graph.iter_nodes()
            if node.impact_level != ImpactLevel.NONE and node.id != self.start_id
        )
        return {
            "source_node": self.start_id,
            "total_impacted_count": len(impacted),
            "impacted_nodes": impacted,
            "breakdown": {level.value: levels.get(level.value, 0) for level in ImpactLevel},
        }
