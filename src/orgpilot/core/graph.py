"""
Diagram Graph implementation.

This module provides a type-safe wrapper around NetworkX that:
- Keeps node and edge insertion order (layout and export are order-stable)
- Refuses edges whose endpoints are not both present
- Supports parallel labelled edges between the same pair of nodes
- Provides traversal helpers and graph statistics
"""

import logging
from collections import Counter
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set

import networkx as nx

from .types import GraphEdge, GraphNode

logger = logging.getLogger(__name__)


class DiagramGraph:
    """
    Directed multigraph of ``GraphNode``s keyed by node id.

    Edges are keyed by their own id so two fields pointing at the same
    target stay two edges.
    """

    def __init__(self):
        self._graph = nx.MultiDiGraph()
        self._dropped_edges = 0

    @classmethod
    def from_parts(cls, nodes: Iterable[GraphNode], edges: Iterable[GraphEdge]) -> "DiagramGraph":
        graph = cls()
        for node in nodes:
            graph.add_node(node)
        for edge in edges:
            graph.add_edge(edge)
        return graph

    def add_node(self, node: GraphNode) -> None:
        """Add or replace a node; a replaced node keeps its edges."""
        self._graph.add_node(node.id, data=node)

    def add_edge(self, edge: GraphEdge) -> bool:
        """
        Add a directed edge.

        Returns False, without raising, when either endpoint is missing.
        """
        if edge.source not in self._graph or edge.target not in self._graph:
            self._dropped_edges += 1
            logger.debug(f"Dropping dangling edge {edge.id}: {edge.source} -> {edge.target}")
            return False
        self._graph.add_edge(edge.source, edge.target, key=edge.id, data=edge)
        return True

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        if node_id not in self._graph:
            return None
        return self._graph.nodes[node_id].get("data")

    def has_node(self, node_id: str) -> bool:
        return node_id in self._graph

    def successors(self, node_id: str) -> List[str]:
        """Direct targets of a node's outgoing edges, in edge insertion order."""
        if node_id not in self._graph:
            return []
        seen: List[str] = []
        for _, target in self._graph.out_edges(node_id):
            if target not in seen:
                seen.append(target)
        return seen

    def get_descendants(self, node_id: str) -> Set[str]:
        if node_id not in self._graph:
            return set()
        return nx.descendants(self._graph, node_id)

    def iter_nodes(self) -> Iterator[GraphNode]:
        for node_id in self._graph.nodes():
            yield self._graph.nodes[node_id]["data"]

    def iter_edges(self) -> Iterator[GraphEdge]:
        for _, _, data in self._graph.edges(data=True):
            yield data["data"]

    @property
    def nodes(self) -> List[GraphNode]:
        return list(self.iter_nodes())

    @property
    def edges(self) -> List[GraphEdge]:
        return list(self.iter_edges())

    @property
    def node_count(self) -> int:
        return self._graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        return self._graph.number_of_edges()

    @property
    def dropped_edges(self) -> int:
        """Number of edges refused because an endpoint was missing."""
        return self._dropped_edges

    def get_stats(self) -> Dict[str, Any]:
        kinds = Counter(node.type.value for node in self.iter_nodes())
        return {
            "total_nodes": self.node_count,
            "total_edges": self.edge_count,
            "nodes_by_type": dict(kinds),
            "dropped_edges": self._dropped_edges,
            "is_acyclic": nx.is_directed_acyclic_graph(self._graph),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Export graph to dictionary format."""
        return {
            "nodes": [node.model_dump(mode="json") for node in self.iter_nodes()],
            "edges": [edge.model_dump(mode="json") for edge in self.iter_edges()],
            "stats": self.get_stats(),
        }
