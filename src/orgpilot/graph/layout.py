"""
Graph Layout Engine.

Sugiyama-style layered layout:
  1. Cycle removal (greedy-FAS ordering, back-edges reversed)
  2. Rank assignment (longest path from sources)
  3. Dummy node insertion for edges spanning several ranks
  4. Crossing minimization (barycenter sweeps)
  5. Coordinate assignment (nodes aligned over their parents)

Every phase iterates in node insertion order and only uses stable sorts, so
the same graph and options always produce the same coordinates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

import networkx as nx

from ..config import LayoutOptions
from ..core.graph import DiagramGraph
from ..core.types import GraphEdge, GraphNode, LayoutDirection

logger = logging.getLogger(__name__)

DUMMY_PREFIX = "__dummy_"
MAX_SWEEPS = 24


# =============================================================================
# Cycle Removal
# =============================================================================


def greedy_fas_ordering(graph: nx.DiGraph) -> List[str]:
    """
    Node ordering that keeps as many edges as possible pointing forward.

    Eades-Lin-Smyth: peel sinks to the right, sources to the left, and
    otherwise the node with the largest out-in surplus. Ties go to the node
    inserted first.
    """
    active: List[str] = list(graph.nodes)
    out_deg = {n: graph.out_degree(n) for n in active}
    in_deg = {n: graph.in_degree(n) for n in active}
    left: List[str] = []
    right: List[str] = []

    def remove(node: str) -> None:
        active.remove(node)
        for succ in graph.successors(node):
            if succ in in_deg:
                in_deg[succ] -= 1
        for pred in graph.predecessors(node):
            if pred in out_deg:
                out_deg[pred] -= 1
        del in_deg[node]
        del out_deg[node]

    while active:
        sinks = [n for n in active if out_deg[n] == 0]
        while sinks:
            for sink in sinks:
                remove(sink)
                right.append(sink)
            sinks = [n for n in active if out_deg[n] == 0]

        sources = [n for n in active if in_deg[n] == 0]
        while sources:
            for source in sources:
                remove(source)
                left.append(source)
            sources = [n for n in active if in_deg[n] == 0]

        if active:
            best = max(active, key=lambda n: out_deg[n] - in_deg[n])
            remove(best)
            left.append(best)

    return left + list(reversed(right))


def remove_cycles(graph: nx.DiGraph) -> nx.DiGraph:
    """Copy of the graph with back-edges reversed and self-loops removed."""
    position = {node: i for i, node in enumerate(greedy_fas_ordering(graph))}

    dag = nx.DiGraph()
    dag.add_nodes_from(graph.nodes)
    for src, tgt in graph.edges():
        if src == tgt:
            continue
        if position[src] > position[tgt]:
            dag.add_edge(tgt, src)
        else:
            dag.add_edge(src, tgt)
    return dag


# =============================================================================
# Ranking
# =============================================================================


def assign_ranks(dag: nx.DiGraph) -> Dict[str, int]:
    """Longest path from the sources: rank[v] = max(rank[u] + 1) over u -> v."""
    ranks = {node: 0 for node in dag.nodes}
    for node in nx.topological_sort(dag):
        for succ in dag.successors(node):
            if ranks[succ] < ranks[node] + 1:
                ranks[succ] = ranks[node] + 1
    return ranks


@dataclass
class LayeredGraph:
    """Proper layered graph: every edge joins adjacent ranks."""
    graph: nx.DiGraph
    ranks: Dict[str, int]
    dummies: List[str] = field(default_factory=list)

    @property
    def rank_count(self) -> int:
        return max(self.ranks.values()) + 1 if self.ranks else 0


def insert_dummy_nodes(dag: nx.DiGraph, ranks: Dict[str, int]) -> LayeredGraph:
    g = nx.DiGraph()
    g.add_nodes_from(dag.nodes)
    layered = LayeredGraph(graph=g, ranks=dict(ranks))

    for index, (src, tgt) in enumerate(list(dag.edges())):
        span = ranks[tgt] - ranks[src]
        previous = src
        for step in range(1, span):
            dummy = f"{DUMMY_PREFIX}{index}_{step}"
            g.add_node(dummy)
            layered.ranks[dummy] = ranks[src] + step
            layered.dummies.append(dummy)
            g.add_edge(previous, dummy)
            previous = dummy
        g.add_edge(previous, tgt)

    return layered


# =============================================================================
# Crossing Minimization
# =============================================================================


def count_crossings(ordering: List[List[str]], graph: nx.DiGraph) -> int:
    total = 0
    for upper, lower in zip(ordering, ordering[1:]):
        lower_pos = {n: i for i, n in enumerate(lower)}
        segments: List[Tuple[int, int]] = []
        for i, node in enumerate(upper):
            for succ in graph.successors(node):
                if succ in lower_pos:
                    segments.append((i, lower_pos[succ]))
        for a in range(len(segments)):
            for b in range(a + 1, len(segments)):
                (s1, t1), (s2, t2) = segments[a], segments[b]
                if (s1 - s2) * (t1 - t2) < 0:
                    total += 1
    return total


def _barycenter(node: str, neighbours: List[str], neighbour_pos: Dict[str, int], fallback: int) -> float:
    positions = [neighbour_pos[n] for n in neighbours if n in neighbour_pos]
    if not positions:
        return float(fallback)
    return sum(positions) / len(positions)


def _sort_layer(layer: List[str], graph: nx.DiGraph, reference: List[str], incoming: bool) -> List[str]:
    ref_pos = {n: i for i, n in enumerate(reference)}
    keyed = []
    for i, node in enumerate(layer):
        neighbours = list(graph.predecessors(node)) if incoming else list(graph.successors(node))
        keyed.append((_barycenter(node, neighbours, ref_pos, i), i, node))
    keyed.sort(key=lambda item: (item[0], item[1]))
    return [node for _, _, node in keyed]


def minimize_crossings(layered: LayeredGraph) -> List[List[str]]:
    """Alternate down and up barycenter sweeps while the crossing count improves."""
    ordering: List[List[str]] = [[] for _ in range(layered.rank_count)]
    for node in layered.graph.nodes:
        ordering[layered.ranks[node]].append(node)

    best = [list(layer) for layer in ordering]
    best_crossings = count_crossings(best, layered.graph)

    for _ in range(MAX_SWEEPS):
        if best_crossings == 0:
            break
        for r in range(1, len(ordering)):
            ordering[r] = _sort_layer(ordering[r], layered.graph, ordering[r - 1], incoming=True)
        for r in range(len(ordering) - 2, -1, -1):
            ordering[r] = _sort_layer(ordering[r], layered.graph, ordering[r + 1], incoming=False)

        crossings = count_crossings(ordering, layered.graph)
        if crossings >= best_crossings:
            break
        best = [list(layer) for layer in ordering]
        best_crossings = crossings

    return best


# =============================================================================
# Coordinate Assignment
# =============================================================================


def assign_coordinates(
    ordering: List[List[str]],
    layered: LayeredGraph,
    options: LayoutOptions,
) -> Dict[str, Tuple[float, float]]:
    """
    Centre point of every node as (cross, main) axis coordinates.

    The main axis runs along the ranks. Each node is placed as close as the
    gap allows to the mean centre of its parents in the previous rank.
    """
    horizontal = options.direction == LayoutDirection.LEFT_TO_RIGHT
    cross_size = options.node_height if horizontal else options.node_width
    main_size = options.node_width if horizontal else options.node_height
    dummies = set(layered.dummies)

    def size(node: str) -> float:
        return 0.0 if node in dummies else cross_size

    centres: Dict[str, float] = {}
    for rank, layer in enumerate(ordering):
        edge = None
        for node in layer:
            parents = [p for p in layered.graph.predecessors(node) if p in centres]
            half = size(node) / 2
            if rank > 0 and parents:
                desired = sum(centres[p] for p in parents) / len(parents)
            else:
                desired = edge + options.node_gap + half if edge is not None else half
            if edge is not None:
                desired = max(desired, edge + options.node_gap + half)
            centres[node] = desired
            edge = desired + half

    # Shift so the leftmost box edge sits at zero.
    min_edge = min((centres[n] - size(n) / 2 for n in centres), default=0.0)

    coordinates = {}
    for rank, layer in enumerate(ordering):
        main = rank * (main_size + options.rank_gap) + main_size / 2
        for node in layer:
            coordinates[node] = (centres[node] - min_edge, main)
    return coordinates


# =============================================================================
# Public API
# =============================================================================


def _simple_digraph(nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]) -> nx.DiGraph:
    g = nx.DiGraph()
    g.add_nodes_from(node.id for node in nodes)
    for e in edges:
        if e.source in g and e.target in g:
            g.add_edge(e.source, e.target)
    return g


def layout(nodes: Sequence[GraphNode], edges: Sequence[GraphEdge], options: LayoutOptions) -> List[GraphNode]:
    """
    Position nodes with a layered layout.

    Returns new nodes in input order; the inputs are left untouched. Each
    position is the top-left corner of the node box, i.e. the computed
    centre minus half the width and height.
    """
    if not nodes:
        return []

    graph = _simple_digraph(nodes, edges)
    dag = remove_cycles(graph)
    layered = insert_dummy_nodes(dag, assign_ranks(dag))
    ordering = minimize_crossings(layered)
    coordinates = assign_coordinates(ordering, layered, options)

    horizontal = options.direction == LayoutDirection.LEFT_TO_RIGHT
    positioned = []
    for node in nodes:
        cross, main = coordinates[node.id]
        cx, cy = (main, cross) if horizontal else (cross, main)
        positioned.append(node.with_position(
            cx - options.node_width / 2,
            cy - options.node_height / 2,
        ))

    logger.debug(f"Laid out {len(nodes)} nodes in {layered.rank_count} ranks ({options.direction})")
    return positioned


def layout_graph(graph: DiagramGraph, options: LayoutOptions) -> DiagramGraph:
    """Lay out a graph, returning a new graph with positioned nodes."""
    return DiagramGraph.from_parts(layout(graph.nodes, graph.edges, options), graph.edges)
