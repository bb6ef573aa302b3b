"""
orgpilot Core Module.

Core Types & Graph:
    - SObject, SField, PageLayout: Metadata structures
    - GraphNode, GraphEdge: Diagram structures
    - DiagramGraph: In-memory directed multigraph

Infrastructure:
    - Ok, Err: Result type for reportable failures
    - StateCell, RequestTracker: Staged async state with stale guarding
"""

from .exceptions import (
    AuthenticationError,
    DescribeError,
    GenerationError,
    OrgPilotError,
    QueryError,
    TransportError,
)
from .graph import DiagramGraph
from .result import Err, Ok, Result
from .state import CellStatus, RequestTracker, StateCell
from .types import (
    ChildRelationship,
    GraphEdge,
    GraphNode,
    ImpactLevel,
    LayoutDirection,
    NodeKind,
    PageLayout,
    ProcessDefinition,
    ProcessDiagram,
    QueryResult,
    Record,
    SField,
    SObject,
)

__all__ = [
    # Errors
    "AuthenticationError",
    "DescribeError",
    "GenerationError",
    "OrgPilotError",
    "QueryError",
    "TransportError",
    # Graph
    "DiagramGraph",
    # Result
    "Err",
    "Ok",
    "Result",
    # State
    "CellStatus",
    "RequestTracker",
    "StateCell",
    # Types
    "ChildRelationship",
    "GraphEdge",
    "GraphNode",
    "ImpactLevel",
    "LayoutDirection",
    "NodeKind",
    "PageLayout",
    "ProcessDefinition",
    "ProcessDiagram",
    "QueryResult",
    "Record",
    "SField",
    "SObject",
]
