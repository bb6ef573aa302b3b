"""
Core type definitions for orgpilot.

Metadata (entities, fields, relationships, page layouts) and the graph
model shared by the dependency explorer and the process diagram editor.
"""

from enum import StrEnum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Reserved non-data key carried by every record returned by the platform.
ATTRIBUTES_KEY = "attributes"

RecordValue = Union[None, bool, int, float, str, List[Any], Dict[str, Any]]
Record = Dict[str, RecordValue]


def strip_attributes(record: Record) -> Record:
    """Return a copy of the record without the reserved attributes key."""
    return {k: v for k, v in record.items() if k != ATTRIBUTES_KEY}


def record_type(record: Record) -> Optional[str]:
    """Entity name declared in the record's attributes block, if any."""
    attrs = record.get(ATTRIBUTES_KEY)
    if isinstance(attrs, dict):
        value = attrs.get("type")
        if isinstance(value, str) and value:
            return value
    return None


class NodeKind(StrEnum):
    """Variants of a graph node."""
    ENTITY = "entity"
    START = "start"
    PROCESS = "process"
    DECISION = "decision"
    END = "end"


class ImpactLevel(StrEnum):
    """Impact severity tiers used for visual differentiation."""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ChatRole(StrEnum):
    USER = "user"
    MODEL = "model"


class LayoutDirection(StrEnum):
    """Rank direction for the layered layout."""
    TOP_TO_BOTTOM = "TB"
    LEFT_TO_RIGHT = "LR"


class ProcessType(StrEnum):
    STANDARD = "Standard"
    FLOW = "Flow"
    APPROVAL = "Approval"


# =============================================================================
# Metadata
# =============================================================================


class SField(BaseModel):
    """A field on an entity."""
    api_name: str
    label: str
    type: str
    description: str = ""
    is_custom: bool = False
    reference_to: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    @property
    def is_reference(self) -> bool:
        return self.type == "reference" and len(self.reference_to) > 0


class ChildRelationship(BaseModel):
    """A parent-to-child relationship used to build related-list sub-queries."""
    child_sobject: str
    field: str
    relationship_name: Optional[str] = None
    cascade_delete: bool = False


class SObject(BaseModel):
    """
    A described object type (entity).

    Created from the bulk describe with no fields; enriched once by a full
    describe and never re-fetched for the rest of the session.
    """
    api_name: str
    label: str
    is_custom: bool = False
    key_prefix: Optional[str] = None
    description: str = ""
    fields: List[SField] = Field(default_factory=list)
    child_relationships: List[ChildRelationship] = Field(default_factory=list)
    record_count: int = 0
    described: bool = False

    model_config = ConfigDict(extra="ignore")

    def reference_fields(self) -> List[SField]:
        return [f for f in self.fields if f.is_reference]


class QueryResult(BaseModel):
    """Result of a query call."""
    total_size: int = 0
    done: bool = True
    records: List[Record] = Field(default_factory=list)


class SavedQuery(BaseModel):
    id: str
    name: str
    query: str
    saved_at: int


class ChatTurn(BaseModel):
    """One message in an assistant conversation."""
    role: ChatRole
    content: str


# =============================================================================
# Page Layouts
# =============================================================================


class LayoutComponent(BaseModel):
    type: str
    value: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class LayoutItem(BaseModel):
    label: str = ""
    layout_components: List[LayoutComponent] = Field(default_factory=list)
    placeholder: bool = False
    required: bool = False

    model_config = ConfigDict(extra="ignore")

    def field_component(self) -> Optional[LayoutComponent]:
        """First renderable (``Field``) component; others are ignored."""
        for component in self.layout_components:
            if component.type == "Field" and component.value:
                return component
        return None


class LayoutRow(BaseModel):
    layout_items: List[LayoutItem] = Field(default_factory=list)


class LayoutSection(BaseModel):
    heading: str = ""
    use_heading: bool = True
    layout_rows: List[LayoutRow] = Field(default_factory=list)
    columns: int = 2


class PageLayout(BaseModel):
    id: str
    name: str
    detail_layout_sections: List[LayoutSection] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    @property
    def is_empty(self) -> bool:
        return not self.detail_layout_sections


# =============================================================================
# Graph
# =============================================================================


class Position(BaseModel):
    x: float = 0.0
    y: float = 0.0


class Rasci(BaseModel):
    """Responsible / Accountable / Supportive / Consulted / Informed flags."""
    r: bool = False
    a: bool = False
    s: bool = False
    c: bool = False
    i: bool = False


class ResourceAssignment(BaseModel):
    resource_id: str
    rasci: Rasci = Field(default_factory=Rasci)


class GraphNode(BaseModel):
    """
    A node in a dependency graph or process diagram.

    ``position`` is only ever written by the layout engine.
    """
    id: str
    label: str
    type: NodeKind = NodeKind.PROCESS
    outcome: Optional[str] = None
    resources: List[ResourceAssignment] = Field(default_factory=list)
    impact_level: ImpactLevel = ImpactLevel.NONE
    position: Position = Field(default_factory=Position)

    def with_position(self, x: float, y: float) -> "GraphNode":
        return self.model_copy(update={"position": Position(x=x, y=y)})

    def with_impact(self, level: ImpactLevel) -> "GraphNode":
        return self.model_copy(update={"impact_level": level})


class GraphEdge(BaseModel):
    """Directed, optionally labelled edge between two nodes."""
    id: str
    source: str
    target: str
    label: Optional[str] = None


class ProcessDiagram(BaseModel):
    id: str = ""
    title: str = ""
    description: str = ""
    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)


class ProcessDefinition(BaseModel):
    """A process known to the org, used to seed diagram generation."""
    id: str
    label: str
    type: ProcessType
    object_type: str
    description: str = ""
    steps: List[str] = Field(default_factory=list)
