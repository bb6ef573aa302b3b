"""
Collaborator contracts.

The core only talks to the platform through these protocols, so every
component can run against the REST client or an in-memory fake.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

from ..core.types import (
    ChatTurn,
    ChildRelationship,
    PageLayout,
    ProcessDefinition,
    QueryResult,
    Record,
    SField,
    SObject,
)


@dataclass
class EntityDescription:
    """Payload of a single-entity describe call."""
    fields: List[SField] = field(default_factory=list)
    child_relationships: List[ChildRelationship] = field(default_factory=list)
    label: Optional[str] = None


class DescribeService(Protocol):
    async def describe_all_entities(self) -> List[SObject]: ...

    async def describe_entity(self, name: str) -> EntityDescription: ...


class QueryService(Protocol):
    async def run_query(self, query: str) -> QueryResult: ...


class LayoutService(Protocol):
    async def fetch_layouts(self, entity_name: str) -> List[PageLayout]: ...


class RecordService(Protocol):
    async def fetch_by_id(self, entity_name: str, record_id: str) -> Record: ...


class ProcessDefinitionService(Protocol):
    async def fetch_process_definitions(self) -> List[ProcessDefinition]: ...

    async def fetch_approval_steps(self, process_id: str) -> List[str]: ...


class DiagramGenerator(Protocol):
    async def generate(self, prompt: str) -> Optional[Dict[str, Any]]: ...


class TextGenerator(Protocol):
    async def complete(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        history: Sequence[ChatTurn] = (),
    ) -> str: ...

