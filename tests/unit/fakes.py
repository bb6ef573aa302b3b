"""In-memory collaborators and builders shared by unit tests."""

import asyncio
from typing import Callable, Dict, List, Optional

from orgpilot.core.exceptions import DescribeError, QueryError, TransportError
from orgpilot.core.types import (
    ChildRelationship,
    PageLayout,
    ProcessDefinition,
    QueryResult,
    Record,
    SField,
    SObject,
)
from orgpilot.services.base import EntityDescription


def make_field(api_name: str, label: Optional[str] = None, type: str = "string", reference_to=None) -> SField:
    return SField(api_name=api_name, label=label or api_name, type=type, reference_to=reference_to or [])


def make_relationships(count: int, prefix: str = "Rel") -> List[ChildRelationship]:
    return [
        ChildRelationship(child_sobject=f"Child{i}", field="ParentId", relationship_name=f"{prefix}{i}")
        for i in range(count)
    ]


class FakeOrg:
    """
    In-memory org implementing every collaborator protocol.

    Failures are injected by setting the ``*_error`` attributes; call
    counters let tests assert how often the platform was hit.
    """

    def __init__(self):
        self.catalogue: List[SObject] = []
        self.descriptions: Dict[str, EntityDescription] = {}
        self.records: Dict[str, Record] = {}
        self.layouts: Dict[str, List[PageLayout]] = {}
        self.counts: Dict[str, int] = {}
        self.query_results: Dict[str, QueryResult] = {}
        self.query_handler: Optional[Callable[[str], QueryResult]] = None
        self.definitions: List[ProcessDefinition] = []
        self.approval_steps: Dict[str, List[str]] = {}

        self.describe_error: Optional[Exception] = None
        self.count_error: Optional[Exception] = None
        self.related_error: Optional[Exception] = None
        self.layout_error: Optional[Exception] = None
        self.record_error: Optional[Exception] = None
        self.approval_error: Optional[Exception] = None

        self.describe_delay = 0.0
        self.describe_calls: List[str] = []
        self.queries: List[str] = []
        self.layout_calls: List[str] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return None

    def add_entity(self, entity: SObject, description: Optional[EntityDescription] = None) -> None:
        self.catalogue.append(entity)
        if description is not None:
            self.descriptions[entity.api_name] = description

    async def describe_all_entities(self) -> List[SObject]:
        return [e.model_copy() for e in self.catalogue]

    async def describe_entity(self, name: str) -> EntityDescription:
        self.describe_calls.append(name)
        if self.describe_delay:
            await asyncio.sleep(self.describe_delay)
        if self.describe_error is not None:
            raise self.describe_error
        if name not in self.descriptions:
            raise DescribeError(name, "NOT_FOUND", status_code=404)
        return self.descriptions[name]

    async def run_query(self, query: str) -> QueryResult:
        self.queries.append(query)
        if query.startswith("SELECT count()"):
            if self.count_error is not None:
                raise self.count_error
            entity = query.rsplit(" ", 1)[-1]
            return QueryResult(total_size=self.counts.get(entity, 0))
        if "(SELECT" in query and self.related_error is not None:
            raise self.related_error
        if self.query_handler is not None:
            return self.query_handler(query)
        if query in self.query_results:
            return self.query_results[query]
        raise QueryError("MALFORMED_QUERY: unexpected token", query=query, status_code=400)

    async def fetch_by_id(self, entity_name: str, record_id: str) -> Record:
        if self.record_error is not None:
            raise self.record_error
        key = f"{entity_name}/{record_id}"
        if key not in self.records:
            raise TransportError(f"Record not found: {key}", status_code=404)
        return dict(self.records[key])

    async def fetch_layouts(self, entity_name: str) -> List[PageLayout]:
        self.layout_calls.append(entity_name)
        if self.layout_error is not None:
            raise self.layout_error
        return self.layouts.get(entity_name, [])

    async def fetch_process_definitions(self) -> List[ProcessDefinition]:
        return list(self.definitions)

    async def fetch_approval_steps(self, process_id: str) -> List[str]:
        if self.approval_error is not None:
            raise self.approval_error
        return self.approval_steps.get(process_id, [])


class FakeGenerator:
    """Generator returning canned diagram payloads and text, recording every request."""

    def __init__(self, payload=None, error: Optional[Exception] = None, text: str = ""):
        self.payload = payload
        self.error = error
        self.text = text
        self.prompts: List[str] = []
        self.completions: List[dict] = []

    async def generate(self, prompt: str):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.payload

    async def complete(self, prompt: str, system_instruction=None, history=()):
        self.completions.append({"prompt": prompt, "system_instruction": system_instruction, "history": list(history)})
        if self.error is not None:
            raise self.error
        return self.text
