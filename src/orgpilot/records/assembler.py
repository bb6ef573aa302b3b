"""
Record Assembler.

Fetches a record's scalar fields plus a bounded set of related lists in one
relationship-aware query, and drives the staged record detail view.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..config import MAX_RELATED_LISTS, MAX_RELATED_ROWS, RELATED_LIST_COLUMNS
from ..core.exceptions import TransportError
from ..core.metadata import MetadataRepository
from ..core.soql import quote_literal
from ..core.state import RequestTracker, StateCell
from ..core.types import ChildRelationship, Record, SObject, strip_attributes
from ..services.base import LayoutService, QueryService, RecordService
from .layout import (
    LayoutResolver,
    LayoutSelection,
    RenderedSection,
    fields_from_record,
    render_layout,
)

logger = logging.getLogger(__name__)

RelatedData = Dict[str, List[Record]]


@dataclass
class RecordBundle:
    """Scalar record plus related rows keyed by relationship name."""
    record: Record
    related_data: RelatedData = field(default_factory=dict)
    entity: Optional[SObject] = None


@dataclass
class RelatedList:
    relationship_name: str
    child_entity: str
    rows: List[Record] = field(default_factory=list)

    @property
    def columns(self) -> List[str]:
        return list(self.rows[0].keys()) if self.rows else []

    @property
    def is_empty(self) -> bool:
        return not self.rows


# =============================================================================
# Query Construction
# =============================================================================


def select_related_relationships(relationships: List[ChildRelationship]) -> List[ChildRelationship]:
    """Relationships that can be queried, capped at the platform limit."""
    named = [r for r in relationships if r.relationship_name]
    return named[:MAX_RELATED_LISTS]


def build_related_query(entity_name: str, record_id: str, relationships: List[ChildRelationship]) -> Optional[str]:
    """
    Build the single parent query carrying one sub-select per relationship.

    Returns None when there is nothing to query.
    """
    selected = select_related_relationships(relationships)
    if not selected:
        return None

    columns = ", ".join(RELATED_LIST_COLUMNS)
    subqueries = ", ".join(
        f"(SELECT {columns} FROM {r.relationship_name} LIMIT {MAX_RELATED_ROWS})"
        for r in selected
    )
    return f"SELECT Id, {subqueries} FROM {entity_name} WHERE Id = {quote_literal(record_id)}"


def merge_related_rows(row: Record, relationships: List[ChildRelationship]) -> RelatedData:
    """Pull sub-select results out of the parent row; empty relationships are omitted."""
    related: RelatedData = {}
    for rel in select_related_relationships(relationships):
        value = row.get(rel.relationship_name)
        if isinstance(value, dict):
            rows = value.get("records") or []
        elif isinstance(value, list):
            rows = value
        else:
            rows = []
        if rows:
            related[rel.relationship_name] = list(rows)[:MAX_RELATED_ROWS]
    return related


def render_related_lists(entity: SObject, related: RelatedData) -> List[RelatedList]:
    """
    One entry per queried relationship, in query order.

    A relationship missing from ``related`` renders as an empty list.
    """
    return [
        RelatedList(
            relationship_name=rel.relationship_name,
            child_entity=rel.child_sobject,
            rows=[strip_attributes(r) for r in related.get(rel.relationship_name, [])],
        )
        for rel in select_related_relationships(entity.child_relationships)
    ]


# =============================================================================
# Assembler
# =============================================================================


class RecordAssembler:
    """
    Loads a record and its related lists.

    Related-list failures never block the scalar record: they degrade to an
    empty mapping.
    """

    def __init__(
        self,
        metadata: MetadataRepository,
        record_service: RecordService,
        query_service: QueryService,
    ):
        self.metadata = metadata
        self.record_service = record_service
        self.query_service = query_service

    async def describe_or_none(self, entity_name: str) -> Optional[SObject]:
        try:
            return await self.metadata.describe(entity_name)
        except Exception as e:
            logger.warning(f"Describe failed for {entity_name}, continuing without metadata: {e}")
            return None

    async def fetch_scalar(self, entity_name: str, record_id: str) -> Record:
        return await self.record_service.fetch_by_id(entity_name, record_id)

    async def fetch_related(self, entity: Optional[SObject], record_id: str) -> RelatedData:
        if entity is None:
            return {}

        query = build_related_query(entity.api_name, record_id, entity.child_relationships)
        if query is None:
            return {}

        try:
            result = await self.query_service.run_query(query)
        except Exception as e:
            logger.warning(f"Failed to fetch related lists for {entity.api_name}/{record_id}: {e}")
            return {}

        if not result.records:
            return {}
        return merge_related_rows(result.records[0], entity.child_relationships)

    async def load_record(self, entity_name: str, record_id: str) -> RecordBundle:
        """
        Fetch the scalar record and its related data.

        Raises:
            TransportError: If the scalar record itself cannot be fetched.
        """
        entity = await self.describe_or_none(entity_name)
        record = await self.fetch_scalar(entity_name, record_id)
        related = await self.fetch_related(entity, record_id)
        logger.debug(f"Loaded {entity_name}/{record_id} with {len(related)} related lists")
        return RecordBundle(record=record, related_data=related, entity=entity)


# =============================================================================
# Staged Detail View
# =============================================================================


class RecordDetailSession:
    """
    Staged loading for the record detail view.

    The scalar cell resolves as soon as the point lookup returns; related
    lists and layouts resolve afterwards in their own cells. Opening another
    record bumps the request token, so late results for the previous record
    are dropped.

    A failed point lookup fails every cell and is re-raised to the caller.
    """

    REQUEST_KEY = "record"

    def __init__(self, assembler: RecordAssembler, layout_service: LayoutService):
        self.assembler = assembler
        self.resolver = LayoutResolver(layout_service)
        self.tracker = RequestTracker()

        self.scalar: StateCell[Record] = StateCell("scalar")
        self.related: StateCell[RelatedData] = StateCell("related")
        self.layouts: StateCell[LayoutSelection] = StateCell("layouts")
        self.entity: Optional[SObject] = None

    async def open(self, entity_name: str, record_id: str) -> None:
        token = self.tracker.begin(self.REQUEST_KEY)
        for cell in (self.scalar, self.related, self.layouts):
            cell.start(token)

        entity = await self.assembler.describe_or_none(entity_name)

        try:
            record = await self.assembler.fetch_scalar(entity_name, record_id)
        except TransportError as e:
            for cell in (self.scalar, self.related, self.layouts):
                cell.fail(token, e.message)
            raise

        if not self.scalar.resolve(token, record):
            return
        self.entity = entity

        await asyncio.gather(
            self._load_related(token, entity, record_id),
            self._load_layouts(token, entity_name, entity, record),
        )

    async def _load_related(self, token: int, entity: Optional[SObject], record_id: str) -> None:
        related = await self.assembler.fetch_related(entity, record_id)
        self.related.resolve(token, related)

    async def _load_layouts(self, token: int, entity_name: str, entity: Optional[SObject], record: Record) -> None:
        if entity is None:
            entity = SObject(api_name=entity_name, label=entity_name, fields=fields_from_record(record))
        selection = await self.resolver.resolve(entity)
        self.layouts.resolve(token, selection)

    def select_layout(self, layout_id: str) -> None:
        if self.layouts.value is None:
            raise RuntimeError("Layouts are not loaded yet")
        self.layouts.value.select(layout_id)

    def render(self) -> List[RenderedSection]:
        """Render the active layout against the already-loaded record."""
        if self.scalar.value is None or self.layouts.value is None:
            return []
        return render_layout(self.layouts.value.active, self.scalar.value)
