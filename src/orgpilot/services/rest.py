"""
REST client for the CRM platform.

Implements the describe, query, layout, point-lookup and process-definition
collaborators over one authenticated session. Wire payloads are converted to
the core types here and nowhere else.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from ..config import API_VERSION, Settings
from ..core.exceptions import AuthenticationError, DescribeError, QueryError, TransportError
from ..core.soql import quote_literal
from ..core.types import (
    ChildRelationship,
    LayoutComponent,
    LayoutItem,
    LayoutRow,
    LayoutSection,
    PageLayout,
    ProcessDefinition,
    ProcessType,
    QueryResult,
    Record,
    SField,
    SObject,
)
from .base import EntityDescription

logger = logging.getLogger(__name__)

# Standard lifecycles backed by picklist-style status objects.
_STANDARD_PROCESSES = [
    ("std-opp", "Opportunity Sales Process", "Opportunity", "OpportunityStage",
     "Standard lifecycle based on Opportunity Stages."),
    ("std-lead", "Lead Qualification", "Lead", "LeadStatus",
     "Standard lifecycle based on Lead Status."),
    ("std-case", "Support Process", "Case", "CaseStatus",
     "Standard lifecycle based on Case Status."),
]

APPROVAL_QUERY = (
    "SELECT Id, Name, TableEnumOrId, Description FROM ProcessDefinition "
    "WHERE State = 'Active' LIMIT 20"
)
FLOW_QUERY = (
    "SELECT Id, Label, ProcessType, Description FROM FlowDefinitionView "
    "WHERE IsActive = true AND ProcessType IN ('Flow', 'AutoLaunchedFlow', 'Workflow') LIMIT 20"
)


def _error_message(response: httpx.Response, default: str) -> str:
    """Extract the platform's error text from a failed response."""
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return text[:300] if text else default

    if isinstance(body, list) and body and isinstance(body[0], dict) and body[0].get("message"):
        return body[0]["message"]
    if isinstance(body, dict) and body.get("message"):
        return body["message"]
    if isinstance(body, str) and body:
        return body
    return default


def _decode(response: httpx.Response) -> Any:
    """Body of a successful response; an undecodable body is a transport failure."""
    try:
        return response.json()
    except ValueError as e:
        raise TransportError(
            f"Unreadable response from {response.request.url.path}: {e}",
            status_code=response.status_code,
        ) from e


def parse_field(raw: Dict[str, Any]) -> SField:
    return SField(
        api_name=raw["name"],
        label=raw.get("label") or raw["name"],
        type=raw.get("type") or "string",
        description=raw.get("description") or raw.get("inlineHelpText") or "",
        is_custom=bool(raw.get("custom", False)),
        reference_to=list(raw.get("referenceTo") or []),
    )


def parse_child_relationship(raw: Dict[str, Any]) -> ChildRelationship:
    return ChildRelationship(
        child_sobject=raw.get("childSObject", ""),
        field=raw.get("field", ""),
        relationship_name=raw.get("relationshipName"),
        cascade_delete=bool(raw.get("cascadeDelete", False)),
    )


def parse_layout(raw: Dict[str, Any], index: int = 0) -> PageLayout:
    """Convert a describe/layouts entry into a PageLayout."""
    sections = []
    for raw_section in raw.get("detailLayoutSections") or []:
        rows = []
        for raw_row in raw_section.get("layoutRows") or []:
            items = []
            for raw_item in raw_row.get("layoutItems") or []:
                components = [
                    LayoutComponent(type=c.get("type", ""), value=c.get("value"))
                    for c in raw_item.get("layoutComponents") or []
                ]
                items.append(LayoutItem(
                    label=raw_item.get("label") or "",
                    layout_components=components,
                    placeholder=bool(raw_item.get("placeholder", False)),
                    required=bool(raw_item.get("required", False)),
                ))
            rows.append(LayoutRow(layout_items=items))
        sections.append(LayoutSection(
            heading=raw_section.get("heading") or "",
            use_heading=bool(raw_section.get("useHeading", True)),
            layout_rows=rows,
            columns=raw_section.get("columns") or 2,
        ))

    layout_id = raw.get("id") or f"layout-{index}"
    return PageLayout(
        id=layout_id,
        name=raw.get("name") or layout_id,
        detail_layout_sections=sections,
    )


class CrmRestClient:
    """
    Async REST client bound to one org session.

    Example:
        ```python
        async with CrmRestClient.from_settings(settings) as client:
            result = await client.run_query("SELECT Id FROM Account LIMIT 5")
        ```
    """

    def __init__(
        self,
        instance_url: str,
        access_token: str,
        api_version: str = API_VERSION,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not instance_url or not access_token:
            raise AuthenticationError("No org session: instance URL and access token are required")

        self.instance_url = instance_url.rstrip("/")
        self.api_version = api_version
        self._client = httpx.AsyncClient(
            base_url=f"{self.instance_url}/services/data/{api_version}",
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "CrmRestClient":
        return cls(
            settings.instance_url,
            settings.access_token,
            api_version=settings.api_version,
            timeout=settings.timeout,
            **kwargs,
        )

    async def __aenter__(self) -> "CrmRestClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # =========================================================================
    # Transport
    # =========================================================================

    async def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> httpx.Response:
        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {path} failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthenticationError(
                _error_message(response, "Session expired or invalid"),
                status_code=response.status_code,
            )
        return response

    # =========================================================================
    # Describe
    # =========================================================================

    async def describe_all_entities(self) -> List[SObject]:
        response = await self._get("/sobjects")
        if response.is_error:
            message = _error_message(response, f"Failed to fetch global metadata ({response.status_code})")
            raise TransportError(message, status_code=response.status_code)

        return [
            SObject(
                api_name=obj["name"],
                label=obj.get("label") or obj["name"],
                is_custom=bool(obj.get("custom", False)),
                key_prefix=obj.get("keyPrefix"),
            )
            for obj in _decode(response).get("sobjects", [])
        ]

    async def describe_entity(self, name: str) -> EntityDescription:
        response = await self._get(f"/sobjects/{quote(name)}/describe")
        if response.is_error:
            raise DescribeError(
                name,
                _error_message(response, f"HTTP {response.status_code}"),
                status_code=response.status_code,
            )

        data = _decode(response)
        return EntityDescription(
            fields=[parse_field(f) for f in data.get("fields", [])],
            child_relationships=[parse_child_relationship(cr) for cr in data.get("childRelationships") or []],
            label=data.get("label"),
        )

    # =========================================================================
    # Query / Records
    # =========================================================================

    async def run_query(self, query: str) -> QueryResult:
        response = await self._get("/query", params={"q": query})
        if response.is_error:
            raise QueryError(
                _error_message(response, "Query Failed"),
                query=query,
                status_code=response.status_code,
            )

        data = _decode(response)
        return QueryResult(
            total_size=data.get("totalSize", 0),
            done=data.get("done", True),
            records=data.get("records") or [],
        )

    async def fetch_by_id(self, entity_name: str, record_id: str) -> Record:
        response = await self._get(f"/sobjects/{quote(entity_name)}/{quote(record_id)}")
        if response.is_error:
            raise TransportError(
                _error_message(response, "Failed to fetch record details"),
                status_code=response.status_code,
            )
        return _decode(response)

    async def fetch_layouts(self, entity_name: str) -> List[PageLayout]:
        response = await self._get(f"/sobjects/{quote(entity_name)}/describe/layouts")
        if response.is_error:
            raise TransportError(
                _error_message(response, "Failed to fetch layouts"),
                status_code=response.status_code,
            )

        raw_layouts = _decode(response).get("layouts")
        if not isinstance(raw_layouts, list):
            return []
        return [parse_layout(raw, i) for i, raw in enumerate(raw_layouts)]

    # =========================================================================
    # Process Definitions
    # =========================================================================

    async def fetch_process_definitions(self) -> List[ProcessDefinition]:
        """
        Collect process definitions from every source the org exposes.

        Each source is independent: a failing source is logged and skipped.
        """
        results: List[ProcessDefinition] = []

        for process_id, label, object_type, status_object, description in _STANDARD_PROCESSES:
            try:
                stages = await self.run_query(
                    f"SELECT MasterLabel FROM {status_object} ORDER BY SortOrder ASC"
                )
            except TransportError as e:
                logger.warning(f"Error fetching {status_object}: {e}")
                continue
            if stages.records:
                results.append(ProcessDefinition(
                    id=process_id,
                    label=label,
                    type=ProcessType.STANDARD,
                    object_type=object_type,
                    description=description,
                    steps=[r.get("MasterLabel") for r in stages.records if r.get("MasterLabel")],
                ))

        try:
            approvals = await self.run_query(APPROVAL_QUERY)
            for rec in approvals.records:
                table = rec.get("TableEnumOrId") or ""
                results.append(ProcessDefinition(
                    id=rec["Id"],
                    label=rec.get("Name") or rec["Id"],
                    type=ProcessType.APPROVAL,
                    object_type=table,
                    description=rec.get("Description") or f"Approval process for {table}",
                ))
        except TransportError as e:
            logger.warning(f"Error fetching approval processes: {e}")

        try:
            flows = await self.run_query(FLOW_QUERY)
            for rec in flows.records:
                results.append(ProcessDefinition(
                    id=rec["Id"],
                    label=rec.get("Label") or rec["Id"],
                    type=ProcessType.FLOW,
                    object_type="Flow",
                    description=rec.get("Description") or f"Salesforce {rec.get('ProcessType', 'Flow')}",
                ))
        except TransportError as e:
            logger.warning(f"Error fetching flows: {e}")

        return results

    async def fetch_approval_steps(self, process_id: str) -> List[str]:
        result = await self.run_query(
            f"SELECT Name FROM ProcessNode WHERE ProcessDefinitionId = {quote_literal(process_id)} "
            "ORDER BY SystemModstamp ASC"
        )
        return [r["Name"] for r in result.records if r.get("Name")]
