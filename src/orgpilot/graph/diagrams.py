"""
Process diagram service.

Turns a free-text requirement or one of the org's process definitions into a
laid-out process diagram. Generation failures are reported as ``Err`` values
so the caller can ask the user to retry.
"""

import logging
from typing import List, Optional, Sequence

from ..config import AUTO_DIAGRAM_LAYOUT, PROCESS_LAYOUT, LayoutOptions
from ..core.exceptions import GenerationError
from ..core.metadata import MetadataRepository
from ..core.result import Err, Result, map_ok
from ..core.types import (
    GraphEdge,
    GraphNode,
    ProcessDefinition,
    ProcessDiagram,
    ProcessType,
    Rasci,
    ResourceAssignment,
)
from ..services.base import DiagramGenerator, ProcessDefinitionService
from ..services.generation import build_generation_prompt
from .builder import build_process_diagram
from .layout import layout

logger = logging.getLogger(__name__)


def build_process_requirement(definition: ProcessDefinition, steps: Optional[Sequence[str]] = None) -> str:
    """Deterministic generation request for an existing process."""
    steps = list(steps if steps is not None else definition.steps)
    text = (
        f"Generate a UPN diagram for the {definition.type} Process named "
        f"\"{definition.label}\" on Object \"{definition.object_type}\"."
    )
    if steps:
        text += (
            f" It contains the following defined steps in order: {' -> '.join(steps)}."
            " Ensure the nodes in the diagram strictly follow this sequence."
        )
    elif definition.description:
        text += f" Description: {definition.description}"
    return text


def _activity(node_id: str, label: str, outcome: str, resource_id: str, accountable: bool) -> GraphNode:
    return GraphNode(
        id=node_id,
        label=label,
        outcome=outcome,
        resources=[ResourceAssignment(resource_id=resource_id, rasci=Rasci(r=True, a=accountable))],
    )


def seed_diagram(options: LayoutOptions = PROCESS_LAYOUT) -> ProcessDiagram:
    """Starter lead-qualification diagram shown in an empty editor."""
    nodes = [
        _activity("1", "New Lead Created", "Lead Captured", "sys-sf", False),
        _activity("2", "Qualify Lead", "Decision Made", "res-sales-rep", True),
        _activity("3", "Convert to Opportunity", "Opp Created", "res-sales-rep", True),
        _activity("4", "Mark as Unqualified", "Lead Closed", "res-sales-rep", True),
    ]
    edges = [
        GraphEdge(id="e1-2", source="1", target="2"),
        GraphEdge(id="e2-3", source="2", target="3", label="Qualified"),
        GraphEdge(id="e2-4", source="2", target="4", label="Not Interest"),
    ]
    return ProcessDiagram(
        id="seed-lead-qualification",
        title="Lead Qualification",
        nodes=layout(nodes, edges, options),
        edges=edges,
    )


class DiagramService:
    """
    Generates process diagrams.

    Example:
        ```python
        service = DiagramService(generator, repo, client)
        result = await service.generate_from_requirement("Onboard a new customer")
        if result.is_ok():
            diagram = result.unwrap()
        ```
    """

    def __init__(
        self,
        generator: DiagramGenerator,
        metadata: MetadataRepository,
        processes: Optional[ProcessDefinitionService] = None,
        options: LayoutOptions = AUTO_DIAGRAM_LAYOUT,
    ):
        self.generator = generator
        self.metadata = metadata
        self.processes = processes
        self.options = options

    async def list_definitions(self) -> List[ProcessDefinition]:
        if self.processes is None:
            return []
        return await self.processes.fetch_process_definitions()

    async def generate_from_requirement(self, requirement: str) -> Result[ProcessDiagram, str]:
        if not requirement.strip():
            return Err("Describe the process you want to diagram.")

        entity_names = [e.api_name for e in self.metadata.list_entities()]
        prompt = build_generation_prompt(requirement, entity_names)

        try:
            raw = await self.generator.generate(prompt)
        except GenerationError as e:
            logger.error(f"Generation failed: {e.message}")
            return Err(e.message)

        result = build_process_diagram(raw)
        if result.is_err():
            logger.warning(f"Generator produced an unusable diagram for: {requirement[:80]}")
            return result

        return map_ok(result, lambda d: d.model_copy(update={"nodes": layout(d.nodes, d.edges, self.options)}))

    async def resolve_steps(self, definition: ProcessDefinition) -> List[str]:
        """Approval processes use their live step list when one is available."""
        steps = list(definition.steps)
        if definition.type != ProcessType.APPROVAL or self.processes is None:
            return steps
        try:
            fetched = await self.processes.fetch_approval_steps(definition.id)
        except Exception as e:
            logger.warning(f"Could not fetch approval steps for {definition.id}: {e}")
            return steps
        return fetched or steps

    async def generate_from_definition(self, definition: ProcessDefinition) -> Result[ProcessDiagram, str]:
        steps = await self.resolve_steps(definition)
        return await self.generate_from_requirement(build_process_requirement(definition, steps))
