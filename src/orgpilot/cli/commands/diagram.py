"""
Diagram Commands - Generate process diagrams and analyze step impact.

Usage:
    orgpilot diagram --requirement "Onboard a new enterprise customer" -o onboarding.json
    orgpilot diagram --process std-lead
    orgpilot diagram --seed -o starter.json
    orgpilot impact onboarding.json n2
"""

from typing import List, Optional

import click
from pydantic import BaseModel
from rich.table import Table

from ...analysis.impact import ImpactAnalyzer
from ...config import Settings
from ...core.exceptions import GenerationError
from ...core.graph import DiagramGraph
from ...core.metadata import MetadataRepository
from ...core.types import ImpactLevel, ProcessDiagram
from ...graph.diagrams import DiagramService, seed_diagram
from ..renderers import JsonRenderer
from ..utils import (
    console,
    create_client,
    create_generator,
    echo_success,
    fail,
    finish_json,
    get_context,
    load_diagram,
    output_context,
    run_async,
    save_json,
)

_IMPACT_STYLES = {
    ImpactLevel.CRITICAL: "bold red",
    ImpactLevel.HIGH: "yellow",
    ImpactLevel.NONE: "dim",
}


# --- API Models ---
class ImpactResponse(BaseModel):
    source_node: Optional[str]
    total_impacted_count: int
    impacted_nodes: List[str]
    breakdown: dict
    diagram: ProcessDiagram


async def _generate(settings: Settings, requirement: Optional[str], process_id: Optional[str]) -> ProcessDiagram:
    generator = create_generator(settings)
    async with create_client(settings) as client:
        repo = MetadataRepository(client, client)
        await repo.load_entities()
        service = DiagramService(generator, repo, client)

        if process_id:
            definitions = await service.list_definitions()
            definition = next((d for d in definitions if d.id == process_id), None)
            if definition is None:
                raise KeyError(f"Unknown process: {process_id}")
            result = await service.generate_from_definition(definition)
        else:
            result = await service.generate_from_requirement(requirement or "")

    if result.is_err():
        raise GenerationError(result.error)
    return result.unwrap()


def _print_diagram(diagram: ProcessDiagram) -> None:
    table = Table(title=diagram.title or "Process Diagram")
    table.add_column("ID", style="dim")
    table.add_column("Step", style="cyan")
    table.add_column("Outcome")
    table.add_column("Next")
    for node in diagram.nodes:
        targets = [e.target for e in diagram.edges if e.source == node.id]
        table.add_row(node.id, node.label, node.outcome or "", ", ".join(targets))
    console.print(table)


@click.command()
@click.option("-r", "--requirement", default=None, help="Free-text description of the process")
@click.option("-p", "--process", "process_id", default=None, help="Id of an existing org process")
@click.option("--seed", is_flag=True, help="Emit the starter lead-qualification diagram")
@click.option("-o", "--output", default=None, type=click.Path(dir_okay=False), help="Write the diagram JSON here")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def diagram(
    ctx: click.Context,
    requirement: Optional[str],
    process_id: Optional[str],
    seed: bool,
    output: Optional[str],
    as_json: bool,
) -> None:
    """Generate a process diagram."""
    settings = get_context(ctx).settings
    renderer = JsonRenderer("diagram")

    error_to_report = None
    result = None
    with output_context(renderer, as_json):
        try:
            if sum(bool(x) for x in (requirement, process_id, seed)) != 1:
                raise ValueError("Use exactly one of --requirement, --process or --seed")
            result = seed_diagram() if seed else run_async(_generate(settings, requirement, process_id))
            if output:
                save_json(output, result.model_dump(mode="json"))
        except Exception as e:
            error_to_report = e

    if as_json:
        finish_json(renderer, error_to_report, result)
        return
    if error_to_report:
        fail(error_to_report)

    _print_diagram(result)
    if output:
        echo_success(f"Diagram written to {output}")


@click.command()
@click.argument("diagram_file", type=click.Path(dir_okay=False))
@click.argument("start_id", required=False)
@click.option("--clear", is_flag=True, help="Reset every node to no impact")
@click.option("-o", "--output", default=None, type=click.Path(dir_okay=False), help="Write the annotated diagram here")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def impact(diagram_file: str, start_id: Optional[str], clear: bool, output: Optional[str], as_json: bool) -> None:
    """Show which steps are downstream of START_ID."""
    renderer = JsonRenderer("impact")

    error_to_report = None
    response = None
    with output_context(renderer, as_json):
        try:
            loaded = load_diagram(diagram_file)
            if loaded is None:
                raise ValueError(f"Could not load diagram: {diagram_file}")
            if not clear and not start_id:
                raise ValueError("Provide START_ID or --clear")

            analyzer = ImpactAnalyzer(DiagramGraph.from_parts(loaded.nodes, loaded.edges))
            nodes = analyzer.clear() if clear else analyzer.analyze(start_id)
            annotated = loaded.model_copy(update={"nodes": nodes})
            response = ImpactResponse(**analyzer.summary(), diagram=annotated)
            if output:
                save_json(output, annotated.model_dump(mode="json"))
        except Exception as e:
            error_to_report = e

    if as_json:
        finish_json(renderer, error_to_report, response)
        return
    if error_to_report:
        fail(error_to_report)

    table = Table(title=f"Impact of {response.source_node}" if response.source_node else "Impact cleared")
    table.add_column("ID", style="dim")
    table.add_column("Step")
    table.add_column("Impact")
    for node in response.diagram.nodes:
        style = _IMPACT_STYLES.get(node.impact_level, "")
        table.add_row(node.id, node.label, f"[{style}]{node.impact_level.value}[/{style}]" if style else node.impact_level.value)
    console.print(table)
    console.print(f"[dim]{response.total_impacted_count} downstream step(s)[/dim]")
