"""
Deps Command - Show the outgoing reference graph of an object.

Usage:
    orgpilot deps Opportunity
    orgpilot deps Opportunity --json
"""

from typing import Any, Dict

import click
from rich.tree import Tree

from ...config import DEPENDENCY_LAYOUT, Settings
from ...core.metadata import MetadataRepository
from ...graph.builder import build_dependency_graph
from ...graph.layout import layout_graph
from ..renderers import JsonRenderer
from ..utils import console, create_client, fail, finish_json, get_context, output_context, run_async


async def _dependency_graph(settings: Settings, name: str) -> Dict[str, Any]:
    async with create_client(settings) as client:
        entity = await MetadataRepository(client, client).describe(name)

    graph = layout_graph(build_dependency_graph(entity), DEPENDENCY_LAYOUT)
    return {"root": entity.api_name, "label": entity.label, **graph.to_dict()}


@click.command()
@click.argument("name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def deps(ctx: click.Context, name: str, as_json: bool) -> None:
    """Show which objects NAME references."""
    settings = get_context(ctx).settings
    renderer = JsonRenderer("deps")

    error_to_report = None
    data = None
    with output_context(renderer, as_json):
        try:
            data = run_async(_dependency_graph(settings, name))
        except Exception as e:
            error_to_report = e

    if as_json:
        finish_json(renderer, error_to_report, data)
        return
    if error_to_report:
        fail(error_to_report)

    tree = Tree(f"📦 [bold]{data['label']}[/bold] ({data['root']})")
    if not data["edges"]:
        tree.add("[dim]No reference fields[/dim]")
    for edge in data["edges"]:
        tree.add(f"[cyan]{edge['target']}[/cyan] [dim]via {edge['label']}[/dim]")
    console.print(tree)
