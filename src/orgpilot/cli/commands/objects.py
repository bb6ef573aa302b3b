"""
Objects Commands - Browse the entity catalogue and describe entities.

Usage:
    orgpilot objects --search acc
    orgpilot describe Account
"""

from typing import List, Optional

import click
from pydantic import BaseModel
from rich.table import Table

from ...config import Settings
from ...core.metadata import MetadataRepository
from ...core.types import SField, SObject
from ..renderers import JsonRenderer
from ..utils import console, create_client, fail, finish_json, get_context, output_context, run_async


# --- API Models ---
class EntitySummary(BaseModel):
    api_name: str
    label: str
    is_custom: bool
    key_prefix: Optional[str] = None


class ObjectsResponse(BaseModel):
    total: int
    standard: List[EntitySummary]
    custom: List[EntitySummary]


class DescribeResponse(BaseModel):
    api_name: str
    label: str
    record_count: int
    child_relationship_count: int
    fields: List[SField]


def _summary(entity: SObject) -> EntitySummary:
    return EntitySummary(
        api_name=entity.api_name,
        label=entity.label,
        is_custom=entity.is_custom,
        key_prefix=entity.key_prefix,
    )


async def _list_entities(settings: Settings, search: Optional[str], custom_only: bool) -> ObjectsResponse:
    async with create_client(settings) as client:
        repo = MetadataRepository(client, client)
        await repo.load_entities()

    standard, custom = repo.partition()
    if search:
        matches = {e.api_name for e in repo.search(search)}
        standard = [e for e in standard if e.api_name in matches]
        custom = [e for e in custom if e.api_name in matches]
    if custom_only:
        standard = []

    return ObjectsResponse(
        total=len(standard) + len(custom),
        standard=[_summary(e) for e in standard],
        custom=[_summary(e) for e in custom],
    )


async def _describe(settings: Settings, name: str) -> DescribeResponse:
    async with create_client(settings) as client:
        entity = await MetadataRepository(client, client).describe(name)

    return DescribeResponse(
        api_name=entity.api_name,
        label=entity.label,
        record_count=entity.record_count,
        child_relationship_count=len(entity.child_relationships),
        fields=entity.fields,
    )


@click.command()
@click.option("-s", "--search", default=None, help="Filter by label or API name")
@click.option("--custom-only", is_flag=True, help="Only list custom objects")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def objects(ctx: click.Context, search: Optional[str], custom_only: bool, as_json: bool) -> None:
    """List the objects available in the org."""
    settings = get_context(ctx).settings
    renderer = JsonRenderer("objects")

    error_to_report = None
    response = None
    with output_context(renderer, as_json):
        try:
            response = run_async(_list_entities(settings, search, custom_only))
        except Exception as e:
            error_to_report = e

    if as_json:
        finish_json(renderer, error_to_report, response)
        return
    if error_to_report:
        fail(error_to_report)

    table = Table(title=f"Objects ({response.total})")
    table.add_column("API Name", style="cyan")
    table.add_column("Label")
    table.add_column("Custom")
    table.add_column("Key Prefix", style="dim")
    for entity in response.standard + response.custom:
        table.add_row(entity.api_name, entity.label, "yes" if entity.is_custom else "", entity.key_prefix or "")
    console.print(table)


@click.command()
@click.argument("name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def describe(ctx: click.Context, name: str, as_json: bool) -> None:
    """Show the fields of an object."""
    settings = get_context(ctx).settings
    renderer = JsonRenderer("describe")

    error_to_report = None
    response = None
    with output_context(renderer, as_json):
        try:
            response = run_async(_describe(settings, name))
        except Exception as e:
            error_to_report = e

    if as_json:
        finish_json(renderer, error_to_report, response)
        return
    if error_to_report:
        fail(error_to_report)

    console.print(f"[bold]{response.label}[/bold] ({response.api_name}) - {response.record_count} records")
    table = Table()
    table.add_column("API Name", style="cyan")
    table.add_column("Label")
    table.add_column("Type")
    table.add_column("References", style="dim")
    for f in response.fields:
        table.add_row(f.api_name, f.label, f.type, ", ".join(f.reference_to))
    console.print(table)
