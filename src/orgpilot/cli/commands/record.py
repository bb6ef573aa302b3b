"""
Record Command - Show one record through its page layout.

Usage:
    orgpilot record Account 001xx000003DGb2AAG
    orgpilot record Account 001xx000003DGb2AAG --layout 00hxx0000001
    orgpilot record Account 001xx000003DGb2AAG --summary
"""

from typing import Any, Dict, List, Optional

import click
from pydantic import BaseModel
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from ...config import Settings
from ...core.metadata import MetadataRepository
from ...records.assembler import RecordAssembler, RecordDetailSession, render_related_lists
from ...records.layout import SpacerCell
from ..renderers import JsonRenderer
from ..utils import (
    console,
    create_assistant,
    create_client,
    echo_warning,
    fail,
    finish_json,
    get_context,
    output_context,
    run_async,
)


# --- API Models ---
class LayoutChoice(BaseModel):
    id: str
    name: str


class RecordResponse(BaseModel):
    entity: str
    record_id: str
    active_layout: Optional[str] = None
    synthetic_layout: bool = False
    layouts: List[LayoutChoice]
    sections: List[Dict[str, Any]]
    related: List[Dict[str, Any]]
    summary: Optional[str] = None


def _cells(row) -> List[Optional[Dict[str, Any]]]:
    cells = []
    for cell in row.cells:
        if isinstance(cell, SpacerCell):
            cells.append(None)
        else:
            cells.append({"label": cell.label, "field": cell.api_name, "value": cell.display, "has_value": cell.has_value})
    return cells


async def load_record_view(
    settings: Settings,
    entity_name: str,
    record_id: str,
    layout_id: Optional[str] = None,
    summarize: bool = False,
) -> RecordResponse:
    async with create_client(settings) as client:
        assembler = RecordAssembler(MetadataRepository(client, client), client, client)
        session = RecordDetailSession(assembler, client)
        await session.open(entity_name, record_id)

    selection = session.layouts.value
    if layout_id:
        session.select_layout(layout_id)

    related = []
    if session.entity is not None:
        related = [
            {"relationship": r.relationship_name, "child_entity": r.child_entity, "rows": r.rows}
            for r in render_related_lists(session.entity, session.related.value or {})
        ]

    summary = None
    if summarize:
        summary = await create_assistant(settings).summarize_record(
            entity_name, session.scalar.value, session.related.value or {}
        )

    return RecordResponse(
        entity=entity_name,
        record_id=record_id,
        active_layout=selection.active.name if selection else None,
        synthetic_layout=selection.is_synthetic if selection else False,
        layouts=[LayoutChoice(id=layout.id, name=layout.name) for layout in (selection.layouts if selection else [])],
        sections=[
            {"heading": s.heading, "columns": s.columns, "rows": [_cells(row) for row in s.rows]}
            for s in session.render()
        ],
        related=related,
        summary=summary,
    )


def print_record(response: RecordResponse) -> None:
    console.print(f"[bold]{response.entity}[/bold] {response.record_id} - layout: {response.active_layout}")
    if response.synthetic_layout:
        echo_warning("No page layout available, showing all fields")

    for section in response.sections:
        table = Table(title=section["heading"], show_header=False)
        width = max([section["columns"]] + [len(row) for row in section["rows"]])
        for _ in range(width * 2):
            table.add_column()
        for row in section["rows"]:
            values = []
            for cell in row:
                values.extend(["", ""] if cell is None else [f"[dim]{cell['label']}[/dim]", cell["value"]])
            table.add_row(*values)
        console.print(table)

    for rel in response.related:
        if not rel["rows"]:
            continue
        table = Table(title=f"{rel['relationship']} ({len(rel['rows'])})")
        headers = list(rel["rows"][0].keys())
        for h in headers:
            table.add_column(h)
        for row in rel["rows"]:
            table.add_row(*["..." if isinstance(row.get(h), (dict, list)) else str(row.get(h) or "") for h in headers])
        console.print(table)

    if response.summary:
        console.print(Panel(Markdown(response.summary), title="AI Summary"))


@click.command()
@click.argument("entity_name")
@click.argument("record_id")
@click.option("--layout", "layout_id", default=None, help="Render with this layout id")
@click.option("--summary", "summarize", is_flag=True, help="Add an AI summary of the record and its related lists")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def record(
    ctx: click.Context,
    entity_name: str,
    record_id: str,
    layout_id: Optional[str],
    summarize: bool,
    as_json: bool,
) -> None:
    """Show a record using its page layout and related lists."""
    settings = get_context(ctx).settings
    renderer = JsonRenderer("record")

    error_to_report = None
    response = None
    with output_context(renderer, as_json):
        try:
            response = run_async(load_record_view(settings, entity_name, record_id, layout_id, summarize))
        except Exception as e:
            error_to_report = e

    if as_json:
        finish_json(renderer, error_to_report, response)
        return
    if error_to_report:
        fail(error_to_report)

    print_record(response)
