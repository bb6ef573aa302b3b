"""
Query Commands - Run ad-hoc queries and manage saved queries.

Usage:
    orgpilot query "SELECT Id, Name FROM Account LIMIT 10"
    orgpilot query "SELECT Id FROM Lead" --csv leads.csv --save "All leads"
    orgpilot query "SELECT  FROM Contact LIMIT 5" --fields-at 7
    orgpilot query "SELECT Id, Name FROM Account LIMIT 5" --open 0
    orgpilot saved list
    orgpilot saved delete 1700000000000
"""

from pathlib import Path
from typing import List, Optional, Tuple

import click
from pydantic import BaseModel
from rich.table import Table

from ...config import Settings
from ...core.metadata import MetadataRepository
from ...core.soql import expand_fields, extract_from_entity, infer_record_type, records_to_csv
from ...core.types import QueryResult, Record, SavedQuery, strip_attributes
from ...services.storage import SavedQueryStore
from ..renderers import JsonRenderer
from ..utils import (
    console,
    create_client,
    echo_success,
    fail,
    finish_json,
    get_context,
    output_context,
    run_async,
)
from .record import RecordResponse, load_record_view, print_record


# --- API Models ---
class QueryResponse(BaseModel):
    query: str
    total_size: int
    records: List[Record]
    csv_path: Optional[str] = None
    saved: Optional[SavedQuery] = None
    opened: Optional[RecordResponse] = None


async def _run(settings: Settings, soql: str, cursor: Optional[int]) -> Tuple[str, QueryResult]:
    async with create_client(settings) as client:
        if cursor is not None:
            soql = await _expand(client, soql, cursor)
        return soql, await client.run_query(soql)


async def _expand(client, soql: str, cursor: int) -> str:
    """Insert every field of the query's FROM object at the cursor."""
    entity_name = extract_from_entity(soql)
    if entity_name is None:
        raise ValueError("Query has no FROM object to take fields from")
    entity = await MetadataRepository(client, client).describe(entity_name)
    return expand_fields(soql, cursor, [f.api_name for f in entity.fields])


def _row_target(records: List[Record], soql: str, row: int) -> Tuple[str, str]:
    """Entity name and record id for one result row."""
    if not 0 <= row < len(records):
        raise KeyError(f"No row {row} in the result ({len(records)} rows)")
    entity_name = infer_record_type(records[row], soql)
    if entity_name.is_err():
        raise ValueError(entity_name.error)
    record_id = records[row].get("Id")
    if not record_id:
        raise ValueError("Row has no Id to open")
    return entity_name.unwrap(), str(record_id)


def _records_table(records: List[Record]) -> Table:
    rows = [strip_attributes(r) for r in records]
    headers = list(rows[0].keys()) if rows else []
    table = Table()
    for header in headers:
        table.add_column(header)
    for row in rows:
        table.add_row(*["" if row.get(h) is None else str(row.get(h)) for h in headers])
    return table


@click.command()
@click.argument("soql")
@click.option("--csv", "csv_path", type=click.Path(dir_okay=False), default=None,
              help="Also write the results to a CSV file")
@click.option("--save", "save_name", default=None, help="Save the query under this name")
@click.option("--fields-at", "cursor", type=int, default=None,
              help="Insert every field of the FROM object at this character position first")
@click.option("--open", "open_row", type=int, default=None, help="Open the record in this result row (0-based)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def query(
    ctx: click.Context,
    soql: str,
    csv_path: Optional[str],
    save_name: Optional[str],
    cursor: Optional[int],
    open_row: Optional[int],
    as_json: bool,
) -> None:
    """Run a query against the org."""
    settings = get_context(ctx).settings
    renderer = JsonRenderer("query")

    error_to_report = None
    response = None
    with output_context(renderer, as_json):
        try:
            soql, result = run_async(_run(settings, soql, cursor))
            response = QueryResponse(query=soql, total_size=result.total_size, records=result.records)
            if csv_path and result.records:
                Path(csv_path).write_text(records_to_csv(result.records))
                response.csv_path = csv_path
            if save_name:
                response.saved = SavedQueryStore(settings.saved_queries_path).add(save_name, soql)
            if open_row is not None:
                entity_name, record_id = _row_target(result.records, soql, open_row)
                response.opened = run_async(load_record_view(settings, entity_name, record_id))
        except Exception as e:
            error_to_report = e

    if as_json:
        finish_json(renderer, error_to_report, response)
        return
    if error_to_report:
        fail(error_to_report)

    if cursor is not None:
        console.print(f"[dim]{response.query}[/dim]")
    console.print(_records_table(response.records))
    console.print(f"[dim]{response.total_size} record(s)[/dim]")
    if response.csv_path:
        echo_success(f"Wrote {response.csv_path}")
    if response.saved:
        echo_success(f"Saved query '{response.saved.name}' ({response.saved.id})")
    if response.opened:
        print_record(response.opened)


@click.group()
def saved():
    """Manage saved queries."""
    pass


@saved.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def saved_list(ctx: click.Context, as_json: bool) -> None:
    """List saved queries, newest first."""
    store = SavedQueryStore(get_context(ctx).settings.saved_queries_path)
    queries = store.load()

    if as_json:
        JsonRenderer("saved list").render_success([q.model_dump() for q in queries])
        return

    if not queries:
        console.print("[dim]No saved queries[/dim]")
        return
    table = Table()
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Query")
    for q in queries:
        table.add_row(q.id, q.name, q.query)
    console.print(table)


@saved.command("delete")
@click.argument("query_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def saved_delete(ctx: click.Context, query_id: str, as_json: bool) -> None:
    """Delete a saved query by id."""
    store = SavedQueryStore(get_context(ctx).settings.saved_queries_path)
    renderer = JsonRenderer("saved delete")

    error_to_report = None
    if not store.delete(query_id):
        error_to_report = KeyError(f"No saved query with id {query_id}")

    if as_json:
        finish_json(renderer, error_to_report, {"deleted": query_id})
        return
    if error_to_report:
        fail(error_to_report)
    echo_success(f"Deleted saved query {query_id}")
