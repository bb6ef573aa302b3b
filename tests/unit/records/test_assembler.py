"""Unit tests for the Record Assembler and the staged record view."""

import asyncio

import pytest

from orgpilot.config import DEFAULT_LAYOUT_ID, MAX_RELATED_LISTS, MAX_RELATED_ROWS
from orgpilot.core.exceptions import QueryError, TransportError
from orgpilot.core.metadata import MetadataRepository
from orgpilot.core.state import CellStatus
from orgpilot.core.types import QueryResult, SObject
from orgpilot.records.assembler import (
    RecordAssembler,
    RecordDetailSession,
    build_related_query,
    merge_related_rows,
    render_related_lists,
)
from orgpilot.services.base import EntityDescription

from ..fakes import make_relationships


def _assembler(org):
    return RecordAssembler(MetadataRepository(org, org), org, org)


def _child_rows(n):
    return [{"attributes": {"type": "Contact"}, "Id": f"003{i}", "Name": f"C{i}"} for i in range(n)]


class TestBuildRelatedQuery:
    def test_single_query_with_capped_subselects(self):
        query = build_related_query("Account", "001A", make_relationships(14))

        assert query.startswith("SELECT Id, (SELECT Id, Name, CreatedDate FROM Rel0 LIMIT 5)")
        assert query.endswith("FROM Account WHERE Id = '001A'")
        assert query.count("(SELECT") == MAX_RELATED_LISTS
        assert "Rel10" not in query

    def test_unnamed_relationships_are_skipped(self, account_org):
        rels = account_org.descriptions["Account"].child_relationships
        query = build_related_query("Account", "001A", rels)

        assert query.count("(SELECT") == 2
        assert "AccountHistory" not in query

    def test_nothing_to_query(self):
        assert build_related_query("Account", "001A", []) is None

    def test_record_id_is_quoted(self):
        query = build_related_query("Account", "x' OR Id != '", make_relationships(1))
        assert query.endswith("WHERE Id = 'x\\' OR Id != \\''")


class TestMergeRelatedRows:
    def test_empty_relationships_are_omitted(self):
        rels = make_relationships(3)
        row = {
            "Id": "001A",
            "Rel0": {"totalSize": 2, "done": True, "records": _child_rows(2)},
            "Rel1": None,
            "Rel2": {"totalSize": 0, "done": True, "records": []},
        }
        related = merge_related_rows(row, rels)

        assert list(related) == ["Rel0"]
        assert len(related["Rel0"]) == 2

    def test_rows_are_capped(self):
        row = {"Rel0": {"records": _child_rows(8)}}
        assert len(merge_related_rows(row, make_relationships(1))["Rel0"]) == MAX_RELATED_ROWS


class TestLoadRecord:
    async def test_scalar_and_related_are_merged(self, account_org):
        account_org.query_handler = lambda q: QueryResult(
            total_size=1,
            records=[{"Id": "001A", "Contacts": {"records": _child_rows(3)}, "Opportunities": None}],
        )
        bundle = await _assembler(account_org).load_record("Account", "001A")

        assert bundle.record["Name"] == "Acme"
        assert list(bundle.related_data) == ["Contacts"]
        assert bundle.entity.record_count == 42

    async def test_related_failure_keeps_scalar(self, account_org):
        account_org.related_error = QueryError("INVALID_TYPE: sObject type not supported")
        bundle = await _assembler(account_org).load_record("Account", "001A")

        assert bundle.record["Id"] == "001A"
        assert bundle.related_data == {}

    async def test_many_relationships_are_capped(self, fake_org):
        fake_org.add_entity(
            SObject(api_name="Parent", label="Parent"),
            EntityDescription(child_relationships=make_relationships(25)),
        )
        fake_org.records["Parent/1"] = {"Id": "1"}
        fake_org.query_handler = lambda q: QueryResult(
            records=[{f"Rel{i}": {"records": _child_rows(9)} for i in range(25)}]
        )
        bundle = await _assembler(fake_org).load_record("Parent", "1")

        assert len(bundle.related_data) == MAX_RELATED_LISTS
        assert all(len(rows) <= MAX_RELATED_ROWS for rows in bundle.related_data.values())

    async def test_scalar_failure_propagates(self, account_org):
        with pytest.raises(TransportError):
            await _assembler(account_org).load_record("Account", "missing")

    async def test_describe_failure_still_returns_record(self, account_org):
        account_org.describe_error = TransportError("describe down", status_code=503)
        bundle = await _assembler(account_org).load_record("Account", "001A")

        assert bundle.entity is None
        assert bundle.related_data == {}
        assert bundle.record["Name"] == "Acme"

    async def test_unexpected_describe_error_still_returns_record(self, account_org):
        account_org.describe_error = ValueError("unreadable describe body")
        bundle = await _assembler(account_org).load_record("Account", "001A")

        assert bundle.entity is None
        assert bundle.record["Name"] == "Acme"

    async def test_count_failure_keeps_metadata(self, account_org):
        account_org.count_error = RuntimeError("count endpoint returned garbage")
        bundle = await _assembler(account_org).load_record("Account", "001A")

        assert bundle.entity.record_count == 0
        assert bundle.record["Name"] == "Acme"


class TestRenderRelatedLists:
    def test_missing_key_renders_empty(self, account_org):
        entity = SObject(
            api_name="Account",
            label="Account",
            child_relationships=account_org.descriptions["Account"].child_relationships,
        )
        lists = render_related_lists(entity, {"Contacts": _child_rows(1)})

        assert [(r.relationship_name, r.child_entity) for r in lists] == [
            ("Contacts", "Contact"),
            ("Opportunities", "Opportunity"),
        ]
        assert lists[0].columns == ["Id", "Name"]
        assert lists[1].is_empty


class TestRecordDetailSession:
    async def test_stages_resolve_independently(self, account_org):
        account_org.layout_error = TransportError("layouts down")
        session = RecordDetailSession(_assembler(account_org), account_org)
        await session.open("Account", "001A")

        assert session.scalar.status == CellStatus.READY
        assert session.related.value == {}
        assert session.layouts.value.active.id == DEFAULT_LAYOUT_ID

    async def test_scalar_ready_before_secondary_cells(self, account_org):
        seen = []
        session = RecordDetailSession(_assembler(account_org), account_org)
        session.scalar.subscribe(lambda cell: seen.append(("scalar", cell.status)))
        session.layouts.subscribe(lambda cell: seen.append(("layouts", cell.status)))
        await session.open("Account", "001A")

        ready = [name for name, status in seen if status == CellStatus.READY]
        assert ready == ["scalar", "layouts"]

    async def test_render_uses_active_layout(self, account_org):
        session = RecordDetailSession(_assembler(account_org), account_org)
        await session.open("Account", "001A")
        sections = session.render()

        first_row = sections[0].rows[0].cells
        assert [c.api_name for c in first_row] == ["Name", "Id"]
        assert first_row[0].display == "Acme"

    async def test_describe_failure_builds_layout_from_record_keys(self, account_org):
        account_org.describe_error = TransportError("describe down")
        session = RecordDetailSession(_assembler(account_org), account_org)
        await session.open("Account", "001A")

        fields = [c.api_name for s in session.render() for r in s.rows for c in r.cells]
        assert fields == ["Name", "Id", "Industry", "Website"]

    async def test_scalar_failure_fails_every_cell(self, account_org):
        session = RecordDetailSession(_assembler(account_org), account_org)
        with pytest.raises(TransportError):
            await session.open("Account", "missing")

        assert session.scalar.status == CellStatus.FAILED
        assert session.layouts.status == CellStatus.FAILED

    async def test_late_response_for_previous_record_is_dropped(self, account_org):
        account_org.records["Account/001B"] = {"Id": "001B", "Name": "Globex"}
        started, release = asyncio.Event(), asyncio.Event()
        fetch = account_org.fetch_by_id

        async def slow_first(entity_name, record_id):
            if record_id == "001A":
                started.set()
                await release.wait()
            return await fetch(entity_name, record_id)

        account_org.fetch_by_id = slow_first
        session = RecordDetailSession(_assembler(account_org), account_org)

        first = asyncio.create_task(session.open("Account", "001A"))
        await started.wait()
        await session.open("Account", "001B")
        release.set()
        await first

        assert session.scalar.value["Name"] == "Globex"
        assert session.layouts.token == session.tracker.current(RecordDetailSession.REQUEST_KEY)
