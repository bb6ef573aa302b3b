"""Unit tests for the REST client, driven through httpx's mock transport."""

import httpx
import pytest

from orgpilot.core.exceptions import AuthenticationError, DescribeError, QueryError, TransportError
from orgpilot.core.metadata import MetadataRepository
from orgpilot.core.types import ProcessType
from orgpilot.records.assembler import RecordAssembler
from orgpilot.services.rest import CrmRestClient, parse_layout

BASE = "/services/data/v60.0"


def _client(handler):
    return CrmRestClient("https://example.my.salesforce.com/", "token", transport=httpx.MockTransport(handler))


class TestSession:
    def test_missing_session(self):
        with pytest.raises(AuthenticationError):
            CrmRestClient("", "")

    async def test_bearer_header_and_base_url(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["path"] = request.url.path
            return httpx.Response(200, json={"sobjects": []})

        async with _client(handler) as client:
            await client.describe_all_entities()

        assert seen == {"auth": "Bearer token", "path": f"{BASE}/sobjects"}

    async def test_unauthorized(self):
        def handler(request):
            return httpx.Response(401, json=[{"message": "Session expired or invalid", "errorCode": "INVALID_SESSION_ID"}])

        async with _client(handler) as client:
            with pytest.raises(AuthenticationError) as exc_info:
                await client.run_query("SELECT Id FROM Account")
        assert exc_info.value.status_code == 401

    async def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        async with _client(handler) as client:
            with pytest.raises(TransportError):
                await client.fetch_by_id("Account", "001")


class TestDescribe:
    async def test_catalogue(self):
        body = {"sobjects": [
            {"name": "Account", "label": "Account", "custom": False, "keyPrefix": "001"},
            {"name": "Invoice__c", "label": "Invoice", "custom": True, "keyPrefix": "a01"},
        ]}
        async with _client(lambda r: httpx.Response(200, json=body)) as client:
            entities = await client.describe_all_entities()

        assert [(e.api_name, e.is_custom, e.key_prefix) for e in entities] == [
            ("Account", False, "001"),
            ("Invoice__c", True, "a01"),
        ]
        assert all(not e.described for e in entities)

    async def test_entity(self):
        body = {
            "label": "Contact",
            "fields": [
                {"name": "AccountId", "label": "Account ID", "type": "reference", "referenceTo": ["Account"]},
                {"name": "Email", "label": "Email", "type": "email", "inlineHelpText": "Work email"},
            ],
            "childRelationships": [
                {"childSObject": "Case", "field": "ContactId", "relationshipName": "Cases"},
                {"childSObject": "ContactHistory", "field": "ContactId", "relationshipName": None},
            ],
        }
        async with _client(lambda r: httpx.Response(200, json=body)) as client:
            description = await client.describe_entity("Contact")

        assert description.label == "Contact"
        assert description.fields[0].is_reference
        assert description.fields[1].description == "Work email"
        assert description.child_relationships[1].relationship_name is None

    async def test_entity_failure(self):
        def handler(request):
            return httpx.Response(404, json=[{"message": "The requested resource does not exist", "errorCode": "NOT_FOUND"}])

        async with _client(handler) as client:
            with pytest.raises(DescribeError) as exc_info:
                await client.describe_entity("Nope__c")
        assert "The requested resource does not exist" in exc_info.value.message


class TestQuery:
    async def test_records(self):
        seen = {}

        def handler(request):
            seen["q"] = request.url.params["q"]
            return httpx.Response(200, json={
                "totalSize": 1,
                "done": True,
                "records": [{"attributes": {"type": "Account"}, "Id": "001"}],
            })

        async with _client(handler) as client:
            result = await client.run_query("SELECT Id FROM Account")

        assert seen["q"] == "SELECT Id FROM Account"
        assert result.total_size == 1
        assert result.records[0]["Id"] == "001"

    async def test_platform_message_is_kept(self):
        message = "unexpected token: FORM"

        def handler(request):
            return httpx.Response(400, json=[{"message": message, "errorCode": "MALFORMED_QUERY"}])

        async with _client(handler) as client:
            with pytest.raises(QueryError) as exc_info:
                await client.run_query("SELECT Id FORM Account")
        assert exc_info.value.message == message
        assert exc_info.value.query == "SELECT Id FORM Account"


class TestLayouts:
    async def test_layouts_parsed(self):
        body = {"layouts": [{
            "id": "00h1",
            "name": "Account Layout",
            "detailLayoutSections": [{
                "heading": "Account Information",
                "useHeading": True,
                "columns": 2,
                "layoutRows": [{"layoutItems": [
                    {"label": "Account Name", "layoutComponents": [{"type": "Field", "value": "Name"}]},
                    {"label": "", "placeholder": True, "layoutComponents": [{"type": "EmptySpace"}]},
                ]}],
            }],
        }]}
        async with _client(lambda r: httpx.Response(200, json=body)) as client:
            layouts = await client.fetch_layouts("Account")

        items = layouts[0].detail_layout_sections[0].layout_rows[0].layout_items
        assert layouts[0].name == "Account Layout"
        assert items[0].field_component().value == "Name"
        assert items[1].placeholder

    async def test_missing_layouts_key(self):
        async with _client(lambda r: httpx.Response(200, json={})) as client:
            assert await client.fetch_layouts("Account") == []

    def test_layout_without_id(self):
        assert parse_layout({}, 3).id == "layout-3"


class TestProcessDefinitions:
    async def test_failing_sources_are_skipped(self):
        def handler(request):
            q = request.url.params["q"]
            if "LeadStatus" in q:
                return httpx.Response(200, json={"totalSize": 2, "records": [{"MasterLabel": "Open"}, {"MasterLabel": "Closed"}]})
            if "ProcessDefinition" in q:
                return httpx.Response(200, json={"totalSize": 1, "records": [{"Id": "04a1", "Name": "Discounts", "TableEnumOrId": "Opportunity"}]})
            return httpx.Response(400, json=[{"message": "sObject type is not supported"}])

        async with _client(handler) as client:
            definitions = await client.fetch_process_definitions()

        assert [(d.id, d.type) for d in definitions] == [
            ("std-lead", ProcessType.STANDARD),
            ("04a1", ProcessType.APPROVAL),
        ]
        assert definitions[0].steps == ["Open", "Closed"]
        assert definitions[1].description == "Approval process for Opportunity"

    async def test_approval_steps(self):
        def handler(request):
            return httpx.Response(200, json={"records": [{"Name": "Manager"}, {"Name": None}, {"Name": "VP"}]})

        async with _client(handler) as client:
            assert await client.fetch_approval_steps("04a1") == ["Manager", "VP"]

    async def test_approval_process_id_is_quoted(self):
        seen = {}

        def handler(request):
            seen["q"] = request.url.params["q"]
            return httpx.Response(200, json={"records": []})

        async with _client(handler) as client:
            await client.fetch_approval_steps("04a1' OR Name != '")

        assert "ProcessDefinitionId = '04a1\\' OR Name != \\'' " in seen["q"]


class TestUnreadableBodies:
    @staticmethod
    def _gateway_for_queries(request):
        if request.url.path.endswith("/query"):
            return httpx.Response(200, text="<html>gateway</html>")
        if request.url.path.endswith("/describe"):
            return httpx.Response(200, json={"label": "Account", "fields": [{"name": "Id", "type": "id"}]})
        return httpx.Response(200, json={"Id": "001A", "Name": "Acme"})

    async def test_query_body_is_a_transport_error(self):
        async with _client(self._gateway_for_queries) as client:
            with pytest.raises(TransportError) as exc_info:
                await client.run_query("SELECT Id FROM Account")
        assert exc_info.value.status_code == 200

    async def test_count_failure_does_not_fail_describe(self):
        async with _client(self._gateway_for_queries) as client:
            account = await MetadataRepository(client, client).describe("Account")

        assert account.described
        assert account.record_count == 0
        assert [f.api_name for f in account.fields] == ["Id"]

    async def test_record_still_loads(self):
        async with _client(self._gateway_for_queries) as client:
            assembler = RecordAssembler(MetadataRepository(client, client), client, client)
            bundle = await assembler.load_record("Account", "001A")

        assert bundle.record == {"Id": "001A", "Name": "Acme"}
        assert bundle.entity.record_count == 0
        assert bundle.related_data == {}

    async def test_record_body(self):
        async with _client(lambda r: httpx.Response(200, text="not json")) as client:
            with pytest.raises(TransportError):
                await client.fetch_by_id("Account", "001A")
