"""Shared fixtures for unit tests."""

import pytest

from orgpilot.core.types import ChildRelationship, SObject
from orgpilot.services.base import EntityDescription

from .fakes import FakeOrg, make_field


@pytest.fixture
def fake_org():
    return FakeOrg()


@pytest.fixture
def account_org(fake_org):
    """Org with an Account that has fields, three child relationships and one record."""
    fake_org.add_entity(
        SObject(api_name="Account", label="Account", key_prefix="001"),
        EntityDescription(
            fields=[
                make_field("Website", "Website"),
                make_field("Id", "Account ID", type="id"),
                make_field("Name", "Account Name"),
                make_field("OwnerId", "Owner", type="reference", reference_to=["User"]),
                make_field("Industry", "Industry"),
            ],
            child_relationships=[
                ChildRelationship(child_sobject="Contact", field="AccountId", relationship_name="Contacts"),
                ChildRelationship(child_sobject="Opportunity", field="AccountId", relationship_name="Opportunities"),
                ChildRelationship(child_sobject="AccountHistory", field="AccountId", relationship_name=None),
            ],
        ),
    )
    fake_org.add_entity(SObject(api_name="Custom__c", label="Custom", is_custom=True, key_prefix="a00"))
    fake_org.counts["Account"] = 42
    fake_org.records["Account/001A"] = {
        "attributes": {"type": "Account", "url": "/services/data/v60.0/sobjects/Account/001A"},
        "Id": "001A",
        "Name": "Acme",
        "Website": None,
        "Industry": "",
    }
    return fake_org
