"""
orgpilot - CRM metadata exploration console.

orgpilot reads an org's object metadata and turns it into something a person
can look at: records rendered through their page layouts (or a synthesized
default when the org has none), reference graphs between objects, and
process diagrams with downstream impact highlighting.

Key Components:
- core: Data types, metadata cache, graph structure
- records: Layout resolution and record assembly
- graph: Graph building, layered layout, process diagrams
- analysis: Impact propagation
- services: REST and generator clients

Usage:
    from orgpilot.core.metadata import MetadataRepository
    from orgpilot.services.rest import CrmRestClient

    async with CrmRestClient(instance_url, token) as client:
        account = await MetadataRepository(client, client).describe("Account")
"""

__version__ = "0.1.0"

from .core.types import (
    GraphEdge,
    GraphNode,
    ImpactLevel,
    NodeKind,
    PageLayout,
    SField,
    SObject,
)

__all__ = [
    "__version__",
    "GraphEdge",
    "GraphNode",
    "ImpactLevel",
    "NodeKind",
    "PageLayout",
    "SField",
    "SObject",
]
