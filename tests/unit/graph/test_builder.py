"""Unit tests for the graph builder."""

from orgpilot.config import MAX_DEPENDENCY_EDGES
from orgpilot.core.types import NodeKind, SObject
from orgpilot.graph.builder import (
    DEFAULT_ACTIVITY_LABEL,
    DEFAULT_OUTCOME,
    EMPTY_GENERATION_MESSAGE,
    build_dependency_graph,
    build_process_diagram,
    build_process_graph,
    normalize_edge,
    normalize_node,
)

from ..fakes import make_field


def _reference(api_name, *targets):
    return make_field(api_name, f"{api_name} label", type="reference", reference_to=list(targets))


class TestDependencyGraph:
    def test_root_and_targets(self):
        entity = SObject(
            api_name="Contact",
            label="Contact",
            fields=[
                make_field("Name"),
                _reference("AccountId", "Account"),
                _reference("OwnerId", "User", "Group"),
            ],
        )
        graph = build_dependency_graph(entity)

        assert [n.id for n in graph.nodes] == ["Contact", "Account", "User"]
        assert all(n.type == NodeKind.ENTITY for n in graph.nodes)
        assert [(e.id, e.target, e.label) for e in graph.edges] == [
            ("e-AccountId", "Account", "AccountId label"),
            ("e-OwnerId", "User", "OwnerId label"),
        ]

    def test_edges_are_capped(self):
        fields = [_reference(f"Ref{i}__c", f"Target{i}") for i in range(MAX_DEPENDENCY_EDGES + 5)]
        graph = build_dependency_graph(SObject(api_name="Big__c", label="Big", fields=fields))

        assert graph.edge_count == MAX_DEPENDENCY_EDGES
        assert graph.node_count == MAX_DEPENDENCY_EDGES + 1

    def test_shared_target_keeps_both_edges(self):
        entity = SObject(
            api_name="Case",
            label="Case",
            fields=[_reference("CreatedById", "User"), _reference("OwnerId", "User")],
        )
        graph = build_dependency_graph(entity)

        assert graph.node_count == 2
        assert graph.edge_count == 2

    def test_self_reference(self):
        entity = SObject(api_name="Account", label="Account", fields=[_reference("ParentId", "Account")])
        graph = build_dependency_graph(entity)

        assert graph.node_count == 1
        assert graph.edges[0].source == graph.edges[0].target == "Account"

    def test_reference_without_target_is_ignored(self):
        entity = SObject(api_name="X", label="X", fields=[make_field("Broken", type="reference")])
        assert build_dependency_graph(entity).edge_count == 0


class TestNormalize:
    def test_node_defaults(self):
        node = normalize_node({"id": "n1"})

        assert node.label == DEFAULT_ACTIVITY_LABEL
        assert node.outcome == DEFAULT_OUTCOME
        assert node.type == NodeKind.PROCESS

    def test_node_data_fields(self):
        node = normalize_node({
            "id": "n1",
            "type": "Decision",
            "data": {
                "label": "Approve?",
                "outcome": "Approved",
                "resources": [
                    {"resourceId": "res-manager", "rasci": {"r": True, "a": 1}},
                    {"rasci": {"r": True}},
                    "junk",
                ],
            },
        })

        assert node.type == NodeKind.DECISION
        assert node.label == "Approve?"
        assert len(node.resources) == 1
        assert node.resources[0].rasci.a is True
        assert node.resources[0].rasci.c is False

    def test_kind_aliases(self):
        assert normalize_node({"id": "s", "type": "input"}).type == NodeKind.START
        assert normalize_node({"id": "e", "type": "output"}).type == NodeKind.END
        assert normalize_node({"id": "a", "type": "upn-activity"}).type == NodeKind.PROCESS

    def test_node_without_id(self):
        assert normalize_node({"data": {"label": "Orphan"}}) is None

    def test_edge_id_is_synthesized(self):
        edge = normalize_edge({"source": "a", "target": "b", "label": "yes"})
        assert edge.id == "e-a-b"
        assert edge.label == "yes"

    def test_edge_without_endpoint(self):
        assert normalize_edge({"source": "a"}) is None


class TestProcessGraph:
    def test_empty_payloads_are_soft_failures(self):
        for raw in (None, [], {}, {"nodes": []}, {"nodes": "bad"}):
            result = build_process_graph(raw)
            assert result.is_err()
            assert result.error == EMPTY_GENERATION_MESSAGE

    def test_dangling_and_malformed_edges_dropped(self):
        raw = {
            "nodes": [{"id": "a"}, {"id": "b"}, {"id": "a"}, "junk"],
            "edges": [
                {"source": "a", "target": "b"},
                {"source": "a", "target": "ghost"},
                {"target": "b"},
            ],
        }
        graph = build_process_graph(raw).unwrap()

        assert [n.id for n in graph.nodes] == ["a", "b"]
        assert [e.id for e in graph.edges] == ["e-a-b"]
        assert graph.dropped_edges == 1

    def test_positions_left_at_origin(self):
        graph = build_process_graph({"nodes": [{"id": "a", "position": {"x": 5, "y": 9}}]}).unwrap()
        assert graph.get_node("a").position.x == 0.0

    def test_diagram_keeps_title(self):
        raw = {"title": "Onboarding", "description": "New customers", "nodes": [{"id": "a"}]}
        diagram = build_process_diagram(raw, "d1").unwrap()

        assert (diagram.id, diagram.title, diagram.description) == ("d1", "Onboarding", "New customers")
