import pytest

from stepflow.contracts import NodeDefinition, NodeRole
from stepflow.errors import (
    CycleError,
    DanglingReferenceError,
    GraphError,
    NoEntryPointError,
)
from stepflow.graph import GraphModel, link_sequential
from tests.fixtures.graphs import action, trigger


def test_build_linear_chain_topological_order():
    graph = GraphModel.build(
        [action("C", ["B"]), trigger("T"), action("A", ["T"]), action("B", ["A"])]
    )
    assert graph.topological_order() == ["T", "A", "B", "C"]
    assert [n.id for n in graph.entry_points()] == ["T"]


def test_build_detects_cycle():
    with pytest.raises(CycleError) as exc:
        GraphModel.build([trigger("T"), action("A", ["T", "B"]), action("B", ["A"])])
    assert set(exc.value.path) == {"A", "B"}
    assert exc.value.path[0] == exc.value.path[-1]


def test_build_detects_self_dependency():
    with pytest.raises(CycleError):
        GraphModel.build([trigger("T"), action("A", ["A"])])


def test_build_rejects_dangling_reference():
    with pytest.raises(DanglingReferenceError) as exc:
        GraphModel.build([trigger("T"), action("A", ["missing"])])
    assert exc.value.node_id == "A"
    assert exc.value.missing == "missing"


def test_build_rejects_duplicate_ids():
    with pytest.raises(GraphError):
        GraphModel.build([trigger("T"), action("T", [])])


def test_entry_points_require_trigger():
    graph = GraphModel.build([action("A", [])])
    with pytest.raises(NoEntryPointError):
        graph.entry_points()


def test_multiple_entry_points():
    graph = GraphModel.build([trigger("T1"), trigger("T2"), action("A", ["T1", "T2"])])
    assert [n.id for n in graph.entry_points()] == ["T1", "T2"]


def test_ready_nodes_waits_for_join():
    graph = GraphModel.build(
        [trigger("T"), action("A", ["T"]), action("B", ["T"]), action("C", ["A", "B"])]
    )
    assert [n.id for n in graph.ready_nodes(set())] == ["T"]
    assert [n.id for n in graph.ready_nodes({"T"})] == ["A", "B"]
    assert [n.id for n in graph.ready_nodes({"T", "A"})] == ["B"]
    assert [n.id for n in graph.ready_nodes({"T", "A", "B"})] == ["C"]
    assert graph.ready_nodes({"T", "A", "B", "C"}) == []


def test_ready_nodes_excludes_settled_and_orphans():
    graph = GraphModel.build(
        [trigger("T"), action("A", ["T"]), action("B", ["T"]), action("orphan", [])]
    )
    assert [n.id for n in graph.ready_nodes({"T"}, settled={"A"})] == ["B"]


def test_descendants_and_ancestors():
    graph = GraphModel.build(
        [
            trigger("T"),
            action("A", ["T"]),
            action("B", ["A"]),
            action("C", ["T"]),
            action("D", ["B", "C"]),
        ]
    )
    assert graph.descendants("A") == {"B", "D"}
    assert graph.ancestors("D") == {"T", "A", "B", "C"}
    assert graph.ancestors("T") == set()


def test_link_sequential_chains_nodes_without_dependencies():
    nodes = link_sequential([trigger("T"), action("A", []), action("B", []), action("C", ["T"])])
    assert [n.depends_on for n in nodes] == [[], ["T"], ["A"], ["T"]]


def test_node_definition_accepts_editor_payload():
    node = NodeDefinition.model_validate(
        {
            "id": "n1",
            "type": "TRIGGER",
            "connectorType": "gmail-new-email",
            "config": {"senderFilter": "boss@co"},
            "positionX": 120,
            "positionY": 40,
        }
    )
    assert node.role == NodeRole.TRIGGER
    assert node.connector_type == "gmail-new-email"
    assert node.depends_on == []
    assert node.is_entry_point
    dumped = node.model_dump(by_alias=True)
    assert dumped["positionX"] == 120
    assert dumped["dependsOn"] == []
