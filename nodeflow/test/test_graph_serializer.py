import json

import pytest

from nodeflow.core.Actions import AddConnection, AddNode, SetPortData
from nodeflow.core.Errors import UnknownNodeTypeError
from nodeflow.core.CycleDetector import is_acyclic
from nodeflow.core.GraphPrimitives import Edge, PortRef, iter_edges
from nodeflow.core.Types import CircularBehavior, DiagnosticKind
from nodeflow.serializers.graph_serializer import (
    SchemaError,
    deserialize_graph,
    dumps,
    load,
    loads,
    sanitize_graph,
    serialize_graph,
)

from graph_helpers import assert_graph_invariants, edges, make_config, make_reducer


def wire_node(node_id, node_type, inputs=None, outputs=None, **extra):
    """Build one node of the wire shape; ports map to lists of (node id, port) pairs."""
    def refs(ports):
        return {port: [{"nodeId": n, "portName": p} for n, p in pairs] for port, pairs in (ports or {}).items()}

    data = {"id": node_id, "type": node_type, "x": 0, "y": 0, "inputData": {},
            "connections": {"inputs": refs(inputs), "outputs": refs(outputs)}}
    data.update(extra)
    return data


def snapshot(*nodes):
    return {node["id"]: node for node in nodes}


@pytest.fixture
def sample_graph():
    reducer = make_reducer()
    return reducer.apply_all({}, [
        AddNode("Number", x=10, y=20),
        AddNode("Add", x=200, y=40),
        AddNode("Display", x=400, y=40),
        AddConnection("n1", "value", "n2", "a"),
        AddConnection("n2", "sum", "n3", "value"),
        SetPortData("n2", "b", 7),
    ]).state


class TestSerialize:

    def test_wire_shape(self, sample_graph):
        data = serialize_graph(sample_graph)

        assert data["n2"] == {
            "id": "n2",
            "type": "Add",
            "x": 200,
            "y": 40,
            "inputData": {"a": 0, "b": 7},
            "connections": {
                "inputs": {"a": [{"nodeId": "n1", "portName": "value"}]},
                "outputs": {"sum": [{"nodeId": "n3", "portName": "value"}]},
            },
        }
        assert data["n3"]["width"] == 160
        assert "width" not in data["n1"]

    def test_round_trip_is_identical(self, sample_graph):
        assert deserialize_graph(serialize_graph(sample_graph)) == sample_graph
        assert loads(dumps(sample_graph)) == sample_graph

    def test_load_from_file(self, sample_graph, tmp_path):
        path = tmp_path / "graph.json"
        path.write_text(dumps(sample_graph, indent=2), encoding="utf-8")
        assert load(path) == sample_graph
        assert load(str(path)) == sample_graph

    def test_output_is_json_safe(self, sample_graph):
        assert json.loads(json.dumps(serialize_graph(sample_graph))) == serialize_graph(sample_graph)


class TestDeserializeErrors:

    @pytest.mark.parametrize("data", [
        [],
        {"n1": "Number"},
        {"n1": {"x": 0}},
        {"n1": {"type": 3}},
        {"n1": {"type": "Number", "x": "left"}},
        {"n1": {"type": "Number", "y": True}},
        {"n1": {"type": "Number", "id": "n2"}},
        {"n1": {"type": "Number", "inputData": []}},
        {"n1": {"type": "Number", "connections": {"outputs": {"value": "n2"}}}},
        {"n1": {"type": "Number", "connections": {"outputs": {"value": [{"nodeId": "n2"}]}}}},
    ])
    def test_structural_violations(self, data):
        with pytest.raises(SchemaError):
            deserialize_graph(data)

    def test_missing_optional_fields_default(self):
        graph = deserialize_graph({"n1": {"type": "Number"}})
        node = graph["n1"]
        assert (node.x, node.y, node.width) == (0, 0, None)
        assert node.input_data == {}
        assert node.connections == {"inputs": {}, "outputs": {}}


class TestSanitize:

    def test_valid_graph_is_returned_untouched(self, sample_graph):
        repaired, diagnostics = sanitize_graph(sample_graph, make_config())
        assert repaired is sample_graph
        assert diagnostics == []

    def test_unknown_node_type_raises(self):
        graph = deserialize_graph(snapshot(wire_node("n1", "Teleporter")))
        with pytest.raises(UnknownNodeTypeError):
            sanitize_graph(graph, make_config())

    def test_one_sided_connection_is_dropped(self):
        graph = deserialize_graph(snapshot(
            wire_node("n1", "Number", outputs={"value": [("n2", "a")]}),
            wire_node("n2", "Add"),
        ))
        repaired, diagnostics = sanitize_graph(graph, make_config())

        assert [d.kind for d in diagnostics] == [DiagnosticKind.NOT_FOUND]
        assert repaired["n1"].connections == {"inputs": {}, "outputs": {}}

    def test_dangling_reference_is_dropped(self):
        graph = deserialize_graph(snapshot(
            wire_node("n1", "Number", outputs={"value": [("ghost", "a")]}),
        ))
        repaired, diagnostics = sanitize_graph(graph, make_config())

        assert [d.kind for d in diagnostics] == [DiagnosticKind.NOT_FOUND]
        assert edges(repaired) == []

    def test_unknown_port_is_dropped(self):
        graph = deserialize_graph(snapshot(
            wire_node("n1", "Number", outputs={"value": [("n2", "c")]}),
            wire_node("n2", "Add", inputs={"c": [("n1", "value")]}),
        ))
        repaired, diagnostics = sanitize_graph(graph, make_config())

        assert [d.kind for d in diagnostics] == [DiagnosticKind.NOT_FOUND]
        assert repaired["n2"].connections["inputs"] == {}

    def test_incompatible_connection_is_pruned(self):
        graph = deserialize_graph(snapshot(
            wire_node("n1", "Text", outputs={"value": [("n2", "a")]}),
            wire_node("n2", "Add", inputs={"a": [("n1", "value")]}),
        ))
        repaired, diagnostics = sanitize_graph(graph, make_config())

        assert [d.kind for d in diagnostics] == [DiagnosticKind.CONNECTION_PRUNED]
        assert edges(repaired) == []

    def test_overfull_single_input_keeps_first(self):
        graph = deserialize_graph(snapshot(
            wire_node("n1", "Number", outputs={"value": [("n3", "a")]}),
            wire_node("n2", "Number", outputs={"value": [("n3", "a")]}),
            wire_node("n3", "Add", inputs={"a": [("n1", "value"), ("n2", "value")]}),
        ))
        repaired, diagnostics = sanitize_graph(graph, make_config())

        assert [d.kind for d in diagnostics] == [DiagnosticKind.CONNECTION_PRUNED]
        assert edges(repaired) == [Edge("n1", "value", "n3", "a")]
        assert_graph_invariants(repaired, make_reducer())

    def test_cycle_is_broken_under_forbid(self):
        graph = deserialize_graph(snapshot(
            wire_node("n1", "Add", inputs={"a": [("n2", "sum")]}, outputs={"sum": [("n2", "a")]}),
            wire_node("n2", "Add", inputs={"a": [("n1", "sum")]}, outputs={"sum": [("n1", "a")]}),
        ))
        repaired, diagnostics = sanitize_graph(graph, make_config())

        assert [d.kind for d in diagnostics] == [DiagnosticKind.CYCLE_REJECTED]
        assert edges(repaired) == [Edge("n1", "sum", "n2", "a")]

    @pytest.mark.parametrize("behavior", [CircularBehavior.WARN, CircularBehavior.ALLOW])
    def test_cycle_is_kept_otherwise(self, behavior):
        graph = deserialize_graph(snapshot(
            wire_node("n1", "Add", inputs={"a": [("n1", "sum")]}, outputs={"sum": [("n1", "a")]}),
        ))
        repaired, diagnostics = sanitize_graph(graph, make_config(behavior))

        assert [d.kind for d in diagnostics] == [DiagnosticKind.CYCLE_WARNING]
        assert edges(repaired) == [Edge("n1", "sum", "n1", "a")]

    def test_parallel_closing_edges_are_all_removed(self):
        """Both links from n2.sum back into n1 close the same loop"""
        graph = deserialize_graph(snapshot(
            wire_node("n1", "Add", inputs={"a": [("n2", "sum")], "b": [("n2", "sum")]},
                      outputs={"sum": [("n2", "a")]}),
            wire_node("n2", "Add", inputs={"a": [("n1", "sum")]},
                      outputs={"sum": [("n1", "a"), ("n1", "b")]}),
        ))
        repaired, diagnostics = sanitize_graph(graph, make_config())

        assert [d.kind for d in diagnostics] == [DiagnosticKind.CYCLE_REJECTED] * 2
        assert edges(repaired) == [Edge("n1", "sum", "n2", "a")]
        assert is_acyclic(repaired)
        assert_graph_invariants(repaired, make_reducer())

    def test_repeated_entry_on_single_input_keeps_one_connection(self):
        graph = deserialize_graph(snapshot(
            wire_node("n1", "Number", outputs={"value": [("n2", "a"), ("n2", "a")]}),
            wire_node("n2", "Add", inputs={"a": [("n1", "value"), ("n1", "value")]}),
        ))
        repaired, diagnostics = sanitize_graph(graph, make_config())

        assert [d.kind for d in diagnostics] == [DiagnosticKind.CONNECTION_PRUNED]
        assert diagnostics[0].edge == Edge("n1", "value", "n2", "a")
        assert list(iter_edges(repaired)) == [Edge("n1", "value", "n2", "a")]
        assert_graph_invariants(repaired, make_reducer())

    def test_repeated_entry_on_multi_input_is_collapsed(self):
        graph = deserialize_graph(snapshot(
            wire_node("n1", "Text", outputs={"value": [("n2", "messages"), ("n2", "messages")]}),
            wire_node("n2", "Log", inputs={"messages": [("n1", "value")]}),
        ))
        repaired, diagnostics = sanitize_graph(graph, make_config())

        assert [d.kind for d in diagnostics] == [DiagnosticKind.CONNECTION_PRUNED]
        assert list(iter_edges(repaired)) == [Edge("n1", "value", "n2", "messages")]
        assert repaired["n2"].connections["inputs"]["messages"] == [PortRef("n1", "value")]

    def test_input_graph_is_not_modified(self):
        data = snapshot(
            wire_node("n1", "Text", outputs={"value": [("n2", "a")]}),
            wire_node("n2", "Add", inputs={"a": [("n1", "value")]}),
        )
        graph = deserialize_graph(data)
        sanitize_graph(graph, make_config())
        assert serialize_graph(graph) == data
