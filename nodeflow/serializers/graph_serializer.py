"""
Graph serializer: converts graph snapshots to and from the JSON-safe wire
shape that hosts persist and diff.

Wire shape
----------

    {
      "<node id>": {
        "id":        "<node id>",
        "type":      "Add",                      // registered node type (str)
        "x":         340.0, "y": 180.0,          // stage position (numbers)
        "width":     200,                         // optional
        "inputData": { "a": 1, "b": 2 },          // port name -> value
        "connections": {
          "inputs":  { "a": [ { "nodeId": "n1", "portName": "value" } ] },
          "outputs": { "sum": [] }
        }
      }
    }

Serialising and reloading reproduces an identical graph.  ``sanitize_graph``
is the defensive re-validation pass hosts run on snapshots they did not
produce themselves.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

from nodeflow.core.CycleDetector import find_cycles
from nodeflow.core.GraphPrimitives import Edge, Graph, GraphDraft, Node, PortRef, iter_edges
from nodeflow.core.GraphReducer import Diagnostic, GraphReducer, ReducerConfig
from nodeflow.core.Types import CircularBehavior, DiagnosticKind, PortDirection

logger = logging.getLogger(__name__)


# ── Validation helpers ────────────────────────────────────────────────────────

class SchemaError(ValueError):
    """Raised when snapshot JSON fails structural validation."""


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise SchemaError(message)


def _require_keys(obj: Dict, keys: List[str], context: str) -> None:
    for key in keys:
        _require(key in obj, f"{context}: missing required field '{key}'")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# ── Serialise ─────────────────────────────────────────────────────────────────

def _serialize_refs(ports: Dict[str, List[PortRef]]) -> Dict[str, List[Dict[str, str]]]:
    return {
        port_name: [{"nodeId": ref.node_id, "portName": ref.port_name} for ref in refs]
        for port_name, refs in ports.items()
    }


def serialize_node(node: Node) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": node.id,
        "type": node.type,
        "x": node.x,
        "y": node.y,
        "inputData": dict(node.input_data),
        "connections": {
            direction.value: _serialize_refs(node.connections.get(direction.value, {}))
            for direction in (PortDirection.INPUT, PortDirection.OUTPUT)
        },
    }
    if node.width is not None:
        data["width"] = node.width
    return data


def serialize_graph(graph: Graph) -> Dict[str, Dict[str, Any]]:
    return {node_id: serialize_node(node) for node_id, node in graph.items()}


def dumps(graph: Graph, **kwargs) -> str:
    return json.dumps(serialize_graph(graph), **kwargs)


# ── Deserialise ───────────────────────────────────────────────────────────────

def _deserialize_refs(raw: Any, context: str) -> Dict[str, List[PortRef]]:
    _require(isinstance(raw, dict), f"{context} must be an object")
    ports: Dict[str, List[PortRef]] = {}
    for port_name, refs in raw.items():
        _require(isinstance(refs, list), f"{context}.{port_name} must be a list")
        parsed = []
        for i, ref in enumerate(refs):
            ref_context = f"{context}.{port_name}[{i}]"
            _require(isinstance(ref, dict), f"{ref_context} must be an object")
            _require_keys(ref, ["nodeId", "portName"], ref_context)
            parsed.append(PortRef(str(ref["nodeId"]), str(ref["portName"])))
        ports[port_name] = parsed
    return ports


def deserialize_node(node_id: str, raw: Dict[str, Any]) -> Node:
    context = f"node '{node_id}'"
    _require(isinstance(raw, dict), f"{context} must be an object")
    _require_keys(raw, ["type"], context)
    _require(isinstance(raw["type"], str), f"{context}: type must be a string")
    _require(raw.get("id", node_id) == node_id, f"{context}: id does not match its key")
    for axis in ("x", "y"):
        _require(_is_number(raw.get(axis, 0)), f"{context}: {axis} must be a number")
    _require(raw.get("width") is None or _is_number(raw["width"]), f"{context}: width must be a number")

    input_data = raw.get("inputData", {})
    _require(isinstance(input_data, dict), f"{context}: inputData must be an object")

    connections = raw.get("connections", {})
    _require(isinstance(connections, dict), f"{context}: connections must be an object")

    return Node(
        id=node_id,
        type=raw["type"],
        x=raw.get("x", 0),
        y=raw.get("y", 0),
        width=raw.get("width"),
        input_data=dict(input_data),
        connections={
            direction.value: _deserialize_refs(
                connections.get(direction.value, {}), f"{context}.connections.{direction.value}")
            for direction in (PortDirection.INPUT, PortDirection.OUTPUT)
        },
    )


def deserialize_graph(data: Dict[str, Any]) -> Graph:
    """
    Parse a snapshot mapping.

    Raises:
        SchemaError: On any structural violation.
    """
    _require(isinstance(data, dict), "graph snapshot must be a JSON object at the top level")
    return {str(node_id): deserialize_node(str(node_id), raw) for node_id, raw in data.items()}


def loads(text: str) -> Graph:
    return deserialize_graph(json.loads(text))


def load(path: Union[str, Path]) -> Graph:
    return loads(Path(path).read_text(encoding="utf-8"))


# ── Defensive re-validation ───────────────────────────────────────────────────

def _diagnose(kind: DiagnosticKind, message: str, edge: Edge) -> Diagnostic:
    return Diagnostic(kind, message, node_id=edge.to_node_id, port_name=edge.to_port_name, edge=edge)


def sanitize_graph(graph: Graph, config: ReducerConfig) -> Tuple[Graph, List[Diagnostic]]:
    """
    Re-check a loaded snapshot against the structural invariants and drop any
    connection that breaks them.  Unknown node types raise, as they would for
    an AddNode.  Cycles are reported but left in place unless the policy is
    forbid.

    Returns:
        The repaired graph (the input itself when already valid) and one
        diagnostic per problem found.
    """
    reducer = GraphReducer(config)
    draft = GraphDraft(graph)
    diagnostics: List[Diagnostic] = []

    for node in graph.values():
        config.node_types[node.type]

    for edge in _dedupe_refs(draft):
        diagnostics.append(_diagnose(DiagnosticKind.CONNECTION_PRUNED, f"Duplicate connection {edge!r}", edge))

    # symmetry and dangling references, checked from both sides
    candidates = set(iter_edges(graph))
    for node in graph.values():
        for port_name, refs in node.connections.get(PortDirection.INPUT.value, {}).items():
            candidates.update(Edge(ref.node_id, ref.port_name, node.id, port_name) for ref in refs)

    for edge in sorted(candidates):
        from_node = graph.get(edge.from_node_id)
        to_node = graph.get(edge.to_node_id)
        if from_node is None or to_node is None:
            _drop_half(draft, edge)
            diagnostics.append(_diagnose(DiagnosticKind.NOT_FOUND, f"Dangling connection {edge!r}", edge))
            continue
        forward = PortRef(edge.to_node_id, edge.to_port_name) in from_node.get_connections(
            PortDirection.OUTPUT, edge.from_port_name)
        backward = PortRef(edge.from_node_id, edge.from_port_name) in to_node.get_connections(
            PortDirection.INPUT, edge.to_port_name)
        from_port = config.node_types[from_node.type].get_port(PortDirection.OUTPUT, edge.from_port_name)
        to_port = config.node_types[to_node.type].get_port(PortDirection.INPUT, edge.to_port_name)
        if from_port is None or to_port is None:
            _drop_half(draft, edge)
            diagnostics.append(_diagnose(DiagnosticKind.NOT_FOUND, f"Connection {edge!r} names an unknown port", edge))
            continue
        if not (forward and backward):
            _drop_half(draft, edge)
            diagnostics.append(_diagnose(DiagnosticKind.NOT_FOUND, f"One-sided connection {edge!r}", edge))
            continue
        from_key = reducer.resolve_port_type(from_node, from_port)
        to_key = reducer.resolve_port_type(to_node, to_port)
        if not config.port_types.are_compatible(from_key, to_key):
            draft.remove_edge(edge)
            diagnostics.append(_diagnose(
                DiagnosticKind.CONNECTION_PRUNED, f"Connection {edge!r} joins '{from_key}' to '{to_key}'", edge))

    # single-connection inputs keep their first recorded partner
    for node in list(draft.nodes.values()):
        node_type = config.node_types[node.type]
        for port_name, refs in list(node.connections.get(PortDirection.INPUT.value, {}).items()):
            if node_type.accepts_many(PortDirection.INPUT, port_name):
                continue
            for ref in refs[1:]:
                edge = Edge(ref.node_id, ref.port_name, node.id, port_name)
                if draft.remove_edge(edge):
                    diagnostics.append(_diagnose(
                        DiagnosticKind.CONNECTION_PRUNED, f"Input already connected, dropped {edge!r}", edge))

    for cycle in find_cycles(draft.nodes):
        if config.circular_behavior is CircularBehavior.FORBID:
            # parallel edges on the closing hop all keep the cycle alive
            for closing in _closing_edges(draft, cycle):
                if draft.remove_edge(closing):
                    diagnostics.append(_diagnose(
                        DiagnosticKind.CYCLE_REJECTED,
                        f"Snapshot contains a cycle through {' -> '.join(cycle)}", closing))
        else:
            diagnostics.append(Diagnostic(
                DiagnosticKind.CYCLE_WARNING, f"Snapshot contains a cycle through {' -> '.join(cycle)}",
                node_id=cycle[0]))

    for diagnostic in diagnostics:
        logger.warning("Snapshot check: %s", diagnostic.message)
    return draft.commit(), diagnostics


def _drop_half(draft: GraphDraft, edge: Edge) -> None:
    """Remove whichever half of a broken connection pair is present."""
    if draft.has_node(edge.from_node_id):
        draft.discard_ref(edge.from_node_id, PortDirection.OUTPUT, edge.from_port_name,
                          PortRef(edge.to_node_id, edge.to_port_name))
    if draft.has_node(edge.to_node_id):
        draft.discard_ref(edge.to_node_id, PortDirection.INPUT, edge.to_port_name,
                          PortRef(edge.from_node_id, edge.from_port_name))


def _dedupe_refs(draft: GraphDraft) -> List[Edge]:
    """Collapse repeated entries in every port list; returns each duplicated connection once."""
    duplicated: List[Edge] = []
    for node_id in list(draft.nodes):
        node = draft.get_node_by_id(node_id)
        for direction in (PortDirection.INPUT, PortDirection.OUTPUT):
            for port_name, refs in list(node.connections.get(direction.value, {}).items()):
                unique = list(dict.fromkeys(refs))
                if len(unique) == len(refs):
                    continue
                draft.edit(node_id).ports(direction)[port_name] = unique
                for ref in unique:
                    if refs.count(ref) < 2:
                        continue
                    if direction is PortDirection.INPUT:
                        edge = Edge(ref.node_id, ref.port_name, node_id, port_name)
                    else:
                        edge = Edge(node_id, port_name, ref.node_id, ref.port_name)
                    if edge not in duplicated:
                        duplicated.append(edge)
    return duplicated


def _closing_edges(draft: GraphDraft, cycle: List[str]) -> List[Edge]:
    """Every edge of the draft on the last hop of a cycle."""
    from_id, to_id = cycle[-2], cycle[-1]
    return [edge for edge in draft.edges_of(from_id)
            if edge.from_node_id == from_id and edge.to_node_id == to_id]
