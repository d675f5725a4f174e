"""
GraphReducer: the pure node-graph state machine.

``apply(state, action)`` returns a ReduceResult holding the next graph and the
diagnostics raised along the way.  The input graph is never mutated: every
action works on a copy-on-write GraphDraft that is either committed or thrown
away.  Soft failures (missing targets, incompatible ports, rejected cycles)
come back as Diagnostics with the state unchanged; configuration errors raise.
"""
import copy
import logging
import uuid
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple, Union

from .Actions import (
    AddConnection,
    AddNode,
    DestroyTransput,
    GraphAction,
    HydrateDefaults,
    RemoveConnection,
    RemoveNode,
    SetNodeCoordinates,
    SetPortData,
)
from .CycleDetector import find_cycle_path
from .Errors import ConfigurationError, PortTypeResolutionError
from .GraphPrimitives import Edge, Graph, GraphDraft, Node
from .NodeTypes import NodeType, NodeTypeRegistry, PortDescriptor
from .PortTypes import PortTypeRegistry
from .Types import CircularBehavior, DiagnosticKind, PortDirection

# Get a logger for this module
logger = logging.getLogger(__name__)

# Receives the would-be cycle as node ids [from, to, ..., from]; truthy accepts.
CycleCallback = Callable[[List[str]], bool]

MAX_ID_ATTEMPTS = 64


def default_id_factory() -> str:
    return uuid.uuid4().hex[:10]


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    message: str
    node_id: Optional[str] = None
    port_name: Optional[str] = None
    edge: Optional[Edge] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind.name,
            "message": self.message,
            "nodeId": self.node_id,
            "portName": self.port_name,
            "connectionId": self.edge.id if self.edge else None,
        }


class ReduceResult(NamedTuple):
    state: Graph
    diagnostics: List[Diagnostic]
    # ids of nodes created by the action, in creation order
    created: Tuple[str, ...] = ()

    @property
    def node_id(self) -> Optional[str]:
        return self.created[0] if self.created else None


@dataclass
class ReducerConfig:
    """Everything the reducer consults, passed explicitly rather than looked up."""
    node_types: NodeTypeRegistry
    port_types: PortTypeRegistry
    circular_behavior: Union[CircularBehavior, CycleCallback] = CircularBehavior.FORBID
    id_factory: Callable[[], str] = field(default=default_id_factory)

    def validate(self) -> 'ReducerConfig':
        self.port_types.validate()
        self.node_types.validate(self.port_types)
        return self


class GraphReducer:

    def __init__(self, config: ReducerConfig):
        self.config = config
        self._handlers = {
            AddNode: self._add_node,
            RemoveNode: self._remove_node,
            AddConnection: self._add_connection,
            RemoveConnection: self._remove_connection,
            SetPortData: self._set_port_data,
            SetNodeCoordinates: self._set_node_coordinates,
            DestroyTransput: self._destroy_transput,
            HydrateDefaults: self._hydrate_defaults,
        }

    def apply(self, state: Graph, action: GraphAction) -> ReduceResult:
        handler = self._handlers.get(type(action))
        if handler is None:
            raise TypeError(f"Unsupported graph action {action!r}")

        draft = GraphDraft(state)
        diagnostics: List[Diagnostic] = []
        created: List[str] = []
        handler(draft, action, diagnostics, created)

        for diagnostic in diagnostics:
            logger.info("%s: %s", diagnostic.kind.name, diagnostic.message)
        logger.debug("Applied %s (changed=%s)", type(action).__name__, draft.changed)
        return ReduceResult(draft.commit(), diagnostics, tuple(created))

    def apply_all(self, state: Graph, actions: Sequence[GraphAction]) -> ReduceResult:
        """Apply actions strictly in order, accumulating diagnostics."""
        diagnostics: List[Diagnostic] = []
        created: List[str] = []
        for action in actions:
            result = self.apply(state, action)
            state = result.state
            diagnostics.extend(result.diagnostics)
            created.extend(result.created)
        return ReduceResult(state, diagnostics, tuple(created))

    # ------------------------------------------------------------------
    # Type resolution
    # ------------------------------------------------------------------

    def resolve_port_type(self, node: Node, port: PortDescriptor) -> str:
        """Static type, or the dynamic resolver evaluated on current input data."""
        if not port.is_dynamic:
            return port.type
        try:
            type_key = port.effective_type(MappingProxyType(node.input_data))
        except Exception as exc:
            raise PortTypeResolutionError(node.id, port.name, f"resolver raised {exc!r}") from exc
        if not isinstance(type_key, str) or type_key not in self.config.port_types:
            raise PortTypeResolutionError(node.id, port.name, f"resolver returned unknown port type {type_key!r}")
        return type_key

    def _edge_types(self, draft: GraphDraft, edge: Edge) -> Tuple[str, str]:
        from_node = draft.get_node_by_id(edge.from_node_id)
        to_node = draft.get_node_by_id(edge.to_node_id)
        from_port = self._node_type(from_node).get_port(PortDirection.OUTPUT, edge.from_port_name)
        to_port = self._node_type(to_node).get_port(PortDirection.INPUT, edge.to_port_name)
        return self.resolve_port_type(from_node, from_port), self.resolve_port_type(to_node, to_port)

    def _node_type(self, node: Node) -> NodeType:
        return self.config.node_types[node.type]

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _add_node(self, draft: GraphDraft, action: AddNode, diagnostics, created):
        node_type = self.config.node_types[action.type]
        node = Node(
            id=self._allocate_id(draft),
            type=node_type.type,
            x=action.x,
            y=action.y,
            width=node_type.initial_width,
            input_data=self._initial_input_data(node_type, action.data),
        )
        # surface broken resolvers now rather than at the first connection
        for _, port in node_type.dynamic_ports():
            self.resolve_port_type(node, port)

        draft.add_node(node)
        created.append(node.id)
        logger.debug("Added node %s of type '%s'", node.id, node.type)

    def _allocate_id(self, draft: GraphDraft) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            candidate = self.config.id_factory()
            if not draft.has_node(candidate):
                return candidate
        raise ConfigurationError(f"id_factory produced no unique node id in {MAX_ID_ATTEMPTS} attempts")

    def _initial_input_data(self, node_type: NodeType, data: Optional[dict]) -> dict:
        input_data = {}
        for port in node_type.inputs:
            input_data[port.name] = copy.deepcopy(self.config.port_types.default_value(port.type))
        input_data.update(copy.deepcopy(dict(node_type.initial_data)))
        if data:
            input_data.update(copy.deepcopy(data))
        return input_data

    def _remove_node(self, draft: GraphDraft, action: RemoveNode, diagnostics, created):
        if not draft.has_node(action.node_id):
            diagnostics.append(Diagnostic(
                DiagnosticKind.NOT_FOUND, f"Node '{action.node_id}' does not exist", node_id=action.node_id))
            return
        draft.delete_node(action.node_id)
        logger.debug("Removed node %s", action.node_id)

    def _add_connection(self, draft: GraphDraft, action: AddConnection, diagnostics, created) -> bool:
        from_node = draft.get_node_by_id(action.from_node_id)
        to_node = draft.get_node_by_id(action.to_node_id)
        for node_id, node in ((action.from_node_id, from_node), (action.to_node_id, to_node)):
            if node is None:
                diagnostics.append(Diagnostic(
                    DiagnosticKind.NOT_FOUND, f"Node '{node_id}' does not exist", node_id=node_id))
                return False

        from_type = self._node_type(from_node)
        to_type = self._node_type(to_node)
        from_port = from_type.get_port(PortDirection.OUTPUT, action.from_port)
        to_port = to_type.get_port(PortDirection.INPUT, action.to_port)
        if from_port is None:
            diagnostics.append(Diagnostic(
                DiagnosticKind.NOT_FOUND,
                f"Output port '{action.from_port}' not found on node '{from_node.id}'",
                node_id=from_node.id, port_name=action.from_port))
            return False
        if to_port is None:
            diagnostics.append(Diagnostic(
                DiagnosticKind.NOT_FOUND,
                f"Input port '{action.to_port}' not found on node '{to_node.id}'",
                node_id=to_node.id, port_name=action.to_port))
            return False

        edge = Edge(from_node.id, from_port.name, to_node.id, to_port.name)
        if draft.has_edge(edge):
            return True

        from_key = self.resolve_port_type(from_node, from_port)
        to_key = self.resolve_port_type(to_node, to_port)
        if not self.config.port_types.are_compatible(from_key, to_key):
            diagnostics.append(Diagnostic(
                DiagnosticKind.INCOMPATIBLE_PORT_TYPES,
                f"Cannot connect '{from_key}' output to '{to_key}' input",
                node_id=to_node.id, port_name=to_port.name, edge=edge))
            return False

        cycle = find_cycle_path(draft.nodes, from_node.id, to_node.id)
        if cycle is not None and not self._allow_cycle(cycle, edge, diagnostics):
            return False

        if not to_type.accepts_many(PortDirection.INPUT, to_port.name):
            for previous in draft.get_incoming_edges(to_node.id, to_port.name):
                draft.remove_edge(previous)
                logger.debug("Replaced %r on single-connection input", previous)

        draft.add_edge(edge)
        logger.debug("Connected %r", edge)
        return True

    def _allow_cycle(self, cycle: List[str], edge: Edge, diagnostics) -> bool:
        behavior = self.config.circular_behavior
        if behavior is CircularBehavior.ALLOW:
            return True
        if behavior is CircularBehavior.WARN:
            diagnostics.append(Diagnostic(
                DiagnosticKind.CYCLE_WARNING,
                "Connecting these nodes has created an infinite loop.",
                node_id=edge.to_node_id, port_name=edge.to_port_name, edge=edge))
            return True
        if behavior is CircularBehavior.FORBID:
            accepted = False
        else:
            accepted = bool(behavior(list(cycle)))
        if not accepted:
            diagnostics.append(Diagnostic(
                DiagnosticKind.CYCLE_REJECTED,
                "Connecting these nodes would result in an infinite loop.",
                node_id=edge.to_node_id, port_name=edge.to_port_name, edge=edge))
        return accepted

    def _remove_connection(self, draft: GraphDraft, action: RemoveConnection, diagnostics, created):
        forward = Edge(action.node_id, action.port_name, action.other_node_id, action.other_port_name)
        backward = Edge(action.other_node_id, action.other_port_name, action.node_id, action.port_name)
        if not (draft.remove_edge(forward) or draft.remove_edge(backward)):
            diagnostics.append(Diagnostic(
                DiagnosticKind.NOT_FOUND,
                f"No connection between {action.node_id}.{action.port_name} "
                f"and {action.other_node_id}.{action.other_port_name}",
                node_id=action.node_id, port_name=action.port_name))

    def _set_port_data(self, draft: GraphDraft, action: SetPortData, diagnostics, created):
        node = draft.get_node_by_id(action.node_id)
        if node is None:
            diagnostics.append(Diagnostic(
                DiagnosticKind.NOT_FOUND, f"Node '{action.node_id}' does not exist", node_id=action.node_id))
            return
        if self._node_type(node).get_port(PortDirection.INPUT, action.port_name) is None:
            diagnostics.append(Diagnostic(
                DiagnosticKind.NOT_FOUND,
                f"Input port '{action.port_name}' not found on node '{node.id}'",
                node_id=node.id, port_name=action.port_name))
            return

        node = draft.edit(action.node_id)
        node.input_data[action.port_name] = copy.deepcopy(action.value)
        self._prune_incompatible(draft, node.id, diagnostics)

    def _prune_incompatible(self, draft: GraphDraft, node_id: str, diagnostics):
        """Drop every connection on a dynamic port of node_id whose types no longer agree."""
        node = draft.get_node_by_id(node_id)
        for direction, port in self._node_type(node).dynamic_ports():
            self.resolve_port_type(node, port)
            if direction is PortDirection.INPUT:
                edges = draft.get_incoming_edges(node_id, port.name)
            else:
                edges = draft.get_outgoing_edges(node_id, port.name)
            for edge in edges:
                from_key, to_key = self._edge_types(draft, edge)
                if self.config.port_types.are_compatible(from_key, to_key):
                    continue
                draft.remove_edge(edge)
                logger.warning("Pruned %r: '%s' no longer connects to '%s'", edge, from_key, to_key)
                diagnostics.append(Diagnostic(
                    DiagnosticKind.CONNECTION_PRUNED,
                    f"Removed connection {edge.from_node_id}.{edge.from_port_name} -> "
                    f"{edge.to_node_id}.{edge.to_port_name}: '{from_key}' is no longer compatible with '{to_key}'",
                    node_id=node_id, port_name=port.name, edge=edge))

    def _set_node_coordinates(self, draft: GraphDraft, action: SetNodeCoordinates, diagnostics, created):
        if not draft.has_node(action.node_id):
            diagnostics.append(Diagnostic(
                DiagnosticKind.NOT_FOUND, f"Node '{action.node_id}' does not exist", node_id=action.node_id))
            return
        node = draft.edit(action.node_id)
        node.x = action.x
        node.y = action.y

    def _destroy_transput(self, draft: GraphDraft, action: DestroyTransput, diagnostics, created):
        if not draft.has_node(action.node_id):
            diagnostics.append(Diagnostic(
                DiagnosticKind.NOT_FOUND, f"Node '{action.node_id}' does not exist", node_id=action.node_id))
            return
        if action.direction is PortDirection.INPUT:
            edges = draft.get_incoming_edges(action.node_id, action.port_name)
        else:
            edges = draft.get_outgoing_edges(action.node_id, action.port_name)
        for edge in edges:
            draft.remove_edge(edge)

    def _hydrate_defaults(self, draft: GraphDraft, action: HydrateDefaults, diagnostics, created):
        keyed: Dict[str, str] = {}
        instantiated = []
        for declaration in action.defaults:
            node_ids: List[str] = []
            self._add_node(draft, AddNode(declaration.type, declaration.x, declaration.y, declaration.data),
                           diagnostics, node_ids)
            created.extend(node_ids)
            instantiated.append((declaration, node_ids[0]))
            if declaration.key is not None:
                keyed[declaration.key] = node_ids[0]

        for declaration, node_id in instantiated:
            for wire in declaration.wires:
                target_id = keyed.get(wire.to_key)
                if target_id is None:
                    diagnostics.append(Diagnostic(
                        DiagnosticKind.NOT_FOUND,
                        f"Default node '{declaration.type}' is wired to unknown default '{wire.to_key}'",
                        node_id=node_id, port_name=wire.from_port))
                    continue
                self._add_connection(
                    draft, AddConnection(node_id, wire.from_port, target_id, wire.to_port), diagnostics, created)


def apply(state: Graph, action: GraphAction, config: ReducerConfig) -> ReduceResult:
    return GraphReducer(config).apply(state, action)
