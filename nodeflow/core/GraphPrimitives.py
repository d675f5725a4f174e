from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, NamedTuple, Optional

from .Types import PortDirection


class PortRef(NamedTuple):
    """One side of a connection entry: the partner node and its port."""
    node_id: str
    port_name: str


# Defining Edge as a simple data structure.
# Always oriented output -> input regardless of which node recorded it.
class Edge(NamedTuple):
    from_node_id: str
    from_port_name: str
    to_node_id: str
    to_port_name: str

    @property
    def id(self) -> str:
        return f"{self.from_node_id}{self.from_port_name}{self.to_node_id}{self.to_port_name}"

    def __repr__(self):
        return f"Edge({self.from_node_id}.{self.from_port_name} -> {self.to_node_id}.{self.to_port_name})"


def _empty_connections() -> Dict[str, Dict[str, List[PortRef]]]:
    return {PortDirection.INPUT.value: {}, PortDirection.OUTPUT.value: {}}


@dataclass
class Node:
    id: str
    type: str
    x: float = 0.0
    y: float = 0.0
    width: Optional[float] = None
    input_data: Dict[str, Any] = field(default_factory=dict)
    # "inputs" / "outputs" -> port name -> ordered partner list
    connections: Dict[str, Dict[str, List[PortRef]]] = field(default_factory=_empty_connections)

    def ports(self, direction: PortDirection) -> Dict[str, List[PortRef]]:
        return self.connections.setdefault(direction.value, {})

    def get_connections(self, direction: PortDirection, port_name: str) -> List[PortRef]:
        return self.connections.get(direction.value, {}).get(port_name, [])

    def clone(self) -> 'Node':
        # values in input_data are replaced, never edited in place, so a shallow
        # copy of the mapping is enough
        return Node(
            id=self.id,
            type=self.type,
            x=self.x,
            y=self.y,
            width=self.width,
            input_data=dict(self.input_data),
            connections={
                direction: {port: list(refs) for port, refs in ports.items()}
                for direction, ports in self.connections.items()
            },
        )


# A graph snapshot is a plain mapping of node id -> Node.
Graph = Dict[str, Node]


def iter_edges(graph: Graph) -> Iterator[Edge]:
    """Every connection once, enumerated from the output side in graph order."""
    for node in graph.values():
        for port_name, refs in node.connections.get(PortDirection.OUTPUT.value, {}).items():
            for ref in refs:
                yield Edge(node.id, port_name, ref.node_id, ref.port_name)


def downstream_node_ids(graph: Graph, node_id: str) -> List[str]:
    node = graph.get(node_id)
    if node is None:
        return []
    result = []
    for refs in node.connections.get(PortDirection.OUTPUT.value, {}).values():
        for ref in refs:
            if ref.node_id not in result:
                result.append(ref.node_id)
    return result


class GraphDraft:
    """
    Copy-on-write working copy used while a single action is applied.

    Node records from the source snapshot are shared until first written, at
    which point they are cloned.  The source mapping is never modified, so a
    rejected action can simply discard the draft.
    """

    def __init__(self, source: Graph):
        self.source = source
        self.nodes: Dict[str, Node] = dict(source)
        self._owned: set = set()
        self.changed = False

    def get_node_by_id(self, node_id: str) -> Optional[Node]:
        return self.nodes.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self.nodes

    def edit(self, node_id: str) -> Node:
        if node_id not in self._owned:
            self.nodes[node_id] = self.nodes[node_id].clone()
            self._owned.add(node_id)
        self.changed = True
        return self.nodes[node_id]

    def add_node(self, node: Node):
        if node.id in self.nodes:
            raise ValueError(f"Node with id '{node.id}' already exists in the graph")
        self.nodes[node.id] = node
        self._owned.add(node.id)
        self.changed = True

    def has_edge(self, edge: Edge) -> bool:
        node = self.nodes.get(edge.from_node_id)
        if node is None:
            return False
        return PortRef(edge.to_node_id, edge.to_port_name) in node.get_connections(
            PortDirection.OUTPUT, edge.from_port_name)

    def add_edge(self, edge: Edge) -> Edge:
        source = self.edit(edge.from_node_id)
        source.ports(PortDirection.OUTPUT).setdefault(edge.from_port_name, []).append(
            PortRef(edge.to_node_id, edge.to_port_name))
        target = self.edit(edge.to_node_id)
        target.ports(PortDirection.INPUT).setdefault(edge.to_port_name, []).append(
            PortRef(edge.from_node_id, edge.from_port_name))
        return edge

    def remove_edge(self, edge: Edge) -> bool:
        if not self.has_edge(edge):
            return False
        self.discard_ref(edge.from_node_id, PortDirection.OUTPUT, edge.from_port_name,
                         PortRef(edge.to_node_id, edge.to_port_name))
        self.discard_ref(edge.to_node_id, PortDirection.INPUT, edge.to_port_name,
                         PortRef(edge.from_node_id, edge.from_port_name))
        return True

    def discard_ref(self, node_id: str, direction: PortDirection, port_name: str, ref: PortRef):
        if node_id not in self.nodes:
            return
        node = self.edit(node_id)
        ports = node.ports(direction)
        refs = [r for r in ports.get(port_name, []) if r != ref]
        if refs:
            ports[port_name] = refs
        else:
            ports.pop(port_name, None)

    def get_incoming_edges(self, node_id: str, port_name: str) -> List[Edge]:
        node = self.nodes.get(node_id)
        if node is None:
            return []
        return [Edge(r.node_id, r.port_name, node_id, port_name)
                for r in node.get_connections(PortDirection.INPUT, port_name)]

    def get_outgoing_edges(self, node_id: str, port_name: str) -> List[Edge]:
        node = self.nodes.get(node_id)
        if node is None:
            return []
        return [Edge(node_id, port_name, r.node_id, r.port_name)
                for r in node.get_connections(PortDirection.OUTPUT, port_name)]

    def edges_of(self, node_id: str) -> List[Edge]:
        node = self.nodes.get(node_id)
        if node is None:
            return []
        edges = []
        for port_name in node.connections.get(PortDirection.INPUT.value, {}):
            edges.extend(self.get_incoming_edges(node_id, port_name))
        for port_name in node.connections.get(PortDirection.OUTPUT.value, {}):
            edges.extend(self.get_outgoing_edges(node_id, port_name))
        return edges

    def delete_node(self, node_id: str):
        # Cleanup connections associated with this node before dropping it
        for edge in self.edges_of(node_id):
            self.remove_edge(edge)
        del self.nodes[node_id]
        self._owned.discard(node_id)
        self.changed = True

    def commit(self) -> Graph:
        """The new snapshot, or the untouched source when nothing changed."""
        return self.nodes if self.changed else self.source
