import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Optional, Tuple

from .Errors import RegistryError, UnknownNodeTypeError
from .PortTypes import PortTypeRegistry
from .Types import PortDirection

# Get a logger for this module
logger = logging.getLogger(__name__)

# Maps a node's current input data to a port type key.  Must be pure and total.
TypeResolver = Callable[[Mapping[str, Any]], str]


@dataclass(frozen=True)
class PortDescriptor:
    name: str
    type: str
    label: Optional[str] = None
    # inputs take one connection unless marked; outputs always fan out
    multi: bool = False
    resolve_type: Optional[TypeResolver] = None
    no_controls: bool = False
    hidden: bool = False

    @property
    def is_dynamic(self) -> bool:
        return self.resolve_type is not None

    def effective_type(self, input_data: Mapping[str, Any]) -> str:
        if self.resolve_type is None:
            return self.type
        return self.resolve_type(input_data)


@dataclass(frozen=True)
class NodeType:
    type: str
    label: Optional[str] = None
    description: str = ""
    inputs: Tuple[PortDescriptor, ...] = ()
    outputs: Tuple[PortDescriptor, ...] = ()
    initial_data: Mapping[str, Any] = field(default_factory=dict)
    controls: Any = None
    initial_width: Optional[float] = None
    addable: bool = True
    deletable: bool = True
    root: bool = False

    def __post_init__(self):
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "outputs", tuple(self.outputs))
        if self.label is None:
            object.__setattr__(self, "label", self.type)

    def ports(self, direction: PortDirection) -> Tuple[PortDescriptor, ...]:
        return self.inputs if direction is PortDirection.INPUT else self.outputs

    def get_port(self, direction: PortDirection, port_name: str) -> Optional[PortDescriptor]:
        for port in self.ports(direction):
            if port.name == port_name:
                return port
        return None

    def accepts_many(self, direction: PortDirection, port_name: str) -> bool:
        if direction is PortDirection.OUTPUT:
            return True
        port = self.get_port(direction, port_name)
        return bool(port and port.multi)

    def dynamic_ports(self) -> Iterator[Tuple[PortDirection, PortDescriptor]]:
        for direction in (PortDirection.INPUT, PortDirection.OUTPUT):
            for port in self.ports(direction):
                if port.is_dynamic:
                    yield direction, port


class NodeTypeRegistry:
    """Catalog of node templates keyed by type name."""

    def __init__(self, node_types: Iterable[NodeType] = ()):
        self._node_registry: Dict[str, NodeType] = {}
        for node_type in node_types:
            self.register(node_type)

    def register(self, node_type: NodeType) -> NodeType:
        if node_type.type in self._node_registry:
            raise RegistryError(f"Node type '{node_type.type}' is already registered.")
        self._node_registry[node_type.type] = node_type
        return node_type

    def validate(self, port_types: PortTypeRegistry) -> 'NodeTypeRegistry':
        """Fail fast on duplicate port names or references to unknown port types."""
        for node_type in self._node_registry.values():
            for direction in (PortDirection.INPUT, PortDirection.OUTPUT):
                seen = set()
                for port in node_type.ports(direction):
                    if port.name in seen:
                        raise RegistryError(
                            f"Node type '{node_type.type}' declares {direction.value} port '{port.name}' twice")
                    seen.add(port.name)
                    if port.type not in port_types:
                        raise RegistryError(
                            f"Port '{port.name}' on node type '{node_type.type}' "
                            f"references unknown port type '{port.type}'")
        logger.debug("Node type registry validated with %d types", len(self._node_registry))
        return self

    def get(self, type_name: str) -> Optional[NodeType]:
        return self._node_registry.get(type_name)

    def __getitem__(self, type_name: str) -> NodeType:
        node_type = self._node_registry.get(type_name)
        if node_type is None:
            raise UnknownNodeTypeError(type_name)
        return node_type

    def __contains__(self, type_name: str) -> bool:
        return type_name in self._node_registry

    def __iter__(self) -> Iterator[NodeType]:
        return iter(self._node_registry.values())

    def __len__(self) -> int:
        return len(self._node_registry)
