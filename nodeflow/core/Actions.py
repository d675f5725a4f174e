"""
Graph actions: the only way a graph changes.

Each action is a small immutable record; GraphReducer dispatches on its class.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from .Types import PortDirection


@dataclass(frozen=True)
class AddNode:
    type: str
    x: float = 0.0
    y: float = 0.0
    data: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class RemoveNode:
    node_id: str


@dataclass(frozen=True)
class AddConnection:
    from_node_id: str
    from_port: str
    to_node_id: str
    to_port: str


@dataclass(frozen=True)
class RemoveConnection:
    """Either end may be given first; the pair is located in both orientations."""
    node_id: str
    port_name: str
    other_node_id: str
    other_port_name: str


@dataclass(frozen=True)
class SetPortData:
    node_id: str
    port_name: str
    value: Any


@dataclass(frozen=True)
class SetNodeCoordinates:
    node_id: str
    x: float
    y: float


@dataclass(frozen=True)
class DestroyTransput:
    """Disconnect every connection attached to one port."""
    node_id: str
    port_name: str
    direction: PortDirection = PortDirection.INPUT


@dataclass(frozen=True)
class DefaultWire:
    """
    A connection pre-declared on a default node, from one of its output ports
    to an input port of another default node, named by that node's ``key``.
    """
    from_port: str
    to_key: str
    to_port: str


@dataclass(frozen=True)
class DefaultNode:
    type: str
    x: float = 0.0
    y: float = 0.0
    key: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    wires: Tuple[DefaultWire, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class HydrateDefaults:
    defaults: Tuple[DefaultNode, ...] = field(default_factory=tuple)


GraphAction = Union[
    AddNode,
    RemoveNode,
    AddConnection,
    RemoveConnection,
    SetPortData,
    SetNodeCoordinates,
    DestroyTransput,
    HydrateDefaults,
]
