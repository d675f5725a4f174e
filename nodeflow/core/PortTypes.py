import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Iterator, Optional

from .Errors import RegistryError

# Get a logger for this module
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PortType:
    """
    A category of port.  Two ports may be connected only when each port's type
    appears in the other's ``accept_types``.  Left empty, a type accepts only
    itself.
    """
    type: str
    name: Optional[str] = None
    label: Optional[str] = None
    color: Optional[str] = None
    accept_types: FrozenSet[str] = field(default_factory=frozenset)
    default_value: Any = None
    # opaque to the core; handed through to whatever renders value controls
    controls: Any = None

    def __post_init__(self):
        accepted = frozenset(self.accept_types) or frozenset({self.type})
        object.__setattr__(self, "accept_types", accepted)
        if self.name is None:
            object.__setattr__(self, "name", self.type)

    def accepts(self, other_type: str) -> bool:
        return other_type in self.accept_types


class PortTypeRegistry:
    """Static catalog of port types, read-only once built."""

    def __init__(self, port_types: Iterable[PortType] = ()):
        self._types: Dict[str, PortType] = {}
        for port_type in port_types:
            self.register(port_type)
        self._frozen = False

    def register(self, port_type: PortType) -> PortType:
        if getattr(self, "_frozen", False):
            raise RegistryError(f"Port type registry is frozen; cannot add '{port_type.type}'")
        if port_type.type in self._types:
            raise RegistryError(f"Port type '{port_type.type}' is already registered.")
        self._types[port_type.type] = port_type
        return port_type

    def validate(self) -> 'PortTypeRegistry':
        """Check every accepted type exists, then freeze the registry."""
        for port_type in self._types.values():
            missing = sorted(t for t in port_type.accept_types if t not in self._types)
            if missing:
                raise RegistryError(
                    f"Port type '{port_type.type}' accepts unknown port types: {', '.join(missing)}")
        self._frozen = True
        logger.debug("Port type registry validated with %d types", len(self._types))
        return self

    def get(self, type_name: str) -> Optional[PortType]:
        return self._types.get(type_name)

    def __getitem__(self, type_name: str) -> PortType:
        port_type = self._types.get(type_name)
        if port_type is None:
            raise RegistryError(f"Unknown port type '{type_name}'")
        return port_type

    def __contains__(self, type_name: str) -> bool:
        return type_name in self._types

    def __iter__(self) -> Iterator[PortType]:
        return iter(self._types.values())

    def __len__(self) -> int:
        return len(self._types)

    def are_compatible(self, type_a: str, type_b: str) -> bool:
        """Mutual acceptance: each side must list the other."""
        a = self[type_a]
        b = self[type_b]
        return a.accepts(type_b) and b.accepts(type_a)

    def default_value(self, type_name: str) -> Any:
        return self[type_name].default_value
