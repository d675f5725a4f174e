from enum import Enum, auto


class PortDirection(Enum):
    INPUT = "inputs"
    OUTPUT = "outputs"

    @property
    def opposite(self) -> 'PortDirection':
        return PortDirection.OUTPUT if self is PortDirection.INPUT else PortDirection.INPUT


class CircularBehavior(Enum):
    FORBID = "forbid"
    WARN = "warn"
    ALLOW = "allow"

    @staticmethod
    def parse(value: str) -> 'CircularBehavior':
        try:
            return CircularBehavior(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown circular behavior '{value}' (expected forbid, warn or allow)")


class DiagnosticKind(Enum):
    NOT_FOUND = auto()
    INCOMPATIBLE_PORT_TYPES = auto()
    CYCLE_REJECTED = auto()
    CYCLE_WARNING = auto()
    CONNECTION_PRUNED = auto()

    @property
    def is_warning(self) -> bool:
        # warnings accompany a change that was applied anyway
        return self in (DiagnosticKind.CYCLE_WARNING, DiagnosticKind.CONNECTION_PRUNED)
