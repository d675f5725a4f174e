"""
Fatal configuration errors.

These signal a programming error by the host (bad registries, unknown node
types, misbehaving resolvers) and are raised immediately.  Recoverable,
per-action conditions are reported as Diagnostics instead, see GraphReducer.
"""


class ConfigurationError(ValueError):
    """Base class for errors in author-supplied configuration."""


class RegistryError(ConfigurationError):
    """A port or node type catalog is malformed."""


class UnknownNodeTypeError(ConfigurationError):
    def __init__(self, type_name: str):
        super().__init__(f"Unknown node type '{type_name}'")
        self.type_name = type_name


class PortTypeResolutionError(ConfigurationError):
    """A dynamic port-type resolver raised or produced an unregistered key."""

    def __init__(self, node_id: str, port_name: str, reason: str):
        super().__init__(f"Could not resolve type of port '{port_name}' on node '{node_id}': {reason}")
        self.node_id = node_id
        self.port_name = port_name
