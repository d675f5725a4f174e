"""
nodeflow core
=============
Graph state machine and everything it consults.

    Actions          ->  GraphReducer.apply  ->  (Graph, Diagnostics)
    Graph + rects    ->  ConnectionGeometry.recompute  ->  RenderableConnections
"""

from .Actions import (
    AddConnection,
    AddNode,
    DefaultNode,
    DefaultWire,
    DestroyTransput,
    GraphAction,
    HydrateDefaults,
    RemoveConnection,
    RemoveNode,
    SetNodeCoordinates,
    SetPortData,
)
from .ConnectionGeometry import RenderableConnection, StageTransform, recompute
from .CycleDetector import find_cycle_path, would_create_cycle
from .Errors import ConfigurationError, PortTypeResolutionError, RegistryError, UnknownNodeTypeError
from .GraphPrimitives import Edge, Graph, Node, PortRef
from .GraphReducer import Diagnostic, GraphReducer, ReduceResult, ReducerConfig, apply
from .NodeTypes import NodeType, NodeTypeRegistry, PortDescriptor
from .PortTypes import PortType, PortTypeRegistry
from .PositionCache import PositionCache, Rect
from .Types import CircularBehavior, DiagnosticKind, PortDirection
