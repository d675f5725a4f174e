"""
EditorSession: one editor's graph plus everything around it.

Owns the current graph snapshot, the reducer and its registries, the position
cache, the stage transform and the diagnostic feed.  Actions are applied one
at a time through ``dispatch``; renderable connections are recomputed lazily,
at most once per batch of recalculation requests.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from nodeflow.core.Actions import DefaultNode, GraphAction, HydrateDefaults, SetNodeCoordinates
from nodeflow.core.ConnectionGeometry import RenderableConnection, StageTransform, recompute
from nodeflow.core.GraphPrimitives import Graph
from nodeflow.core.GraphReducer import Diagnostic, GraphReducer, ReduceResult, ReducerConfig
from nodeflow.core.PositionCache import PositionCache, PositionProvider, Rect
from nodeflow.noderegistry.NodeRegistry import DEFAULT_NODES, build_config
from nodeflow.serializers.graph_serializer import deserialize_graph, sanitize_graph, serialize_graph
from nodeflow.server.notifications import DiagnosticFeed
from nodeflow.server.settings import Settings

logger = logging.getLogger(__name__)


class EditorSession:
    """Serialises dispatch against a single graph instance."""

    def __init__(
        self,
        config: ReducerConfig,
        nodes: Optional[Graph] = None,
        default_nodes: Iterable[DefaultNode] = (),
        stage: Optional[StageTransform] = None,
        position_provider: Optional[PositionProvider] = None,
        feed: Optional[DiagnosticFeed] = None,
    ) -> None:
        self.config = config.validate()
        self.reducer = GraphReducer(self.config)
        self.feed = feed or DiagnosticFeed()
        self.positions = PositionCache(position_provider)
        self.stage = stage or StageTransform()
        self.default_nodes: Tuple[DefaultNode, ...] = tuple(default_nodes)
        self.nodes: Graph = {}

        self._hydrated = False
        self._should_recalculate = True
        self._connections: List[RenderableConnection] = []
        self._change_listeners: List[Callable[[Graph], None]] = []

        if nodes:
            self._replace_graph(nodes)
        elif self.default_nodes:
            # defaults only seed an empty editor
            self.hydrate_defaults()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs) -> "EditorSession":
        settings = settings or Settings.from_env()
        return cls(
            build_config(settings.circular_behavior),
            default_nodes=DEFAULT_NODES if settings.hydrate_defaults else (),
            stage=StageTransform(scale=settings.initial_scale),
            **kwargs,
        )

    # ── Dispatch ────────────────────────────────────────────────────────────

    def dispatch(self, action: GraphAction) -> ReduceResult:
        previous = self.nodes
        result = self.reducer.apply(previous, action)
        if result.state is not previous:
            self.nodes = result.state
            self.positions.invalidate_nodes(node_id for node_id in previous if node_id not in self.nodes)
            if isinstance(action, SetNodeCoordinates):
                self.positions.invalidate_node(action.node_id)
            self.request_recalculation()
            self._notify_change()
        self.feed.publish(result.diagnostics)
        return result

    def hydrate_defaults(self) -> Optional[ReduceResult]:
        """Instantiate the default nodes; only the first call has any effect."""
        if self._hydrated:
            return None
        self._hydrated = True
        logger.info("Hydrating %d default nodes", len(self.default_nodes))
        return self.dispatch(HydrateDefaults(self.default_nodes))

    def on_change(self, callback: Callable[[Graph], None]) -> None:
        self._change_listeners.append(callback)

    def _notify_change(self) -> None:
        for callback in self._change_listeners:
            callback(self.nodes)

    # ── Snapshots ───────────────────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        return serialize_graph(self.nodes)

    def load(self, data: Dict[str, Any]) -> List[Diagnostic]:
        """Replace the graph with a serialised snapshot, re-validating it first."""
        return self._replace_graph(deserialize_graph(data))

    def _replace_graph(self, graph: Graph) -> List[Diagnostic]:
        graph, diagnostics = sanitize_graph(graph, self.config)
        self.nodes = graph
        self._hydrated = True
        self.positions.clear()
        self.request_recalculation()
        self.feed.publish(diagnostics)
        self._notify_change()
        logger.info("Loaded graph with %d nodes", len(graph))
        return diagnostics

    # ── Stage & positions ───────────────────────────────────────────────────

    def set_stage(self, scale: Optional[float] = None, translate: Optional[Tuple[float, float]] = None,
                  origin: Optional[Rect] = None) -> StageTransform:
        self.stage = StageTransform(
            scale=self.stage.scale if scale is None else scale,
            translate=self.stage.translate if translate is None else translate,
            origin=self.stage.origin if origin is None else origin,
        )
        self.request_recalculation()
        return self.stage

    def report_position(self, node_id: str, port_name: Optional[str], rect: Rect) -> None:
        """Position feedback from the rendering layer."""
        if node_id not in self.nodes:
            logger.debug("Ignoring position for unknown node %s", node_id)
            return
        self.positions.update(node_id, port_name, rect)
        self.request_recalculation()

    def reposition(self, node_id: str) -> None:
        """The host signals that a node moved and its cached rects are stale."""
        self.positions.invalidate_node(node_id)
        self.request_recalculation()

    # ── Connections ─────────────────────────────────────────────────────────

    def request_recalculation(self) -> None:
        self._should_recalculate = True

    @property
    def should_recalculate(self) -> bool:
        return self._should_recalculate

    def connections(self) -> List[RenderableConnection]:
        if self._should_recalculate:
            self._connections = recompute(self.nodes, self.stage, self.positions)
            self._should_recalculate = False
        return list(self._connections)
