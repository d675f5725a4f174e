import logging
from typing import Callable, Dict, Iterable, NamedTuple, Optional, Tuple

from .GraphPrimitives import Graph

# Get a logger for this module
logger = logging.getLogger(__name__)


class Rect(NamedTuple):
    """On-screen rectangle as reported by the rendering layer."""
    x: float
    y: float
    width: float = 0.0
    height: float = 0.0

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2


# The rendering layer's capability: (node_id, port_name) -> rect, or None when
# the element is not on screen.  port_name None means the node body.
PositionProvider = Callable[[str, Optional[str]], Optional[Rect]]

CacheKey = Tuple[str, Optional[str]]


class PositionCache:
    """
    Last known rectangle per node / port.

    Wraps an optional provider: a miss queries the provider and memoises any
    rect it returns.  Lookups never raise; an unknown or deleted id simply
    yields None so callers can skip the element for a frame.
    """

    def __init__(self, provider: Optional[PositionProvider] = None):
        self.provider = provider
        self._rects: Dict[CacheKey, Rect] = {}

    def __call__(self, node_id: str, port_name: Optional[str] = None) -> Optional[Rect]:
        return self.lookup(node_id, port_name)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._rects

    def __len__(self) -> int:
        return len(self._rects)

    def lookup(self, node_id: str, port_name: Optional[str] = None) -> Optional[Rect]:
        key = (node_id, port_name)
        rect = self._rects.get(key)
        if rect is not None or self.provider is None:
            return rect
        rect = self.provider(node_id, port_name)
        if rect is not None:
            self._rects[key] = Rect(*rect)
        return rect

    def update(self, node_id: str, port_name: Optional[str], rect: Rect):
        """Record position feedback from the rendering layer."""
        self._rects[(node_id, port_name)] = Rect(*rect)

    def invalidate(self, node_id: str, port_name: Optional[str] = None):
        self._rects.pop((node_id, port_name), None)

    def invalidate_node(self, node_id: str):
        """Forget the node body and every port of node_id, e.g. after a move or delete."""
        stale = [key for key in self._rects if key[0] == node_id]
        for key in stale:
            del self._rects[key]
        if stale:
            logger.debug("Dropped %d cached rects for node %s", len(stale), node_id)

    def invalidate_nodes(self, node_ids: Iterable[str]):
        for node_id in node_ids:
            self.invalidate_node(node_id)

    def prune(self, graph: Graph):
        """Drop entries for nodes no longer in the graph."""
        self.invalidate_nodes({key[0] for key in self._rects if key[0] not in graph})

    def clear(self):
        self._rects.clear()
