"""
Connection geometry: turns graph topology plus rendered port rectangles into
curve descriptors the rendering layer can draw.

Pure and side-effect free.  Calling recompute() once per animation frame while
a node is dragged costs time but never changes the result for the same inputs.
"""
import logging
import math
from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Tuple

from .GraphPrimitives import Edge, Graph, iter_edges
from .PositionCache import PositionProvider, Rect

# Get a logger for this module
logger = logging.getLogger(__name__)

MIN_SCALE = 0.1
MAX_SCALE = 7.0

# control points sit a third of the endpoint distance along the dominant axis
CURVE_DIVISOR = 3.0
MIN_CURVE_OFFSET = 20.0
MAX_CURVE_OFFSET = 200.0


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


class Point(NamedTuple):
    x: float
    y: float


@dataclass(frozen=True)
class StageTransform:
    """
    Pan/zoom state of the stage.  ``origin`` is the on-screen rect of the stage
    element; when given, screen points are first made relative to its centre.
    """
    scale: float = 1.0
    translate: Tuple[float, float] = (0.0, 0.0)
    origin: Optional[Rect] = None

    def __post_init__(self):
        object.__setattr__(self, "scale", clamp(float(self.scale), MIN_SCALE, MAX_SCALE))
        object.__setattr__(self, "translate", (float(self.translate[0]), float(self.translate[1])))

    def to_stage(self, x: float, y: float) -> Point:
        if self.origin is not None:
            x -= self.origin.x + self.origin.width / 2
            y -= self.origin.y + self.origin.height / 2
        return Point(x / self.scale + self.translate[0], y / self.scale + self.translate[1])


@dataclass(frozen=True)
class RenderableConnection:
    id: str
    from_node_id: str
    from_port: str
    to_node_id: str
    to_port: str
    start: Point
    end: Point
    control_start: Point
    control_end: Point

    @property
    def path(self) -> str:
        """SVG path data for a cubic curve through the control points."""
        return (f"M{self.start.x:g},{self.start.y:g} "
                f"C{self.control_start.x:g},{self.control_start.y:g} "
                f"{self.control_end.x:g},{self.control_end.y:g} "
                f"{self.end.x:g},{self.end.y:g}")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "from": {"nodeId": self.from_node_id, "portName": self.from_port},
            "to": {"nodeId": self.to_node_id, "portName": self.to_port},
            "start": self.start._asdict(),
            "end": self.end._asdict(),
            "controlPoints": [self.control_start._asdict(), self.control_end._asdict()],
            "path": self.path,
        }


def control_points(start: Point, end: Point) -> Tuple[Point, Point]:
    dx = end.x - start.x
    dy = end.y - start.y
    offset = clamp(math.hypot(dx, dy) / CURVE_DIVISOR, MIN_CURVE_OFFSET, MAX_CURVE_OFFSET)

    if abs(dx) >= abs(dy):
        # outputs leave to the right and inputs enter from the left, even when
        # the target sits behind the source
        return Point(start.x + offset, start.y), Point(end.x - offset, end.y)

    direction = 1.0 if dy >= 0 else -1.0
    return Point(start.x, start.y + direction * offset), Point(end.x, end.y - direction * offset)


def connection_for(edge: Edge, stage: StageTransform,
                   position_provider: PositionProvider) -> Optional[RenderableConnection]:
    from_rect = position_provider(edge.from_node_id, edge.from_port_name)
    to_rect = position_provider(edge.to_node_id, edge.to_port_name)
    if from_rect is None or to_rect is None:
        logger.debug("No position for %r yet, skipping", edge)
        return None

    start = stage.to_stage(*Rect(*from_rect).center)
    end = stage.to_stage(*Rect(*to_rect).center)
    control_start, control_end = control_points(start, end)
    return RenderableConnection(
        id=edge.id,
        from_node_id=edge.from_node_id,
        from_port=edge.from_port_name,
        to_node_id=edge.to_node_id,
        to_port=edge.to_port_name,
        start=start,
        end=end,
        control_start=control_start,
        control_end=control_end,
    )


def recompute(graph: Graph, stage: StageTransform,
              position_provider: PositionProvider) -> List[RenderableConnection]:
    connections = []
    for edge in iter_edges(graph):
        connection = connection_for(edge, stage, position_provider)
        if connection is not None:
            connections.append(connection)
    return connections
