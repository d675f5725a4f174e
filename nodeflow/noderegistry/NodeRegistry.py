from typing import Any, Mapping, Tuple, Union

from ..core.Actions import DefaultNode, DefaultWire
from ..core.GraphReducer import CycleCallback, ReducerConfig
from ..core.NodeTypes import NodeType, NodeTypeRegistry, PortDescriptor
from ..core.PortTypes import PortType, PortTypeRegistry
from ..core.Types import CircularBehavior

# =========================================================================================
# DEMO CATALOG
#
# Port types and node types used by the server's demo editor and by the tests.
# Hosts embedding nodeflow normally build their own registries; this module is
# an example of how to do it.
# =========================================================================================

NUMBER = "number"
STRING = "string"
BOOLEAN = "boolean"
VECTOR = "vector"

SCALAR_TYPES = (NUMBER, STRING, BOOLEAN)


def constant_output_type(data: Mapping[str, Any]) -> str:
    """A Constant node emits whatever scalar type its ``kind`` input names."""
    kind = data.get("kind")
    return kind if isinstance(kind, str) and kind in SCALAR_TYPES else NUMBER


def build_port_types() -> PortTypeRegistry:
    return PortTypeRegistry([
        PortType(NUMBER, label="Number", color="red", default_value=0,
                 controls=[{"type": "number", "name": "number", "label": "Number"}]),
        PortType(STRING, label="Text", color="green", default_value="",
                 controls=[{"type": "text", "name": "string", "label": "Text"}]),
        PortType(BOOLEAN, label="True/False", color="blue", default_value=False,
                 controls=[{"type": "checkbox", "name": "boolean", "label": "True/False"}]),
        PortType(VECTOR, label="Vector", color="purple", default_value=[0, 0, 0]),
    ]).validate()


def build_node_types(port_types: PortTypeRegistry) -> NodeTypeRegistry:
    return NodeTypeRegistry([
        NodeType(
            "Number",
            description="Outputs a numeric value",
            outputs=[PortDescriptor("value", NUMBER)],
            controls=[{"type": "number", "name": "number"}],
        ),
        NodeType(
            "Text",
            description="Outputs a text value",
            outputs=[PortDescriptor("value", STRING)],
        ),
        NodeType(
            "Boolean",
            description="Outputs true or false",
            outputs=[PortDescriptor("value", BOOLEAN)],
        ),
        NodeType(
            "Add",
            description="Adds two numbers",
            inputs=[PortDescriptor("a", NUMBER), PortDescriptor("b", NUMBER)],
            outputs=[PortDescriptor("sum", NUMBER)],
        ),
        NodeType(
            "Compare",
            description="True when a is less than b",
            inputs=[PortDescriptor("a", NUMBER), PortDescriptor("b", NUMBER)],
            outputs=[PortDescriptor("result", BOOLEAN)],
        ),
        NodeType(
            "Join",
            description="Concatenates two strings",
            inputs=[PortDescriptor("left", STRING), PortDescriptor("right", STRING)],
            outputs=[PortDescriptor("joined", STRING)],
        ),
        NodeType(
            "Vector",
            description="Builds a vector from three numbers",
            inputs=[PortDescriptor("x", NUMBER), PortDescriptor("y", NUMBER), PortDescriptor("z", NUMBER)],
            outputs=[PortDescriptor("vec", VECTOR)],
        ),
        NodeType(
            "Constant",
            description="Outputs a value whose type follows the selected kind",
            inputs=[PortDescriptor("kind", STRING)],
            outputs=[PortDescriptor("value", NUMBER, resolve_type=constant_output_type)],
            initial_data={"kind": NUMBER},
        ),
        NodeType(
            "Log",
            description="Collects any number of text messages",
            inputs=[PortDescriptor("messages", STRING, multi=True)],
        ),
        NodeType(
            "Display",
            description="Root output of the graph",
            inputs=[PortDescriptor("value", NUMBER)],
            initial_width=160,
            deletable=False,
            root=True,
        ),
    ]).validate(port_types)


DEFAULT_NODES: Tuple[DefaultNode, ...] = (
    DefaultNode("Number", x=80, y=100, key="a", wires=(DefaultWire("value", "add", "a"),)),
    DefaultNode("Number", x=80, y=260, key="b", wires=(DefaultWire("value", "add", "b"),)),
    DefaultNode("Add", x=340, y=180, key="add", wires=(DefaultWire("sum", "display", "value"),)),
    DefaultNode("Display", x=580, y=180, key="display"),
)


def build_config(circular_behavior: Union[CircularBehavior, CycleCallback] = CircularBehavior.FORBID,
                 **kwargs) -> ReducerConfig:
    port_types = build_port_types()
    return ReducerConfig(
        node_types=build_node_types(port_types),
        port_types=port_types,
        circular_behavior=circular_behavior,
        **kwargs,
    )
