import pytest

from nodeflow.core.Errors import RegistryError, UnknownNodeTypeError
from nodeflow.core.NodeTypes import NodeType, NodeTypeRegistry, PortDescriptor
from nodeflow.core.PortTypes import PortType, PortTypeRegistry
from nodeflow.core.Types import CircularBehavior, PortDirection
from nodeflow.noderegistry.NodeRegistry import build_node_types, build_port_types, constant_output_type


class TestPortTypes:

    def test_type_accepts_itself_by_default(self):
        assert PortType("number").accept_types == frozenset({"number"})
        assert PortType("number").name == "number"

    def test_compatibility_is_mutual(self):
        registry = PortTypeRegistry([
            PortType("number", accept_types={"number", "any"}),
            PortType("any", accept_types={"any", "number", "string"}),
            PortType("string"),
        ]).validate()

        assert registry.are_compatible("number", "any")
        assert registry.are_compatible("any", "number")
        # "any" accepts string but string does not accept "any"
        assert not registry.are_compatible("any", "string")
        assert not registry.are_compatible("string", "number")
        with pytest.raises(RegistryError):
            registry.are_compatible("number", "missing")

    def test_duplicate_registration_raises(self):
        registry = PortTypeRegistry([PortType("number")])
        with pytest.raises(RegistryError):
            registry.register(PortType("number"))

    def test_validate_rejects_unknown_accept_type(self):
        registry = PortTypeRegistry([PortType("number", accept_types={"number", "ghost"})])
        with pytest.raises(RegistryError, match="ghost"):
            registry.validate()

    def test_registry_is_frozen_after_validate(self):
        registry = PortTypeRegistry([PortType("number")]).validate()
        with pytest.raises(RegistryError):
            registry.register(PortType("string"))

    def test_unknown_port_type_lookup(self):
        registry = build_port_types()
        assert registry.get("ghost") is None
        with pytest.raises(RegistryError):
            registry["ghost"]
        assert "number" in registry
        assert len(registry) == 4


class TestNodeTypes:

    def test_demo_catalog_validates(self):
        node_types = build_node_types(build_port_types())
        assert "Add" in node_types
        add = node_types["Add"]
        assert [p.name for p in add.ports(PortDirection.INPUT)] == ["a", "b"]
        assert add.get_port(PortDirection.OUTPUT, "sum").type == "number"
        assert add.get_port(PortDirection.INPUT, "sum") is None
        assert not add.accepts_many(PortDirection.INPUT, "a")
        assert node_types["Log"].accepts_many(PortDirection.INPUT, "messages")
        assert add.accepts_many(PortDirection.OUTPUT, "sum")

    def test_unknown_node_type(self):
        node_types = build_node_types(build_port_types())
        assert node_types.get("Nope") is None
        with pytest.raises(UnknownNodeTypeError) as excinfo:
            node_types["Nope"]
        assert excinfo.value.type_name == "Nope"

    def test_duplicate_node_type(self):
        registry = NodeTypeRegistry([NodeType("Number")])
        with pytest.raises(RegistryError):
            registry.register(NodeType("Number"))

    def test_port_referencing_unknown_type(self):
        port_types = PortTypeRegistry([PortType("number")]).validate()
        registry = NodeTypeRegistry([NodeType("Bad", inputs=[PortDescriptor("in", "color")])])
        with pytest.raises(RegistryError, match="color"):
            registry.validate(port_types)

    def test_duplicate_port_name(self):
        port_types = PortTypeRegistry([PortType("number")]).validate()
        registry = NodeTypeRegistry([
            NodeType("Bad", inputs=[PortDescriptor("a", "number"), PortDescriptor("a", "number")]),
        ])
        with pytest.raises(RegistryError):
            registry.validate(port_types)

    def test_dynamic_ports(self):
        constant = build_node_types(build_port_types())["Constant"]
        dynamic = list(constant.dynamic_ports())
        assert [(d, p.name) for d, p in dynamic] == [(PortDirection.OUTPUT, "value")]
        assert dynamic[0][1].effective_type({"kind": "boolean"}) == "boolean"


class TestConstantOutputType:

    @pytest.mark.parametrize("data, expected", [
        ({"kind": "string"}, "string"),
        ({"kind": "boolean"}, "boolean"),
        ({"kind": "vector"}, "number"),
        ({"kind": 3}, "number"),
        ({}, "number"),
    ])
    def test_falls_back_to_number(self, data, expected):
        assert constant_output_type(data) == expected


class TestCircularBehavior:

    @pytest.mark.parametrize("text, expected", [
        ("forbid", CircularBehavior.FORBID),
        ("WARN", CircularBehavior.WARN),
        (" allow ", CircularBehavior.ALLOW),
    ])
    def test_parse(self, text, expected):
        assert CircularBehavior.parse(text) is expected

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValueError):
            CircularBehavior.parse("sometimes")
