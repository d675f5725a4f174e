import pytest
from fastapi.testclient import TestClient

from nodeflow.noderegistry.NodeRegistry import DEFAULT_NODES
from nodeflow.server.main import create_app
from nodeflow.server.settings import Settings
from nodeflow.server.state import EditorSession

from graph_helpers import make_config


@pytest.fixture
def session():
    return EditorSession(make_config())


@pytest.fixture
def client(session):
    return TestClient(create_app(session=session, settings=Settings()))


def connect(client, source, source_port, target, target_port):
    return client.post("/api/connections", json={
        "sourceNodeId": source, "sourcePort": source_port,
        "targetNodeId": target, "targetPort": target_port,
    })


def add_pair(client):
    client.post("/api/nodes", json={"type": "Number"})
    client.post("/api/nodes", json={"type": "Add", "x": 200, "y": 50})
    return connect(client, "n1", "value", "n2", "a")


class TestCatalogRoutes:

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok", "nodes": 0}

    def test_node_types(self, client):
        types = {t["type"]: t for t in client.get("/api/node-types").json()}
        assert [p["name"] for p in types["Add"]["inputs"]] == ["a", "b"]
        assert types["Constant"]["outputs"][0]["dynamic"] is True
        assert types["Display"]["deletable"] is False

    def test_port_types(self, client):
        ports = {p["type"]: p for p in client.get("/api/port-types").json()}
        assert ports["number"]["acceptTypes"] == ["number"]
        assert ports["vector"]["defaultValue"] == [0, 0, 0]


class TestNodeRoutes:

    def test_create_node(self, client):
        response = client.post("/api/nodes", json={"type": "Add", "x": 10, "y": 20, "data": {"a": 3}})

        assert response.status_code == 201
        body = response.json()
        assert body["created"] == ["n1"]
        assert body["diagnostics"] == []
        assert body["nodes"]["n1"]["inputData"] == {"a": 3, "b": 0}

    def test_unknown_node_type_is_a_bad_request(self, client):
        response = client.post("/api/nodes", json={"type": "Teleporter"})
        assert response.status_code == 400
        assert "Teleporter" in response.json()["detail"]

    def test_get_and_delete_node(self, client):
        add_pair(client)
        assert client.get("/api/nodes/n2").json()["connections"]["inputs"]["a"] == [
            {"nodeId": "n1", "portName": "value"}]
        assert client.get("/api/nodes/ghost").status_code == 404

        body = client.delete("/api/nodes/n1").json()
        assert list(body["nodes"]) == ["n2"]
        assert body["nodes"]["n2"]["connections"]["inputs"] == {}

    def test_display_node_cannot_be_deleted(self, client):
        client.post("/api/nodes", json={"type": "Display"})
        client.post("/api/nodes", json={"type": "Add"})

        response = client.delete("/api/nodes/n1")
        assert response.status_code == 409
        assert "Display" in response.json()["detail"]
        assert list(client.get("/api/graph").json()) == ["n1", "n2"]

        assert list(client.delete("/api/nodes/n2").json()["nodes"]) == ["n1"]

    def test_set_position_and_port_value(self, client):
        client.post("/api/nodes", json={"type": "Add"})

        body = client.put("/api/nodes/n1/position", json={"x": 30, "y": 40}).json()
        assert (body["nodes"]["n1"]["x"], body["nodes"]["n1"]["y"]) == (30, 40)

        body = client.put("/api/nodes/n1/ports/b", json={"value": 12}).json()
        assert body["nodes"]["n1"]["inputData"]["b"] == 12

        body = client.put("/api/nodes/n1/ports/sum", json={"value": 1}).json()
        assert [d["kind"] for d in body["diagnostics"]] == ["NOT_FOUND"]

    def test_disconnect_port(self, client):
        add_pair(client)
        assert client.delete("/api/nodes/n1/ports/value/connections?direction=sideways").status_code == 400

        body = client.delete("/api/nodes/n1/ports/value/connections?direction=outputs").json()
        assert body["nodes"]["n2"]["connections"]["inputs"] == {}


class TestConnectionRoutes:

    def test_connect_and_reject_cycle(self, client):
        body = add_pair(client).json()
        assert body["diagnostics"] == []

        body = connect(client, "n2", "sum", "n2", "b").json()
        assert body["diagnostics"][0]["kind"] == "CYCLE_REJECTED"
        assert body["diagnostics"][0]["connectionId"] == "n2sumn2b"

        notifications = client.get("/api/notifications").json()
        assert [n["kind"] for n in notifications] == ["CYCLE_REJECTED"]
        assert client.delete("/api/notifications").status_code == 204
        assert client.get("/api/notifications").json() == []

    def test_remove_connection(self, client):
        add_pair(client)
        response = client.request("DELETE", "/api/connections", json={
            "sourceNodeId": "n2", "sourcePort": "a", "targetNodeId": "n1", "targetPort": "value",
        })
        assert response.json()["diagnostics"] == []
        assert response.json()["nodes"]["n1"]["connections"]["outputs"] == {}

    def test_renderable_connections(self, client):
        add_pair(client)
        assert client.get("/api/connections").json() == []

        response = client.post("/api/positions", json=[
            {"nodeId": "n1", "portName": "value", "x": 0, "y": 0, "width": 10, "height": 10},
            {"nodeId": "n2", "portName": "a", "x": 100, "y": 0, "width": 10, "height": 10},
        ])
        assert response.status_code == 204

        (connection,) = client.get("/api/connections").json()
        assert connection["id"] == "n1valuen2a"
        assert connection["start"] == {"x": 5, "y": 5}
        assert connection["path"].startswith("M5,5 C")

        assert client.post("/api/nodes/n1/reposition").status_code == 204
        assert client.get("/api/connections").json() == []
        assert client.post("/api/nodes/ghost/reposition").status_code == 404


class TestGraphRoutes:

    def test_put_and_get_graph(self, client):
        add_pair(client)
        data = client.get("/api/graph").json()

        other = TestClient(create_app(session=EditorSession(make_config()), settings=Settings()))
        body = other.put("/api/graph", json=data).json()
        assert body["diagnostics"] == []
        assert other.get("/api/graph").json() == data

    def test_put_invalid_graph(self, client):
        response = client.put("/api/graph", json={"n1": {"x": 0}})
        assert response.status_code == 400

    def test_stage(self, client):
        assert client.get("/api/stage").json() == {"scale": 1.0, "translate": {"x": 0.0, "y": 0.0}}

        body = client.put("/api/stage", json={"scale": 50, "translateY": 12}).json()
        assert body == {"scale": 7.0, "translate": {"x": 0.0, "y": 12.0}}

    def test_app_built_from_settings_hydrates_defaults(self):
        client = TestClient(create_app(settings=Settings()))
        nodes = client.get("/api/graph").json()
        assert len(nodes) == len(DEFAULT_NODES)
