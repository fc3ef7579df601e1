from fastapi.testclient import TestClient

from nodecanvas.config import Settings
from nodecanvas.core.Errors import ProviderRejected
from nodecanvas.generation.provider import ImageProvider
from nodecanvas.noderegistry.ImageNodes import ImageData
from nodecanvas.server.main import app
from nodecanvas.server.state import graph_state

CAT = ImageData(b"cat", "image/png")


class StubProvider(ImageProvider):
    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    async def generate(self, prompt, reference=None):
        self.calls.append((prompt, reference))
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class TestGraphRoutes:

    def setup_method(self):
        self.provider = StubProvider()
        graph_state.reset(settings=Settings(), provider=self.provider, seed_demo=False)
        self.client = TestClient(app)

    def add(self, node_type, config=None, position=None):
        body = {"type": node_type, "config": config}
        if position is not None:
            body["position"] = position
        response = self.client.post("/api/nodes", json=body)
        assert response.status_code == 201
        return response.json()["id"]

    def connect(self, from_node, from_pin, to_node, to_pin):
        return self.client.post("/api/connections", json={
            "fromNode": from_node, "fromPin": from_pin, "toNode": to_node, "toPin": to_pin,
        })

    def test_health(self):
        assert self.client.get("/health").json() == {"status": "ok"}

    def test_node_types(self):
        types = {t["type"] for t in self.client.get("/api/node-types").json()}
        assert types == {"number", "math", "string", "print", "image-source", "generator"}

    def test_create_and_view(self):
        node_id = self.add("number", {"value": 3}, {"x": 10, "y": 20})
        view = self.client.get("/api/graph").json()
        assert view["nodes"][0]["id"] == node_id
        assert view["nodes"][0]["config"]["value"] == 3
        assert view["nodes"][0]["position"] == {"x": 10, "y": 20}

    def test_unknown_type_falls_back(self):
        response = self.client.post("/api/nodes", json={"type": "warp-drive"})
        assert response.json()["type"] == "number"

    def test_execute_propagates(self):
        a = self.add("number", {"value": 10})
        m = self.add("math", {"operation": "multiply", "valueB": 5})
        p = self.add("print")
        assert self.connect(a, 0, m, 0).status_code == 201
        assert self.connect(m, 0, p, 0).status_code == 201

        result = self.client.post("/api/execute").json()

        assert result["outputs"][str(m)] == [50]
        assert any(line.endswith("Output: 50") for line in result["log"])
        log = self.client.get("/api/log").json()
        assert [entry["message"] for entry in log] == [
            "=== Graph execution started ===",
            "Output: 50",
            "=== Graph execution finished ===",
        ]

    def test_execute_topological(self):
        p = self.add("print")
        a = self.add("number", {"value": 7})
        self.connect(a, 0, p, 0)
        assert "Output: none" in self.client.post("/api/execute").json()["log"][1]
        assert "Output: 7" in self.client.post("/api/execute?order=topological").json()["log"][-2]

    def test_execute_bad_order(self):
        assert self.client.post("/api/execute?order=sideways").status_code == 400

    def test_duplicate_connection_is_idempotent(self):
        a = self.add("number")
        p = self.add("print")
        first = self.connect(a, 0, p, 0)
        second = self.connect(a, 0, p, 0)
        assert second.status_code == 201
        assert second.json()["id"] == first.json()["id"]
        assert len(self.client.get("/api/graph").json()["connections"]) == 1

    def test_occupied_input_conflict(self):
        a = self.add("number")
        b = self.add("number")
        p = self.add("print")
        self.connect(a, 0, p, 0)
        response = self.connect(b, 0, p, 0)
        assert response.status_code == 409
        assert response.json()["detail"]["reason"] == "input-occupied"
        log = self.client.get("/api/log").json()
        assert log[-1]["level"] == "error"

    def test_other_rejections_are_bad_requests(self):
        s = self.add("string")
        m = self.add("math")
        assert self.connect(m, 0, m, 0).json()["detail"]["reason"] == "self-connection"
        assert self.connect(s, 0, m, 0).json()["detail"]["reason"] == "type-mismatch"
        assert self.connect(s, 3, m, 0).json()["detail"]["reason"] == "invalid-pin"
        assert self.connect(s, 0, 99, 0).status_code == 400

    def test_connection_includes_curve(self):
        a = self.add("number", position={"x": 0, "y": 0})
        p = self.add("print", position={"x": 400, "y": 0})
        curve = self.connect(a, 0, p, 0).json()["curve"]
        assert curve["end"]["x"] == 400

    def test_delete_node_cascades(self):
        a = self.add("number")
        p = self.add("print")
        self.connect(a, 0, p, 0)
        assert self.client.delete(f"/api/nodes/{a}").status_code == 204
        view = self.client.get("/api/graph").json()
        assert [n["id"] for n in view["nodes"]] == [p]
        assert view["connections"] == []
        assert self.client.delete(f"/api/nodes/{a}").status_code == 204

    def test_delete_connection(self):
        a = self.add("number")
        p = self.add("print")
        connection_id = self.connect(a, 0, p, 0).json()["id"]
        assert self.client.delete(f"/api/connections/{connection_id}").status_code == 204
        assert self.client.get("/api/graph").json()["connections"] == []

    def test_update_config_and_position(self):
        m = self.add("math")
        response = self.client.put(f"/api/nodes/{m}/config", json={"operation": "divide"})
        assert response.json()["config"]["operation"] == "divide"
        assert self.client.put(f"/api/nodes/{m}/position", json={"x": 5, "y": 6}).status_code == 204
        assert self.client.get("/api/graph").json()["nodes"][0]["position"] == {"x": 5, "y": 6}
        assert self.client.put("/api/nodes/99/config", json={}).status_code == 404
        assert self.client.put("/api/nodes/99/position", json={"x": 0, "y": 0}).status_code == 404

    def test_clear(self):
        self.add("number")
        assert self.client.post("/api/clear").status_code == 204
        assert self.client.get("/api/graph").json()["nodes"] == []

    def test_generate(self):
        self.provider.results = [CAT]
        g = self.add("generator")
        response = self.client.post(f"/api/nodes/{g}/generate", json={"prompt": "a cat"})
        body = response.json()
        assert response.status_code == 200
        assert body["isLoading"] is False
        assert body["image"] == CAT.to_data_url()
        assert self.provider.calls == [("a cat", None)]
        assert self.client.get(f"/api/nodes/{g}/generation").json()["prompt"] == "a cat"

    def test_generate_failure_is_reported_in_state(self):
        self.provider.results = [ProviderRejected("blocked by safety filter")]
        g = self.add("generator")
        body = self.client.post(f"/api/nodes/{g}/generate", json={}).json()
        assert body["error"] == "blocked by safety filter"
        assert body["isLoading"] is False
        assert "blocked by safety filter" in self.client.get("/api/log").json()[-1]["message"]

    def test_generate_on_wrong_node(self):
        n = self.add("number")
        assert self.client.post(f"/api/nodes/{n}/generate", json={}).status_code == 400
        assert self.client.post("/api/nodes/99/generate", json={}).status_code == 404
        assert self.client.get("/api/nodes/99/generation").status_code == 404

    def test_project_save_and_load(self):
        a = self.add("number", {"value": 2}, {"x": 1, "y": 2})
        p = self.add("print")
        self.connect(a, 0, p, 0)
        document = self.client.get("/api/project").json()
        assert document["version"] == 1

        self.client.post("/api/clear")
        view = self.client.put("/api/project", json=document).json()
        assert [n["id"] for n in view["nodes"]] == [a, p]
        assert view["nodes"][0]["position"] == {"x": 1, "y": 2}
        assert len(view["connections"]) == 1

    def test_project_without_version(self):
        response = self.client.put("/api/project", json={"nodes": []})
        assert response.status_code == 400
