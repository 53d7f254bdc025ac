import json

import pytest
from fastapi.testclient import TestClient

from cgraph.persistence import InvalidGraphFile
from webapp import create_app

from graph_fakes import SAMPLE_GRAPH


@pytest.fixture
def client(service):
    return TestClient(create_app(service))


@pytest.fixture
def seeded(client):
    r = client.post("/api/graphs/import", json={"content": json.dumps(SAMPLE_GRAPH)})
    assert r.status_code == 200
    return client


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_graph_payload_has_no_embeddings(seeded):
    data = seeded.get("/api/graph").json()
    assert data["graph"]["name"] == "Sample"
    assert len(data["nodes"]) == 5
    assert all("embedding" not in n for n in data["nodes"])


def test_invalid_import_is_rejected(client):
    r = client.post("/api/graphs/import", json={"content": "[1, 2]"})
    assert r.status_code == 400
    assert r.json()["detail"] == str(InvalidGraphFile())


def test_graph_library(client):
    first = client.post("/api/graphs/new").json()
    second = client.post("/api/graphs/new").json()

    graphs = client.get("/api/graphs").json()["graphs"]
    assert [g["id"] for g in graphs][:2] == [second["id"], first["id"]]
    assert graphs[0]["active"] is True

    assert client.post(f"/api/graphs/{first['id']}/restore").status_code == 200
    renamed = client.post(f"/api/graphs/{first['id']}/rename", json={"name": "Mine"}).json()
    assert renamed["name"] == "Mine"

    assert client.delete(f"/api/graphs/{second['id']}").json() == {"deleted_graph": second["id"]}
    assert client.post("/api/graphs/missing/restore").status_code == 404


def test_export_and_save(seeded, tmp_path):
    r = seeded.get("/api/graphs/export")
    assert r.status_code == 200
    assert 'filename="Sample.json"' in r.headers["content-disposition"]
    assert r.json()["id"] == "g1"

    saved = seeded.post("/api/graphs/save").json()
    assert saved["ok"] is True
    assert (tmp_path / "g1.json").exists()


def test_chat_creates_node(client):
    data = client.post("/api/chat", json={"message": "sql table"}).json()
    assert data["ok"] is True
    assert data["reply"] == "Answer about sql table"
    nodes = client.get("/api/graph").json()["nodes"]
    assert [n["llmAnswer"] for n in nodes] == ["Answer about sql table"]


def test_link_and_auto_cluster_with_layout_ack(seeded):
    linked = seeded.post("/api/graph/link").json()
    assert [(e["from"], e["to"]) for e in linked["added"]] == [("n1", "n2")]

    clustered = seeded.post("/api/graph/auto-cluster").json()
    assert [c["cluster_id"] for c in clustered["clusters"]] == ["cluster_1", "cluster_2", "cluster_3"]
    assert clustered["nodes"][0]["color"]["background"] == "#e11d48"

    layout = seeded.get("/api/graph/layout").json()
    assert layout["pending"] is True
    ack = seeded.post("/api/graph/layout/ack", json={"generation": clustered["generation"]}).json()
    assert ack["applied"] is True
    assert len(ack["positions"]) == 5


def test_cluster_endpoints(seeded):
    r = seeded.post("/api/graph/clusters", json={"node_ids": ["n1"]})
    assert r.status_code == 400

    r = seeded.post("/api/graph/clusters", json={"nodes": ["n1", "n3"], "name": "Pair"})
    assert r.status_code == 200
    assert r.json()["added"][0]["label"] == "Pair"

    seeded.post("/api/graph/topic", json={"topic": "dog"})
    info = seeded.get("/api/graph/clusters/topic_dog").json()
    assert info["count"] == 2

    seeded.post("/api/graph/clusters/topic_dog/rename", json={"name": "Pets"})
    labels = {n["id"]: n["label"] for n in seeded.get("/api/graph").json()["nodes"]}
    assert labels["n3"] == "cat dog\n[Pets]"

    assert seeded.post("/api/graph/clusters/topic_dog/dissolve").status_code == 200
    assert seeded.get("/api/graph/clusters").json() == {"clusters": []}
    assert seeded.post("/api/graph/clusters/topic_dog/dissolve").status_code == 404
    assert seeded.get("/api/graph/clusters/nope").status_code == 404


def test_node_edit_and_delete(seeded):
    r = seeded.patch("/api/graph/nodes/n1", json={"label": "renamed", "comment": "note"})
    assert r.json()["title"] == "note"
    assert seeded.patch("/api/graph/nodes/n1", json={"size": -1}).status_code == 400
    assert seeded.patch("/api/graph/nodes/ghost", json={"label": "x"}).status_code == 404

    assert seeded.delete("/api/graph/nodes/n1").json()["deleted_node"] == "n1"


def test_filter_limits_visible_nodes(seeded):
    data = seeded.post("/api/graph/filter", json={"label": "dog"}).json()
    assert [n["id"] for n in data["nodes"]] == ["n3", "n4"]
    data = seeded.post("/api/graph/filter", json={}).json()
    assert len(data["nodes"]) == 5


def test_interaction_cluster_select(seeded):
    state = seeded.post("/api/interaction/mode", json={"mode": "cluster_select"}).json()
    assert state["mode"] == "cluster_select"

    seeded.post("/api/interaction/click", json={"node_id": "n1"})
    state = seeded.post("/api/interaction/click", json={"node_id": "n5"}).json()
    assert state["naming_prompt"] is True

    out = seeded.post("/api/interaction/submit-cluster", json={"name": "Odd"}).json()
    assert out["added"][0]["label"] == "Odd"
    assert out["state"]["mode"] == "browse"

    state = seeded.post("/api/interaction/mode", json={"mode": "browse", "toggle": True}).json()
    assert state["mode"] == "browse"


def test_interaction_edit_and_hover(seeded):
    seeded.post("/api/interaction/mode", json={"mode": "edit"})
    state = seeded.post("/api/interaction/click", json={"node_id": "n2"}).json()
    assert state["editor"]["node_id"] == "n2"

    out = seeded.post("/api/interaction/save-edit", json={"label": "edited"}).json()
    assert out["node"]["label"] == "edited"
    assert seeded.get("/api/interaction/hover/n2").json()["tooltip"] == "edited"

    assert seeded.post("/api/interaction/delete-node").status_code == 400


def test_text_and_structured_commands(seeded):
    data = seeded.post("/api/command", json={"command": "auto cluster"}).json()
    assert data["intent"] == "auto_cluster"
    assert "C1" in data["answer"]

    data = seeded.post("/api/command", json={"type": "list_clusters"}).json()
    assert len(data["result"]) == 3

    assert seeded.post("/api/command", json={"command": "???"}).status_code == 400


def test_command_catalogue(client):
    commands = client.get("/api/commands").json()["commands"]
    assert {"intent": "auto_cluster", "label": "Automatically cluster visible nodes"} in commands
    assert len(commands) == 11


def test_duplicate_node_import_still_clusters(client):
    payload = dict(SAMPLE_GRAPH, nodes=SAMPLE_GRAPH["nodes"] + [SAMPLE_GRAPH["nodes"][0]])
    r = client.post("/api/graphs/import", json={"content": json.dumps(payload)})
    assert r.status_code == 200
    assert r.json()["node_count"] == 5

    r = client.post("/api/graph/auto-cluster")
    assert r.status_code == 200
    assert len(r.json()["clusters"]) == 3


def test_engine_errors_map_to_client_codes(seeded, service, monkeypatch):
    def broken(*args, **kwargs):
        raise ValueError("Duplicate node ids in graph update")

    monkeypatch.setattr(service, "apply", broken)
    assert seeded.post("/api/graph/link").status_code == 400
    assert seeded.post("/api/graph/topic", json={"topic": "dog"}).status_code == 400
    assert seeded.post("/api/graph/auto-cluster").status_code == 400
