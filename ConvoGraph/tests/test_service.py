import json
import threading

from cluster.modes import Mode

from graph_fakes import SAMPLE_GRAPH


def test_gesture_holds_the_lock_across_read_and_update(seeded_service, monkeypatch):
    svc = seeded_service
    svc.set_mode(Mode.CLUSTER_SELECT)
    svc.select(["n1", "n3"])

    other = threading.Thread(target=svc.auto_cluster)
    blocked = []
    read_snapshot = svc.controller._get_snapshot

    def snapshot_then_race():
        snap = read_snapshot()
        if other.ident is None:
            other.start()
            other.join(timeout=0.2)
            blocked.append(other.is_alive())
        return snap

    monkeypatch.setattr(svc.controller, "_get_snapshot", snapshot_then_race)
    out = svc.submit_cluster("Pair")
    other.join(timeout=5)

    assert blocked == [True]
    assert not other.is_alive()
    assert out["added"][0]["label"] == "Pair"
    snap = svc.snapshot()
    assert snap.edge_between("n1", "n3") is not None
    assert [n.group for n in snap.nodes] == ["cluster_1", "cluster_1", "cluster_2", "cluster_2", "cluster_3"]


def test_gestures_report_controller_state(seeded_service):
    svc = seeded_service
    assert svc.set_mode(Mode.EDIT)["mode"] == "edit"
    assert svc.click("n2")["editor"]["node_id"] == "n2"

    out = svc.save_edit(label="edited")
    assert out["node"]["label"] == "edited"
    assert out["state"]["editor"] is None

    svc.click("n5")
    out = svc.delete_edited_node()
    assert out["deleted_node"] == "n5"
    assert "n5" not in svc.snapshot().node_ids()

    assert svc.set_mode(Mode.EDIT, toggle=True)["mode"] == "browse"


def test_layout_positions_follow_the_latest_run(seeded_service):
    svc = seeded_service
    run = svc.auto_cluster()
    svc.acknowledge_layout(run["generation"])
    assert len(svc.layout_state()["positions"]) == 5

    svc.set_filter(label="dog")
    run = svc.auto_cluster()
    state = svc.acknowledge_layout(run["generation"])
    assert set(state["positions"]) == {"n3", "n4"}


def test_deleted_nodes_leave_the_layout(seeded_service):
    svc = seeded_service
    run = svc.auto_cluster()
    svc.acknowledge_layout(run["generation"])

    svc.delete_node("n5")

    assert set(svc.layout_state()["positions"]) == {"n1", "n2", "n3", "n4"}


def test_imported_ids_never_overwrite_a_document(service):
    service.import_graph(json.dumps(SAMPLE_GRAPH))
    service.import_graph(json.dumps(SAMPLE_GRAPH))
    service.import_graph(json.dumps({**SAMPLE_GRAPH, "id": "g1__2"}))

    ids = [g["id"] for g in service.list_graphs()]
    assert len(ids) == 3
    assert len(set(ids)) == 3
    assert "g1" in ids


def test_duplicate_ids_in_import_are_dropped(service):
    payload = dict(SAMPLE_GRAPH, nodes=SAMPLE_GRAPH["nodes"] + [{"id": "n1", "label": "again"}])
    summary = service.import_graph(json.dumps(payload))

    assert summary["node_count"] == 5
    assert service.snapshot().get_node("n1").label == "sql table"
    assert len(service.auto_cluster()["clusters"]) == 3
