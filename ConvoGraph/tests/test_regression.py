"""
Regression table for text commands routed through GraphService.execute_text.

Each case runs against a fresh copy of the sample graph:
    n1 "sql table", n2 "sql table query", n3 "cat dog", n4 "dog pet", n5 "rain sun"
"""
import json
import re
from typing import Any, Dict, Tuple

import pytest
from fastapi import HTTPException

from cgraph.model import Edge
from cluster.backend import CommandParser, check_graph
from graph_fakes import node


def contains_text(answer: str, *texts: str) -> Tuple[bool, str]:
    """Check if answer contains all specified texts (case-insensitive)."""
    answer_lower = str(answer).lower()
    for text in texts:
        if text.lower() not in answer_lower:
            return False, f"Expected to find '{text}' in answer"
    return True, "OK"

def contains_count(answer: str, min_count: int = 1) -> Tuple[bool, str]:
    """Check if answer contains a count >= min_count."""
    matches = re.findall(r"\b(\d+)\b", answer)
    if not matches:
        return False, "No count found in answer"
    counts = [int(m) for m in matches]
    if max(counts) >= min_count:
        return True, "OK"
    return False, f"Expected count >= {min_count}, found {max(counts)}"

def validate_result_structure(result: Dict[str, Any]) -> Tuple[bool, str]:
    """Command results must carry status/intent/answer and be JSON serializable."""
    for key in ("status", "intent", "message", "answer", "graph"):
        if key not in result:
            return False, f"Missing '{key}' field"
    try:
        json.dumps(result)
    except (TypeError, ValueError) as e:
        return False, f"Result not JSON serializable: {e}"
    return True, "Structure valid"


TEST_CASES = [
    # --- linking ---
    {
        "name": "link_related - only the sql pair is close enough",
        "command": "link related",
        "expected_intent": "link_related",
        "validate": lambda a: contains_text(a, "added 1 related edges"),
    },
    {
        "name": "link_related - find related alias",
        "command": "find related",
        "expected_intent": "link_related",
        "validate": lambda a: contains_count(a, 1),
    },

    # --- automatic clustering ---
    {
        "name": "auto_cluster - lexical groups",
        "command": "auto cluster",
        "expected_intent": "auto_cluster",
        "validate": lambda a: contains_text(a, "3 clusters", "C1", "C2", "C3"),
    },
    {
        "name": "cluster_topic - sql",
        "command": "cluster topic sql",
        "expected_intent": "cluster_topic",
        "validate": lambda a: contains_text(a, "grouped 2 nodes", "sql"),
    },

    # --- manual clusters ---
    {
        "name": "create_cluster - named",
        "command": "cluster n1, n3 n5 as Mixed Bag",
        "expected_intent": "create_cluster",
        "validate": lambda a: contains_text(a, "Mixed Bag", "3 edges"),
    },
    {
        "name": "create_cluster - default name",
        "command": "cluster n1 n2",
        "expected_intent": "create_cluster",
        "validate": lambda a: contains_text(a, "Cluster 2", "1 edges"),
    },

    # --- lifecycle on an empty cluster list ---
    {
        "name": "list_clusters - none yet",
        "command": "list clusters",
        "expected_intent": "list_clusters",
        "validate": lambda a: contains_text(a, "no clusters"),
    },

    # --- nodes & filters ---
    {
        "name": "delete_node - existing",
        "command": "delete node n5",
        "expected_intent": "delete_node",
        "validate": lambda a: contains_text(a, "n5", "deleted"),
    },
    {
        "name": "set_filter - label",
        "command": "filter label sql",
        "expected_intent": "set_filter",
        "validate": lambda a: contains_text(a, "filter updated"),
    },
    {
        "name": "clear_filter",
        "command": "clear filter",
        "expected_intent": "clear_filter",
        "validate": lambda a: contains_text(a, "filter cleared"),
    },
]


@pytest.mark.parametrize("case", TEST_CASES, ids=[c["name"] for c in TEST_CASES])
def test_command(seeded_service, case):
    result = seeded_service.execute_text(case["command"])

    assert result["intent"] == case["expected_intent"]
    ok, msg = validate_result_structure(result)
    assert ok, msg
    ok, msg = case["validate"](result["answer"])
    assert ok, f"{msg}\n--- answer ---\n{result['answer']}"


# --- multi-step flows ---

def test_cluster_lifecycle_flow(seeded_service):
    seeded_service.execute_text("auto cluster")

    listed = seeded_service.execute_text("list clusters")
    assert "cluster_1" in listed["answer"]

    members = seeded_service.execute_text("members of cluster cluster_1")
    assert "`n1`" in members["answer"] and "`n2`" in members["answer"]

    renamed = seeded_service.execute_text("rename cluster cluster_2 to `Pets`")
    assert renamed["result"] == ["n3", "n4"]
    assert seeded_service.snapshot().get_node("n3").label == "cat dog\n[Pets]"

    dissolved = seeded_service.execute_text("dissolve cluster cluster_2")
    assert dissolved["result"] == ["n3", "n4"]
    assert seeded_service.snapshot().get_node("n3").group is None


def test_filtered_auto_cluster_only_touches_visible_nodes(seeded_service):
    seeded_service.execute_text("filter label dog")
    result = seeded_service.execute_text("auto cluster")

    assert [c["members"] for c in result["result"]["clusters"]] == [["n3", "n4"]]
    assert seeded_service.snapshot().get_node("n1").group is None


def test_auto_cluster_positions_wait_for_ack(seeded_service):
    result = seeded_service.execute_text("auto cluster")
    generation = result["result"]["generation"]

    state = seeded_service.layout_state()
    assert state["pending"] is True
    assert state["positions"] == {}

    ack = seeded_service.acknowledge_layout(generation)
    assert ack["applied"] is True
    assert set(ack["positions"]) == {"n1", "n2", "n3", "n4", "n5"}
    assert seeded_service.acknowledge_layout(generation)["applied"] is False


# --- errors ---

@pytest.mark.parametrize("command,status", [
    ("dance wildly", 400),
    ("", 400),
    ("cluster n1", 400),
    ("cluster n1 ghost", 404),
    ("members of cluster cluster_9", 404),
    ("dissolve cluster cluster_9", 404),
    ("delete node ghost", 404),
])
def test_command_errors(seeded_service, command, status):
    with pytest.raises(HTTPException) as excinfo:
        seeded_service.execute_text(command)
    assert excinfo.value.status_code == status


def test_unknown_structured_command(seeded_service):
    with pytest.raises(HTTPException) as excinfo:
        seeded_service.execute({"type": "explode"})
    assert excinfo.value.status_code == 400


def test_parser_shapes():
    parser = CommandParser()
    assert parser.parse("Rename cluster cluster_1 to 'Data'") == {
        "type": "rename_cluster", "cluster_id": "cluster_1", "new_name": "Data",
    }
    assert parser.parse("auto-cluster") == {"type": "auto_cluster"}
    assert parser.parse("cluster by topic weather") == {"type": "cluster_topic", "topic": "weather"}
    assert parser.parse("filter group cluster_2") == {"type": "set_filter", "group": "cluster_2"}


def test_check_graph_rejects_bad_updates():
    a, b = node("a", "a"), node("b", "b")
    check_graph([a, b], [])
    with pytest.raises(ValueError):
        check_graph([a, a], [])
    with pytest.raises(ValueError):
        check_graph([a], [Edge(id="e", source="a", target="b")])
