# cluster/intents.py
from __future__ import annotations
from typing import Dict, List

# Graph command ids -> help text. Order is the order shown to users;
# backend dispatch and formatters key on these ids.
COMMANDS: Dict[str, str] = {
    "link_related": "Link semantically related nodes",
    "auto_cluster": "Automatically cluster visible nodes",
    "cluster_topic": "Group nodes mentioning a topic",
    "create_cluster": "Build a named cluster from selected nodes",
    "rename_cluster": "Rename a cluster",
    "dissolve_cluster": "Dissolve a cluster (keep its edges)",
    "cluster_members": "Show the members of a cluster",
    "list_clusters": "List all clusters",
    "delete_node": "Delete a node and its edges",
    "set_filter": "Filter visible nodes by label or group",
    "clear_filter": "Show all nodes again",
}

INTENTS: List[str] = list(COMMANDS)

_QUOTES = "`\"'"

def list_intents() -> List[str]:
    return list(INTENTS)

def label_of(intent: str) -> str:
    return COMMANDS.get(intent, intent)

def normalize_name(name: str) -> str:
    """Names typed in commands may be wrapped in backticks or quotes."""
    if not name:
        return name
    return name.strip().strip(_QUOTES).strip()
