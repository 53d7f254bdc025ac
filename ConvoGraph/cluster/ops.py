# cluster/ops.py
"""
Deterministic graph/cluster operations.
All functions take a GraphSnapshot plus an explicit update callback, report the
new node/edge lists through the callback, and return a small result. No I/O,
no LLM calls.
"""
from __future__ import annotations
import uuid
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

from cgraph.model import Edge, GraphSnapshot, Node, UpdateCallback, replace_nodes
from cluster.clustering import set_cluster_tag, strip_cluster_tag

MIN_MANUAL_CLUSTER = 2
EDITOR_DEFAULT_SIZE = 40
EDITOR_DEFAULT_COLOR = "#0ea5e9"


# ---------------------------------------------------------------------------
# Manual cluster builder (edge mesh)
# ---------------------------------------------------------------------------

def can_build_cluster(selection: Sequence[str]) -> bool:
    return len(dict.fromkeys(selection)) >= MIN_MANUAL_CLUSTER

def default_cluster_name(selection: Sequence[str]) -> str:
    return f"Cluster {len(dict.fromkeys(selection))}"

def build_manual_cluster(
    snapshot: GraphSnapshot,
    selection: Sequence[str],
    on_update: UpdateCallback,
    name: Optional[str] = None,
) -> List[Edge]:
    """Fully connect the selected nodes with edges labeled `name`.

    Fewer than two distinct ids is a no-op (returns []); unknown ids raise
    KeyError before anything is emitted.
    """
    ids = list(dict.fromkeys(selection))
    if len(ids) < MIN_MANUAL_CLUSTER:
        return []
    missing = [nid for nid in ids if not snapshot.has_node(nid)]
    if missing:
        raise KeyError(f"Nodes not found: {missing}")

    label = (name or "").strip() or default_cluster_name(ids)
    new_edges: List[Edge] = []
    for i in range(len(ids)):
        for j in range(i + 1, len(ids)):
            new_edges.append(Edge(
                id=f"cluster_edge_{ids[i]}_{ids[j]}_{uuid.uuid4().hex}",
                source=ids[i],
                target=ids[j],
                label=label,
            ))

    on_update(list(snapshot.nodes), list(snapshot.edges) + new_edges)
    return new_edges


# ---------------------------------------------------------------------------
# Cluster lifecycle
# ---------------------------------------------------------------------------

def cluster_members(snapshot: GraphSnapshot, cluster_id: str) -> List[Node]:
    """Nodes whose group is `cluster_id`, in graph order."""
    return [n for n in snapshot.nodes if n.group == cluster_id]

def list_clusters(snapshot: GraphSnapshot) -> List[Dict[str, Any]]:
    """Every group id in first-seen order with its member count."""
    counts: Dict[str, int] = {}
    for node in snapshot.nodes:
        if node.group:
            counts[node.group] = counts.get(node.group, 0) + 1
    return [{"cluster_id": cid, "count": count} for cid, count in counts.items()]

def cluster_info(snapshot: GraphSnapshot, cluster_id: str) -> Dict[str, Any]:
    members = cluster_members(snapshot, cluster_id)
    if not members:
        raise KeyError(f"Cluster '{cluster_id}' not found")
    return {
        "cluster_id": cluster_id,
        "count": len(members),
        "color": members[0].color,
        "members": [{"id": n.id, "label": n.label} for n in members],
    }

def rename_cluster(
    snapshot: GraphSnapshot,
    cluster_id: str,
    new_name: str,
    on_update: UpdateCallback,
) -> List[str]:
    """Rewrite the trailing "[...]" tag of every member to "[new_name]".

    Blank names are a no-op. Returns the ids of the relabeled nodes.
    """
    name = (new_name or "").strip()
    if not name:
        return []
    members = cluster_members(snapshot, cluster_id)
    if not members:
        return []
    updated = {n.id: replace(n, label=set_cluster_tag(n.label, name)) for n in members}
    on_update(replace_nodes(snapshot.nodes, updated), list(snapshot.edges))
    return list(updated)

def dissolve_cluster(
    snapshot: GraphSnapshot,
    cluster_id: str,
    on_update: UpdateCallback,
) -> List[str]:
    """Clear group, color and tag from the members. Edges are kept."""
    members = cluster_members(snapshot, cluster_id)
    if not members:
        return []
    updated = {
        n.id: replace(n, group=None, color=None, label=strip_cluster_tag(n.label))
        for n in members
    }
    on_update(replace_nodes(snapshot.nodes, updated), list(snapshot.edges))
    return list(updated)


# ---------------------------------------------------------------------------
# Direct node edits
# ---------------------------------------------------------------------------

def edit_form(node: Node) -> Dict[str, Any]:
    """Initial values for the per-node attribute editor."""
    return {
        "label": node.label or "",
        "size": node.size or EDITOR_DEFAULT_SIZE,
        "comment": node.title or "",
        "color": node.color or EDITOR_DEFAULT_COLOR,
    }

def edit_node(
    snapshot: GraphSnapshot,
    node_id: str,
    on_update: UpdateCallback,
    label: Optional[str] = None,
    size: Optional[float] = None,
    comment: Optional[str] = None,
    color: Optional[str] = None,
) -> Node:
    node = snapshot.get_node(node_id)
    changes: Dict[str, Any] = {}
    if label is not None:
        changes["label"] = label
    if size is not None:
        if size <= 0:
            raise ValueError(f"Node size must be positive, got {size}")
        changes["size"] = size
    if comment is not None:
        changes["title"] = comment
    if color is not None:
        changes["color"] = color or None
    updated = replace(node, **changes)
    on_update(replace_nodes(snapshot.nodes, {node_id: updated}), list(snapshot.edges))
    return updated

def delete_node(
    snapshot: GraphSnapshot,
    node_id: str,
    on_update: UpdateCallback,
) -> Dict[str, Any]:
    """Remove a node together with every edge touching it."""
    snapshot.get_node(node_id)
    nodes = [n for n in snapshot.nodes if n.id != node_id]
    edges = [e for e in snapshot.edges if not e.touches(node_id)]
    on_update(nodes, edges)
    return {"deleted_node": node_id, "deleted_edges": len(snapshot.edges) - len(edges)}


# ---------------------------------------------------------------------------
# Filtering (visible subgraph)
# ---------------------------------------------------------------------------

def filter_graph(
    snapshot: GraphSnapshot,
    label: Optional[str] = None,
    group: Optional[str] = None,
) -> GraphSnapshot:
    """Nodes whose label/group contain the given substrings (case-insensitive),
    plus the edges between them. No filter returns the snapshot itself."""
    if not label and not group:
        return snapshot
    label_q = (label or "").lower()
    group_q = (group or "").lower()
    nodes = [
        n for n in snapshot.nodes
        if (not label_q or label_q in n.label.lower())
        and (not group_q or group_q in (n.group or "").lower())
    ]
    ids = {n.id for n in nodes}
    edges = [e for e in snapshot.edges if e.source in ids and e.target in ids]
    return GraphSnapshot.of(nodes, edges)
