"""Automatic clustering of conversation nodes.

Greedy single pass over the nodes in graph order: each node is compared with
the representative (first member) of every existing cluster, in creation
order, and joins the first one it matches either lexically (shared label
token) or semantically (embedding similarity above the threshold). Unmatched
nodes open a new cluster. Clusters are then colored from a fixed palette,
tagged on the node label, and laid out on a ring of rings.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from cgraph.embeddings import safe_similarity
from cgraph.model import GraphSnapshot, Node, UpdateCallback, replace_nodes

SIMILARITY_THRESHOLD = 0.7

PALETTE: Tuple[str, ...] = (
    "#e11d48", "#0ea5e9", "#22c55e", "#f59e42", "#a21caf", "#fbbf24", "#14b8a6", "#6366f1",
    "#f472b6", "#f87171", "#34d399", "#facc15", "#818cf8", "#f97316", "#38bdf8", "#a3e635",
)

TOPIC_COLOR = "#0ea5e9"

RING_RADIUS = 300.0
MEMBER_RADIUS = 80.0
CENTER = (0.0, 0.0)

CLUSTER_PREFIX = "cluster_"

_TAG_RE = re.compile(r"\n\[.*\]$")
_TOKEN_SPLIT = re.compile(r"\W+")

Position = Tuple[float, float]
LayoutCallback = Callable[[Dict[str, Position]], object]


@dataclass
class ClusterRun:
    """Result of one automatic clustering pass."""
    clusters: Dict[str, List[str]] = field(default_factory=dict)
    colors: Dict[str, str] = field(default_factory=dict)
    positions: Dict[str, Position] = field(default_factory=dict)

    def assignment(self) -> Dict[str, str]:
        return {nid: cid for cid, members in self.clusters.items() for nid in members}

    def summary(self) -> List[Dict[str, object]]:
        return [
            {
                "cluster_id": cid,
                "tag": cluster_tag(cid),
                "color": self.colors.get(cid),
                "count": len(members),
                "members": list(members),
            }
            for cid, members in self.clusters.items()
        ]


# ---------------------------------------------------------------------------
# Label helpers
# ---------------------------------------------------------------------------


def strip_cluster_tag(label: str) -> str:
    """Remove a trailing "\\n[...]" cluster tag, if any."""
    return _TAG_RE.sub("", label or "")


def set_cluster_tag(label: str, tag: str) -> str:
    """Append a "\\n[tag]" suffix, replacing an existing one."""
    return f"{strip_cluster_tag(label)}\n[{tag}]"


def cluster_tag(cluster_id: str) -> str:
    """cluster_3 -> C3"""
    if cluster_id.startswith(CLUSTER_PREFIX):
        return "C" + cluster_id[len(CLUSTER_PREFIX):]
    return cluster_id


def tokenize(label: str) -> Set[str]:
    """Lowercase word tokens of the label without its cluster tag."""
    return {tok for tok in _TOKEN_SPLIT.split(strip_cluster_tag(label).lower()) if tok}


def cluster_color(index: int) -> str:
    return PALETTE[index % len(PALETTE)]


# ---------------------------------------------------------------------------
# Assignment & layout
# ---------------------------------------------------------------------------


def assign_clusters(
    nodes: Sequence[Node],
    threshold: float = SIMILARITY_THRESHOLD,
) -> Dict[str, List[str]]:
    """Greedy representative matching. Returns ordered {cluster_id: [node ids]}.

    Only the representative is compared against, so a node similar to a later
    member but not to the representative opens its own cluster.
    """
    clusters: Dict[str, List[str]] = {}
    representatives: Dict[str, Tuple[Set[str], Optional[Sequence[float]]]] = {}

    for node in nodes:
        words = tokenize(node.label)
        joined = None
        for cid, (rep_words, rep_embedding) in representatives.items():
            if words & rep_words:
                joined = cid
                break
            sim = safe_similarity(node.embedding, rep_embedding)
            if sim is not None and sim > threshold:
                joined = cid
                break

        if joined is None:
            joined = f"{CLUSTER_PREFIX}{len(clusters) + 1}"
            clusters[joined] = []
            representatives[joined] = (words, node.embedding)
        clusters[joined].append(node.id)

    return clusters


def compute_layout(
    clusters: Dict[str, List[str]],
    radius: float = RING_RADIUS,
    member_radius: float = MEMBER_RADIUS,
    center: Position = CENTER,
) -> Dict[str, Position]:
    """Cluster centers evenly on a ring; members evenly on a small ring around each center."""
    positions: Dict[str, Position] = {}
    count = len(clusters)
    for i, (cid, members) in enumerate(clusters.items()):
        angle = 2 * math.pi * i / count
        cx = center[0] + radius * math.cos(angle)
        cy = center[1] + radius * math.sin(angle)
        for j, nid in enumerate(members):
            sub = 2 * math.pi * j / len(members)
            positions[nid] = (cx + member_radius * math.cos(sub), cy + member_radius * math.sin(sub))
    return positions


def auto_cluster(
    snapshot: GraphSnapshot,
    on_update: UpdateCallback,
    schedule_layout: Optional[LayoutCallback] = None,
    visible_ids: Optional[Sequence[str]] = None,
    threshold: float = SIMILARITY_THRESHOLD,
) -> ClusterRun:
    """Re-partition the visible nodes from scratch.

    Updated nodes (group, color, tagged label) go out through `on_update`
    first, edges untouched; positions are handed to `schedule_layout` after,
    so the rendering side can apply them once it has ingested the nodes.
    Nodes outside `visible_ids` are passed through unchanged.
    """
    if visible_ids is None:
        visible = list(snapshot.nodes)
    else:
        wanted = set(visible_ids)
        visible = [n for n in snapshot.nodes if n.id in wanted]

    run = ClusterRun(clusters=assign_clusters(visible, threshold=threshold))
    for index, cid in enumerate(run.clusters):
        run.colors[cid] = cluster_color(index)

    assignment = run.assignment()
    updated: Dict[str, Node] = {}
    for node in visible:
        cid = assignment[node.id]
        updated[node.id] = replace(
            node,
            group=cid,
            color=run.colors[cid],
            label=set_cluster_tag(node.label, cluster_tag(cid)),
        )

    run.positions = compute_layout(run.clusters)
    print(f"[cluster.clustering] {len(visible)} nodes -> {len(run.clusters)} clusters")

    on_update(replace_nodes(snapshot.nodes, updated), list(snapshot.edges))
    if schedule_layout is not None and run.positions:
        schedule_layout(dict(run.positions))
    return run


def topic_cluster_id(topic: str) -> str:
    slug = _TOKEN_SPLIT.sub("_", topic.strip().lower()).strip("_")
    return f"topic_{slug}"


def cluster_by_topic(
    snapshot: GraphSnapshot,
    topic: str,
    on_update: UpdateCallback,
) -> List[str]:
    """Group every node whose label contains `topic` (case-insensitive).

    Members get group `topic_<slug>` and the tag "[<topic> Cluster (<n>)]".
    Returns member ids; an empty topic or no match changes nothing.
    """
    topic = (topic or "").strip()
    if not topic:
        return []
    needle = topic.lower()
    members = [n for n in snapshot.nodes if needle in strip_cluster_tag(n.label).lower()]
    if not members:
        return []

    cid = topic_cluster_id(topic)
    tag = f"{topic} Cluster ({len(members)})"
    updated = {
        n.id: replace(n, group=cid, color=TOPIC_COLOR, label=set_cluster_tag(n.label, tag))
        for n in members
    }
    on_update(replace_nodes(snapshot.nodes, updated), list(snapshot.edges))
    return [n.id for n in members]
