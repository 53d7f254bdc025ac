# cgraph/linker.py
"""Similarity linker: propose "related" edges between semantically close nodes.

Pairs are scanned in graph order (i < j); an edge is proposed when cosine
similarity exceeds the threshold and no edge already joins the pair in either
direction. Nodes without a usable embedding contribute nothing.
"""
from __future__ import annotations

from typing import List, Optional

from cgraph.embeddings import safe_similarity
from cgraph.model import Edge, GraphSnapshot, Node, UpdateCallback, unique_id

SIMILARITY_THRESHOLD = 0.7
RELATED_LABEL = "related"


def related_edge_id(a: str, b: str) -> str:
    return f"edge_{a}_{b}_{RELATED_LABEL}"


def _propose(
    left: Node,
    right: Node,
    edges: List[Edge],
    taken_ids: set,
    threshold: float,
) -> Optional[Edge]:
    sim = safe_similarity(left.embedding, right.embedding)
    if sim is None or sim <= threshold:
        return None
    if any(e.connects(left.id, right.id) for e in edges):
        return None
    edge_id = unique_id(related_edge_id(left.id, right.id), taken_ids)
    taken_ids.add(edge_id)
    return Edge(id=edge_id, source=left.id, target=right.id, label=RELATED_LABEL)


def link_similar(
    snapshot: GraphSnapshot,
    on_update: UpdateCallback,
    threshold: float = SIMILARITY_THRESHOLD,
) -> List[Edge]:
    """Scan every embedded pair; emit the extended edge list when anything was added.

    Returns the edges that were added (possibly empty).
    """
    embedded = [n for n in snapshot.nodes if n.embedding]
    edges = list(snapshot.edges)
    taken_ids = set(snapshot.edge_ids())
    added: List[Edge] = []

    for i in range(len(embedded)):
        for j in range(i + 1, len(embedded)):
            edge = _propose(embedded[i], embedded[j], edges, taken_ids, threshold)
            if edge is not None:
                edges.append(edge)
                added.append(edge)

    if added:
        on_update(list(snapshot.nodes), edges)
    return added


def link_node(
    snapshot: GraphSnapshot,
    node_id: str,
    on_update: UpdateCallback,
    threshold: float = SIMILARITY_THRESHOLD,
) -> List[Edge]:
    """Link a single (usually freshly added) node against every other embedded node."""
    target = snapshot.get_node(node_id)
    edges = list(snapshot.edges)
    taken_ids = set(snapshot.edge_ids())
    added: List[Edge] = []
    if not target.embedding:
        return added

    for other in snapshot.nodes:
        if other.id == target.id or not other.embedding:
            continue
        edge = _propose(other, target, edges, taken_ids, threshold)
        if edge is not None:
            edges.append(edge)
            added.append(edge)

    if added:
        on_update(list(snapshot.nodes), edges)
    return added
