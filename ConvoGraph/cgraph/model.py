# cgraph/model.py
"""Graph data model: nodes, edges and immutable graph snapshots.

Snapshots are frozen; every engine operation builds new node/edge lists and
hands them back through an update callback instead of mutating in place.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

DEFAULT_NODE_SIZE = 16

# Callback every mutating operation reports through: (nodes, edges) -> None
UpdateCallback = Callable[[List["Node"], List["Edge"]], None]


@dataclass(frozen=True)
class Node:
    id: str
    label: str
    size: float = DEFAULT_NODE_SIZE
    group: Optional[str] = None
    embedding: Optional[Tuple[float, ...]] = None
    color: Optional[str] = None
    title: Optional[str] = None
    answer: Optional[str] = None

    @classmethod
    def from_dict(cls, item: Dict[str, Any]) -> "Node":
        embedding = item.get("embedding")
        color = item.get("color")
        if isinstance(color, dict):
            color = color.get("background")
        size = item.get("size")
        return cls(
            id=str(item["id"]),
            label=str(item.get("label") or ""),
            size=size if isinstance(size, (int, float)) else DEFAULT_NODE_SIZE,
            group=item.get("group") or None,
            embedding=tuple(float(x) for x in embedding) if embedding else None,
            color=color or None,
            title=item.get("title"),
            answer=item.get("llmAnswer", item.get("answer")),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id, "label": self.label, "size": self.size}
        if self.group is not None:
            out["group"] = self.group
        if self.embedding is not None:
            out["embedding"] = list(self.embedding)
        if self.color is not None:
            out["color"] = self.color
        if self.title is not None:
            out["title"] = self.title
        if self.answer is not None:
            out["llmAnswer"] = self.answer
        return out


@dataclass(frozen=True)
class Edge:
    id: str
    source: str
    target: str
    label: Optional[str] = None

    def connects(self, a: str, b: str) -> bool:
        """Undirected pair test."""
        return (self.source == a and self.target == b) or (self.source == b and self.target == a)

    def touches(self, node_id: str) -> bool:
        return self.source == node_id or self.target == node_id

    @classmethod
    def from_dict(cls, item: Dict[str, Any]) -> "Edge":
        return cls(
            id=str(item["id"]),
            source=str(item["from"]),
            target=str(item["to"]),
            label=item.get("label"),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id, "from": self.source, "to": self.target}
        if self.label is not None:
            out["label"] = self.label
        return out


@dataclass(frozen=True)
class GraphSnapshot:
    nodes: Tuple[Node, ...] = field(default_factory=tuple)
    edges: Tuple[Edge, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, nodes: Iterable[Node], edges: Iterable[Edge]) -> "GraphSnapshot":
        return cls(nodes=tuple(nodes), edges=tuple(edges))

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "GraphSnapshot":
        nodes = [Node.from_dict(n) for n in payload.get("nodes") or []]
        edges = [Edge.from_dict(e) for e in payload.get("edges") or []]
        return cls.of(nodes, edges)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }

    # ------------------------------------------------------------------ #
    # Lookup helpers
    # ------------------------------------------------------------------ #

    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    def get_node(self, node_id: str) -> Node:
        for node in self.nodes:
            if node.id == node_id:
                return node
        raise KeyError(f"Node '{node_id}' not found")

    def has_node(self, node_id: str) -> bool:
        return any(n.id == node_id for n in self.nodes)

    def edge_between(self, a: str, b: str) -> Optional[Edge]:
        for edge in self.edges:
            if edge.connects(a, b):
                return edge
        return None

    def edge_ids(self) -> List[str]:
        return [e.id for e in self.edges]


def replace_nodes(nodes: Sequence[Node], updated: Dict[str, Node]) -> List[Node]:
    """Swap in updated nodes by id, keeping the original order."""
    return [updated.get(n.id, n) for n in nodes]


def prune_dangling_edges(nodes: Sequence[Node], edges: Sequence[Edge]) -> Tuple[List[Edge], int]:
    """Drop edges whose endpoints are not in `nodes`. Returns (kept, dropped_count)."""
    ids = {n.id for n in nodes}
    kept = [e for e in edges if e.source in ids and e.target in ids]
    return kept, len(edges) - len(kept)


def unique_id(candidate: str, taken: Iterable[str]) -> str:
    """Return `candidate`, or `candidate__<n>` when it is already taken."""
    used = set(taken)
    if candidate not in used:
        return candidate
    suffix = 1
    while True:
        suffix += 1
        alt = f"{candidate}__{suffix}"
        if alt not in used:
            return alt


def color_payload(color: Optional[str]) -> Optional[Dict[str, Any]]:
    if not color:
        return None
    return {
        "background": color,
        "border": color,
        "highlight": {"background": color, "border": color},
        "hover": {"background": color, "border": color},
    }


def to_vis_payload(snapshot: GraphSnapshot) -> Dict[str, Any]:
    """Snapshot in the shape the rendering surface ingests (no embeddings)."""
    nodes = []
    for n in snapshot.nodes:
        item: Dict[str, Any] = {"id": n.id, "label": n.label, "size": n.size}
        if n.group is not None:
            item["group"] = n.group
        if n.title is not None:
            item["title"] = n.title
        if n.answer is not None:
            item["llmAnswer"] = n.answer
        if n.color:
            item["color"] = color_payload(n.color)
        nodes.append(item)
    return {"nodes": nodes, "edges": [e.to_dict() for e in snapshot.edges]}


def drop_duplicate_ids(items: Sequence[Any]) -> Tuple[List[Any], int]:
    """Keep the first node or edge seen for each id. Returns (kept, dropped_count)."""
    seen: Dict[str, Any] = {}
    for item in items:
        seen.setdefault(item.id, item)
    return list(seen.values()), len(items) - len(seen)
