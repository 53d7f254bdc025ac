"""
Test doubles: a deterministic bag-of-words embedder, a canned chat reply,
an update-callback recorder and a small sample graph.
"""
import re
from typing import List, Optional, Tuple

from cgraph.embeddings import EmbeddingError
from cgraph.model import Edge, GraphSnapshot, Node

VOCAB = ["sql", "table", "query", "cat", "dog", "pet", "rain", "sun"]


def fake_embed(text: str) -> List[float]:
    """One axis per vocabulary word; unknown words contribute nothing."""
    words = re.split(r"\W+", text.lower())
    return [float(words.count(w)) for w in VOCAB]


def failing_embed(text: str) -> List[float]:
    raise EmbeddingError("provider unavailable")


def fake_reply(message: str, snapshot: GraphSnapshot) -> Optional[str]:
    return f"Answer about {message}"


def node(node_id: str, label: str, embed: bool = True, **fields) -> Node:
    embedding = tuple(fake_embed(label)) if embed else None
    return Node(id=node_id, label=label, embedding=embedding, **fields)


class Recorder:
    """Update callback that keeps every emitted (nodes, edges) pair."""

    def __init__(self, snapshot: GraphSnapshot = GraphSnapshot()):
        self.snapshot = snapshot
        self.calls: List[Tuple[List[Node], List[Edge]]] = []

    def __call__(self, nodes: List[Node], edges: List[Edge]) -> None:
        self.calls.append((list(nodes), list(edges)))
        self.snapshot = GraphSnapshot.of(nodes, edges)

    def get(self) -> GraphSnapshot:
        return self.snapshot


SAMPLE_GRAPH = {
    "id": "g1",
    "name": "Sample",
    "createdAt": "2024-01-01T00:00:00+00:00",
    "messages": [],
    "nodes": [
        {"id": "n1", "label": "sql table", "size": 16, "embedding": fake_embed("sql table")},
        {"id": "n2", "label": "sql table query", "size": 16, "embedding": fake_embed("sql table query")},
        {"id": "n3", "label": "cat dog", "size": 16, "embedding": fake_embed("cat dog")},
        {"id": "n4", "label": "dog pet", "size": 16, "embedding": fake_embed("dog pet")},
        {"id": "n5", "label": "rain sun", "size": 16, "embedding": fake_embed("rain sun")},
    ],
    "edges": [],
}


