# cgraph/persistence.py
"""
Graph documents and their JSON form.

A document is the unit that gets saved, opened and shared:
    {id, name, nodes, edges, createdAt, messages}
Loading is lenient about missing fields (they get defaults) but strict about
the payload being a JSON object; anything else raises InvalidGraphFile and the
caller's current state is left alone.
"""
from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from cgraph.model import GraphSnapshot, drop_duplicate_ids, prune_dangling_edges

DEFAULT_IMPORT_NAME = "Imported Graph"


class InvalidGraphFile(ValueError):
    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail
        super().__init__("Invalid graph file.")


def new_graph_id() -> str:
    return str(int(time.time() * 1000))


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class GraphDocument:
    id: str
    name: str
    snapshot: GraphSnapshot = field(default_factory=GraphSnapshot)
    created_at: str = field(default_factory=now_iso)
    messages: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "GraphDocument":
        if not isinstance(payload, dict):
            raise InvalidGraphFile(f"expected a JSON object, got {type(payload).__name__}")
        try:
            snapshot = GraphSnapshot.from_dict(payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidGraphFile(f"malformed node or edge: {exc}") from exc

        nodes, dup_nodes = drop_duplicate_ids(snapshot.nodes)
        edges, dup_edges = drop_duplicate_ids(snapshot.edges)
        if dup_nodes or dup_edges:
            print(f"[cgraph.persistence] Dropped {dup_nodes} duplicate nodes and {dup_edges} duplicate edges")
            snapshot = GraphSnapshot.of(nodes, edges)

        edges, dropped = prune_dangling_edges(snapshot.nodes, snapshot.edges)
        if dropped:
            print(f"[cgraph.persistence] Dropped {dropped} edges referencing missing nodes")
            snapshot = GraphSnapshot.of(snapshot.nodes, edges)

        messages = payload.get("messages")
        return cls(
            id=str(payload.get("id") or new_graph_id()),
            name=str(payload.get("name") or DEFAULT_IMPORT_NAME),
            snapshot=snapshot,
            created_at=str(payload.get("createdAt") or now_iso()),
            messages=list(messages) if isinstance(messages, list) else [],
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "id": self.id,
            "name": self.name,
            "createdAt": self.created_at,
            "messages": list(self.messages),
        }
        out.update(self.snapshot.to_dict())
        return out

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "createdAt": self.created_at,
            "node_count": len(self.snapshot.nodes),
            "edge_count": len(self.snapshot.edges),
            "message_count": len(self.messages),
        }


def dumps(doc: GraphDocument) -> str:
    return json.dumps(doc.to_dict(), indent=2, ensure_ascii=False, default=str)


def loads(text: str) -> GraphDocument:
    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise InvalidGraphFile(str(exc)) from exc
    return GraphDocument.from_dict(payload)


def save(doc: GraphDocument, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        handle.write(dumps(doc))
    return path


def load(path: Path) -> GraphDocument:
    if not path.exists():
        raise FileNotFoundError(f"Graph file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        return loads(handle.read())


def export_filename(doc: GraphDocument) -> str:
    return f"{doc.name or 'graph'}.json"
