"""Graph service: in-memory conversation graphs plus every engine operation.

This service keeps graph documents in memory, hands one explicit update
callback to the linker, the clusterers and the lifecycle operations, and
routes text commands and UI gestures through the same logic so the web layer
and the CLI behave the same way.
"""

from __future__ import annotations

import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from fastapi import HTTPException

from cgraph import persistence as P
from cgraph.embeddings import embed_text
from cgraph.linker import link_similar
from cgraph.model import Edge, GraphSnapshot, Node, to_vis_payload, unique_id
from cgraph.paths import GRAPHS_DIR
from cgraph.session import ChatSession, ReplyFn, EmbedFn, new_document, default_reply
from cluster import formatters as F
from cluster import ops as O
from cluster.clustering import auto_cluster, cluster_by_topic
from cluster.intents import INTENTS, normalize_name
from cluster.layout import FALLBACK_DELAY_S, LayoutDispatcher, Position
from cluster.modes import InteractionController, Mode


def check_graph(nodes: Sequence[Node], edges: Sequence[Edge]) -> None:
    """Reject an update that breaks id uniqueness or references a missing node."""
    node_ids = [n.id for n in nodes]
    if len(set(node_ids)) != len(node_ids):
        raise ValueError("Duplicate node ids in graph update")
    edge_ids = [e.id for e in edges]
    if len(set(edge_ids)) != len(edge_ids):
        raise ValueError("Duplicate edge ids in graph update")
    known = set(node_ids)
    dangling = [e.id for e in edges if e.source not in known or e.target not in known]
    if dangling:
        raise ValueError(f"Edges reference missing nodes: {dangling}")


# ---------------------------------------------------------------------------
# Command parsing
# ---------------------------------------------------------------------------


class CommandParser:
    """Parse short text commands into structured operations."""

    _re_rename_cluster = re.compile(r"^rename\s+cluster\s+(\S+)\s+to\s+(.+)$", re.IGNORECASE)
    _re_dissolve_cluster = re.compile(r"^(?:dissolve|expand|open)\s+cluster\s+(\S+)$", re.IGNORECASE)
    _re_auto_cluster = re.compile(r"^auto[\s_-]?cluster$", re.IGNORECASE)
    _re_link = re.compile(r"^(?:link(?:\s+related)?|find\s+related)$", re.IGNORECASE)
    _re_cluster_topic = re.compile(r"^cluster\s+(?:by\s+)?topic\s+(.+)$", re.IGNORECASE)
    _re_create_cluster = re.compile(r"^cluster\s+(.+?)(?:\s+as\s+(.+))?$", re.IGNORECASE)
    _re_members = re.compile(r"^(?:members\s+of|show)\s+cluster\s+(\S+)$", re.IGNORECASE)
    _re_list_clusters = re.compile(r"^list\s+clusters$", re.IGNORECASE)
    _re_delete_node = re.compile(r"^delete\s+node\s+(.+)$", re.IGNORECASE)
    _re_set_filter = re.compile(r"^filter\s+(label|group)\s+(.+)$", re.IGNORECASE)
    _re_clear_filter = re.compile(r"^clear\s+filter$", re.IGNORECASE)

    def parse(self, text: str) -> Dict[str, Any]:
        text = text.strip()
        if not text:
            raise ValueError("Empty command")

        if match := self._re_rename_cluster.match(text):
            cluster_id, new_name = match.groups()
            return {"type": "rename_cluster", "cluster_id": cluster_id, "new_name": normalize_name(new_name)}

        if match := self._re_dissolve_cluster.match(text):
            return {"type": "dissolve_cluster", "cluster_id": match.group(1)}

        if self._re_auto_cluster.match(text):
            return {"type": "auto_cluster"}

        if self._re_link.match(text):
            return {"type": "link_related"}

        if match := self._re_members.match(text):
            return {"type": "cluster_members", "cluster_id": match.group(1)}

        if self._re_list_clusters.match(text):
            return {"type": "list_clusters"}

        if match := self._re_delete_node.match(text):
            return {"type": "delete_node", "node_id": normalize_name(match.group(1))}

        if match := self._re_set_filter.match(text):
            field_name, value = match.groups()
            return {"type": "set_filter", field_name.lower(): normalize_name(value)}

        if self._re_clear_filter.match(text):
            return {"type": "clear_filter"}

        if match := self._re_cluster_topic.match(text):
            return {"type": "cluster_topic", "topic": normalize_name(match.group(1))}

        if match := self._re_create_cluster.match(text):
            raw_ids, name = match.groups()
            node_ids = [normalize_name(x) for x in re.split(r"[,\s]+", raw_ids) if x.strip()]
            result: Dict[str, Any] = {"type": "create_cluster", "node_ids": node_ids}
            if name:
                result["name"] = normalize_name(name)
            return result

        raise ValueError(f"Unrecognized command: '{text}'")


# ---------------------------------------------------------------------------
# Graph service (documents + lock)
# ---------------------------------------------------------------------------


class GraphService:
    def __init__(
        self,
        embed: EmbedFn = embed_text,
        reply: ReplyFn = default_reply,
        layout_delay: Optional[float] = FALLBACK_DELAY_S,
        storage_dir: Path = GRAPHS_DIR,
    ) -> None:
        self._lock = threading.RLock()
        self._parser = CommandParser()
        self._embed = embed
        self._reply = reply
        self.storage_dir = storage_dir

        self._graphs: Dict[str, P.GraphDocument] = {}
        self._order: List[str] = []  # newest first
        self._active: Optional[str] = None

        self.filter: Dict[str, Optional[str]] = {"label": None, "group": None}
        self.positions: Dict[str, Position] = {}
        self.applied_generation = 0
        self.last_updated: datetime = datetime.now(timezone.utc)

        self.layout = LayoutDispatcher(self._deliver_positions, fallback_delay=layout_delay)
        self.controller = InteractionController(self.snapshot, self.apply)

    # ------------------------------------------------------------------ #
    # Documents
    # ------------------------------------------------------------------ #

    def _add_document(self, doc: P.GraphDocument) -> P.GraphDocument:
        doc.id = unique_id(doc.id, self._graphs)
        self._graphs[doc.id] = doc
        self._order.insert(0, doc.id)
        self._activate(doc.id)
        return doc

    def _activate(self, graph_id: str) -> None:
        self._active = graph_id
        self.filter = {"label": None, "group": None}
        self.positions = {}
        self.layout.cancel()
        self.controller.enter(Mode.BROWSE)

    def active_document(self) -> P.GraphDocument:
        with self._lock:
            if self._active is None:
                self._add_document(new_document(len(self._graphs) + 1))
            return self._graphs[self._active]

    def document(self, graph_id: str) -> P.GraphDocument:
        if graph_id not in self._graphs:
            raise KeyError(f"Graph '{graph_id}' not found")
        return self._graphs[graph_id]

    def list_graphs(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                {**self._graphs[gid].summary(), "active": gid == self._active}
                for gid in self._order
            ]

    def new_graph(self) -> Dict[str, Any]:
        with self._lock:
            doc = self._add_document(new_document(len(self._graphs) + 1))
            print(f"[cluster.backend] New graph {doc.id} ({doc.name})")
            return doc.summary()

    def restore_graph(self, graph_id: str) -> Dict[str, Any]:
        with self._lock:
            doc = self.document(graph_id)
            self._activate(graph_id)
            return doc.summary()

    def rename_graph(self, graph_id: str, new_name: str) -> Dict[str, Any]:
        with self._lock:
            doc = self.document(graph_id)
            name = (new_name or "").strip()
            if name:
                doc.name = name
            return doc.summary()

    def delete_graph(self, graph_id: str) -> Dict[str, Any]:
        with self._lock:
            self.document(graph_id)
            del self._graphs[graph_id]
            self._order.remove(graph_id)
            if self._active == graph_id:
                self._active = None
                if self._order:
                    self._activate(self._order[0])
            return {"deleted_graph": graph_id}

    def import_graph(self, text: str) -> Dict[str, Any]:
        """Open a graph from JSON text; invalid payloads leave everything as is."""
        doc = P.loads(text)
        with self._lock:
            self._add_document(doc)
            print(f"[cluster.backend] Imported graph {doc.id} ({len(doc.snapshot.nodes)} nodes)")
            return doc.summary()

    def export_graph(self, graph_id: Optional[str] = None) -> Tuple[str, str]:
        """(file name, JSON text) for save/share."""
        with self._lock:
            doc = self.document(graph_id) if graph_id else self.active_document()
            return P.export_filename(doc), P.dumps(doc)

    def save_graph(self, graph_id: Optional[str] = None) -> Path:
        with self._lock:
            doc = self.document(graph_id) if graph_id else self.active_document()
            path = P.save(doc, self.storage_dir / f"{doc.id}.json")
            print(f"[cluster.backend] Wrote: {path}")
            return path

    # ------------------------------------------------------------------ #
    # Snapshot access & the update callback
    # ------------------------------------------------------------------ #

    def snapshot(self) -> GraphSnapshot:
        return self.active_document().snapshot

    def visible_snapshot(self) -> GraphSnapshot:
        return O.filter_graph(self.snapshot(), label=self.filter["label"], group=self.filter["group"])

    def apply(self, nodes: List[Node], edges: List[Edge]) -> None:
        """The single "graph updated" callback handed to every engine operation."""
        with self._lock:
            check_graph(nodes, edges)
            self.active_document().snapshot = GraphSnapshot.of(nodes, edges)
            self.last_updated = datetime.now(timezone.utc)

    def graph_payload(self) -> Dict[str, Any]:
        with self._lock:
            doc = self.active_document()
            return {
                "graph": doc.summary(),
                "filter": dict(self.filter),
                "layout_generation": self.layout.generation,
                "last_updated": self.last_updated.isoformat(),
                **to_vis_payload(self.visible_snapshot()),
            }

    # ------------------------------------------------------------------ #
    # Layout handoff
    # ------------------------------------------------------------------ #

    def _deliver_positions(self, generation: int, positions: Dict[str, Position]) -> None:
        # runs under the dispatcher lock (possibly on the timer thread); must not take self._lock
        self.positions = dict(positions)
        self.applied_generation = generation

    def acknowledge_layout(self, generation: int) -> Dict[str, Any]:
        applied = self.layout.acknowledge(generation)
        return {**self.layout_state(), "applied": applied}

    def layout_state(self) -> Dict[str, Any]:
        with self._lock:
            current = set(self.snapshot().node_ids())
            return {
                "generation": self.layout.generation,
                "applied_generation": self.applied_generation,
                "pending": self.layout.pending is not None,
                "positions": {nid: {"x": x, "y": y} for nid, (x, y) in self.positions.items() if nid in current},
            }

    # ------------------------------------------------------------------ #
    # Engine operations
    # ------------------------------------------------------------------ #

    def send_message(self, text: str) -> Dict[str, Any]:
        with self._lock:
            doc = self.active_document()
            session = ChatSession(doc, embed=self._embed, reply=self._reply, on_update=self.apply)
            result = session.send(text)
            return {**result, "messages": list(doc.messages), "graph": doc.summary()}

    def link_related(self) -> List[Edge]:
        with self._lock:
            return link_similar(self.snapshot(), self.apply)

    def auto_cluster(self) -> Dict[str, Any]:
        with self._lock:
            visible = self.visible_snapshot()
            run = auto_cluster(
                self.snapshot(),
                self.apply,
                schedule_layout=self.layout.schedule,
                visible_ids=visible.node_ids(),
            )
            return {"clusters": run.summary(), "generation": self.layout.generation}

    def cluster_topic(self, topic: str) -> List[str]:
        with self._lock:
            return cluster_by_topic(self.snapshot(), topic, self.apply)

    def create_cluster(self, node_ids: Sequence[str], name: Optional[str] = None) -> List[Edge]:
        with self._lock:
            return O.build_manual_cluster(self.snapshot(), node_ids, self.apply, name=name)

    def rename_cluster(self, cluster_id: str, new_name: str) -> List[str]:
        with self._lock:
            return O.rename_cluster(self.snapshot(), cluster_id, new_name, self.apply)

    def dissolve_cluster(self, cluster_id: str) -> List[str]:
        with self._lock:
            return O.dissolve_cluster(self.snapshot(), cluster_id, self.apply)

    def cluster_info(self, cluster_id: str) -> Dict[str, Any]:
        with self._lock:
            try:
                return O.cluster_info(self.snapshot(), cluster_id)
            except KeyError as exc:
                raise HTTPException(status_code=404, detail=str(exc)) from exc

    def list_clusters(self) -> List[Dict[str, Any]]:
        with self._lock:
            return O.list_clusters(self.snapshot())

    def edit_node(self, node_id: str, **fields: Any) -> Node:
        with self._lock:
            return O.edit_node(self.snapshot(), node_id, self.apply, **fields)

    def delete_node(self, node_id: str) -> Dict[str, Any]:
        with self._lock:
            return O.delete_node(self.snapshot(), node_id, self.apply)

    def set_filter(self, label: Optional[str] = None, group: Optional[str] = None) -> Dict[str, Optional[str]]:
        with self._lock:
            self.filter = {"label": label or None, "group": group or None}
            return dict(self.filter)

    # ------------------------------------------------------------------ #
    # Interaction gestures (controller state and graph share one lock)
    # ------------------------------------------------------------------ #

    def interaction_state(self) -> Dict[str, Any]:
        with self._lock:
            return self.controller.state()

    def set_mode(self, mode: Mode, toggle: bool = False) -> Dict[str, Any]:
        with self._lock:
            if toggle:
                self.controller.toggle(mode)
            else:
                self.controller.enter(mode)
            return self.controller.state()

    def click(self, node_id: Optional[str]) -> Dict[str, Any]:
        with self._lock:
            return self.controller.click(node_id)

    def select(self, node_ids: Sequence[str]) -> Dict[str, Any]:
        with self._lock:
            return self.controller.select(node_ids)

    def hover(self, node_id: str) -> str:
        with self._lock:
            return self.controller.hover(node_id)

    def double_click(self, node_id: str) -> Dict[str, Any]:
        with self._lock:
            self.controller.double_click(node_id)
            return self.controller.state()

    def submit_cluster(self, name: Optional[str] = None) -> Dict[str, Any]:
        with self._lock:
            edges = self.controller.submit_cluster(name)
            return {"added": [e.to_dict() for e in edges], "state": self.controller.state()}

    def submit_rename(self, name: str) -> Dict[str, Any]:
        with self._lock:
            changed = self.controller.submit_rename(name)
            return {"changed": changed, "state": self.controller.state()}

    def cancel_rename(self) -> Dict[str, Any]:
        with self._lock:
            self.controller.cancel_rename()
            return self.controller.state()

    def close_editor(self) -> Dict[str, Any]:
        with self._lock:
            self.controller.close_editor()
            return self.controller.state()

    def save_edit(self, **fields: Any) -> Dict[str, Any]:
        with self._lock:
            node = self.controller.save_edit(**fields)
            return {"node": node, "state": self.controller.state()}

    def delete_edited_node(self) -> Dict[str, Any]:
        with self._lock:
            result = self.controller.delete_node()
            return {**result, "state": self.controller.state()}

    # ------------------------------------------------------------------ #
    # Command dispatch
    # ------------------------------------------------------------------ #

    def execute(self, command: Dict[str, Any]) -> Dict[str, Any]:
        cmd_type = command.get("type")
        if cmd_type not in INTENTS:
            raise HTTPException(status_code=400, detail=f"Unsupported command type '{cmd_type}'.")
        with self._lock:
            try:
                result, message = self._dispatch(cmd_type, command)
            except KeyError as exc:
                raise HTTPException(status_code=404, detail=str(exc).strip("'\"")) from exc
            except ValueError as exc:
                raise HTTPException(status_code=400, detail=str(exc)) from exc

            return {
                "status": "ok",
                "intent": cmd_type,
                "message": message,
                "result": result,
                "graph": self.active_document().summary(),
            }

    def _dispatch(self, cmd_type: str, command: Dict[str, Any]) -> Tuple[Any, str]:
        if cmd_type == "link_related":
            edges = self.link_related()
            return [e.to_dict() for e in edges], f"Added {len(edges)} related edges."
        if cmd_type == "auto_cluster":
            result = self.auto_cluster()
            return result, f"Grouped visible nodes into {len(result['clusters'])} clusters."
        if cmd_type == "cluster_topic":
            topic = command["topic"]
            members = self.cluster_topic(topic)
            return members, f"Grouped {len(members)} nodes under topic '{topic}'."
        if cmd_type == "create_cluster":
            node_ids = list(command.get("node_ids") or [])
            if not O.can_build_cluster(node_ids):
                raise ValueError("Select at least 2 nodes to create a cluster")
            name = command.get("name")
            edges = self.create_cluster(node_ids, name)
            label = edges[0].label if edges else name
            return [e.to_dict() for e in edges], f"Cluster '{label}' created with {len(edges)} edges."
        if cmd_type == "rename_cluster":
            cluster_id = command["cluster_id"]
            new_name = command.get("new_name", "")
            changed = self.rename_cluster(cluster_id, new_name)
            if not changed:
                return changed, f"Cluster '{cluster_id}' unchanged."
            return changed, f"Cluster '{cluster_id}' renamed to '{new_name.strip()}'."
        if cmd_type == "dissolve_cluster":
            cluster_id = command["cluster_id"]
            members = self.dissolve_cluster(cluster_id)
            if not members:
                raise KeyError(f"Cluster '{cluster_id}' not found")
            return members, f"Cluster '{cluster_id}' dissolved ({len(members)} nodes released)."
        if cmd_type == "cluster_members":
            info = O.cluster_info(self.snapshot(), command["cluster_id"])
            return info, f"Cluster '{info['cluster_id']}' has {info['count']} nodes."
        if cmd_type == "list_clusters":
            clusters = self.list_clusters()
            return clusters, f"{len(clusters)} clusters."
        if cmd_type == "delete_node":
            node_id = command["node_id"]
            return self.delete_node(node_id), f"Node '{node_id}' deleted."
        if cmd_type == "set_filter":
            current = self.set_filter(
                label=command.get("label", self.filter["label"]),
                group=command.get("group", self.filter["group"]),
            )
            return current, "Filter updated."
        # clear_filter
        return self.set_filter(), "Filter cleared."

    def execute_text(self, text: str) -> Dict[str, Any]:
        try:
            command = self._parser.parse(text)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        result = self.execute(command)
        result["answer"] = F.render(command["type"], result)
        return result
