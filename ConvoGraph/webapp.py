# webapp.py - Conversation graph backend (chat, graph library, clustering engine)
from __future__ import annotations
from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field, ConfigDict, AliasChoices
from typing import Optional, Any, Callable, Dict, List

from cgraph.paths import STATIC_DIR, ensure_dirs
from cluster.backend import GraphService
from cluster.intents import label_of, list_intents
from cluster.modes import Mode


def _call(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run a service call, mapping lookup/argument errors to HTTP errors."""
    try:
        return fn(*args, **kwargs)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc).strip("'\"")) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


# ============================================================================
# Request bodies
# ============================================================================

class ChatBody(BaseModel):
    message: str

class ImportBody(BaseModel):
    content: str

class NameBody(BaseModel):
    name: str = ""

class TopicBody(BaseModel):
    topic: str

class CreateClusterBody(BaseModel):
    node_ids: List[str] = Field(default_factory=list, validation_alias=AliasChoices("node_ids", "nodes"))
    name: Optional[str] = None
    model_config = ConfigDict(populate_by_name=True)

class EditNodeBody(BaseModel):
    label: Optional[str] = None
    size: Optional[float] = None
    comment: Optional[str] = Field(default=None, validation_alias=AliasChoices("comment", "title"))
    color: Optional[str] = None
    model_config = ConfigDict(populate_by_name=True)

class FilterBody(BaseModel):
    label: Optional[str] = None
    group: Optional[str] = None

class AckBody(BaseModel):
    generation: int

class ModeBody(BaseModel):
    mode: Mode
    toggle: bool = False

class NodeEventBody(BaseModel):
    node_id: Optional[str] = None

class SelectBody(BaseModel):
    node_ids: List[str] = Field(default_factory=list, validation_alias=AliasChoices("node_ids", "nodes"))
    model_config = ConfigDict(populate_by_name=True)


def create_app(service: Optional[GraphService] = None) -> FastAPI:
    service = service or GraphService()
    app = FastAPI(title="ConvoGraph")
    app.state.service = service

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if STATIC_DIR.exists():
        print(f"[webapp] Serving UI from {STATIC_DIR}")
        app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

        @app.get("/", include_in_schema=False)
        def index() -> FileResponse:
            return FileResponse(str(STATIC_DIR / "index.html"))

    # ========================================================================
    # HEALTH
    # ========================================================================

    @app.get("/api/health")
    def health():
        return {"status": "ok"}

    # ========================================================================
    # GRAPH LIBRARY - new / restore / rename / open / save / share
    # ========================================================================

    @app.get("/api/graphs")
    def list_graphs():
        return {"graphs": service.list_graphs()}

    @app.post("/api/graphs/new")
    def new_graph():
        return service.new_graph()

    @app.post("/api/graphs/import")
    def import_graph(body: ImportBody):
        """Open a graph from JSON text (missing fields are defaulted)."""
        return _call(service.import_graph, body.content)

    @app.get("/api/graphs/export")
    def export_graph(graph_id: Optional[str] = None):
        filename, text = _call(service.export_graph, graph_id)
        return Response(
            content=text,
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.post("/api/graphs/save")
    def save_graph(graph_id: Optional[str] = None):
        path = _call(service.save_graph, graph_id)
        return {"ok": True, "path": str(path)}

    @app.post("/api/graphs/{graph_id}/restore")
    def restore_graph(graph_id: str):
        return _call(service.restore_graph, graph_id)

    @app.post("/api/graphs/{graph_id}/rename")
    def rename_graph(graph_id: str, body: NameBody):
        return _call(service.rename_graph, graph_id, body.name)

    @app.delete("/api/graphs/{graph_id}")
    def delete_graph(graph_id: str):
        return _call(service.delete_graph, graph_id)

    # ========================================================================
    # CHAT
    # ========================================================================

    @app.post("/api/chat")
    def chat(body: ChatBody):
        return _call(service.send_message, body.message)

    @app.get("/api/chat/messages")
    def chat_messages():
        return {"messages": list(service.active_document().messages)}

    # ========================================================================
    # GRAPH ENGINE
    # ========================================================================

    @app.get("/api/graph")
    def get_graph():
        return service.graph_payload()

    @app.post("/api/graph/link")
    def link_related():
        edges = _call(service.link_related)
        return {"added": [e.to_dict() for e in edges], **service.graph_payload()}

    @app.post("/api/graph/auto-cluster")
    def auto_cluster():
        result = _call(service.auto_cluster)
        return {**result, **service.graph_payload()}

    @app.post("/api/graph/topic")
    def cluster_topic(body: TopicBody):
        members = _call(service.cluster_topic, body.topic)
        return {"members": members, **service.graph_payload()}

    @app.post("/api/graph/filter")
    def set_filter(body: FilterBody):
        service.set_filter(label=body.label, group=body.group)
        return service.graph_payload()

    @app.get("/api/graph/clusters")
    def list_clusters():
        return {"clusters": service.list_clusters()}

    @app.post("/api/graph/clusters")
    def create_cluster(body: CreateClusterBody):
        if len(set(body.node_ids)) < 2:
            raise HTTPException(status_code=400, detail="Select at least 2 nodes to create a cluster")
        edges = _call(service.create_cluster, body.node_ids, body.name)
        return {"added": [e.to_dict() for e in edges], **service.graph_payload()}

    @app.get("/api/graph/clusters/{cluster_id}")
    def cluster_info(cluster_id: str):
        return _call(service.cluster_info, cluster_id)

    @app.post("/api/graph/clusters/{cluster_id}/rename")
    def rename_cluster(cluster_id: str, body: NameBody):
        changed = _call(service.rename_cluster, cluster_id, body.name)
        return {"changed": changed, **service.graph_payload()}

    @app.post("/api/graph/clusters/{cluster_id}/dissolve")
    def dissolve_cluster(cluster_id: str):
        released = _call(service.dissolve_cluster, cluster_id)
        if not released:
            raise HTTPException(status_code=404, detail=f"Cluster '{cluster_id}' not found")
        return {"released": released, **service.graph_payload()}

    @app.patch("/api/graph/nodes/{node_id}")
    def edit_node(node_id: str, body: EditNodeBody):
        node = _call(
            service.edit_node, node_id,
            label=body.label, size=body.size, comment=body.comment, color=body.color,
        )
        return node.to_dict()

    @app.delete("/api/graph/nodes/{node_id}")
    def delete_node(node_id: str):
        return _call(service.delete_node, node_id)

    # Layout handoff: the renderer applies the node update, then acks the generation

    @app.get("/api/graph/layout")
    def layout_state():
        return service.layout_state()

    @app.post("/api/graph/layout/ack")
    def layout_ack(body: AckBody):
        return _call(service.acknowledge_layout, body.generation)

    # ========================================================================
    # INTERACTION (renderer gestures routed through the mode controller)
    # ========================================================================

    @app.get("/api/interaction")
    def interaction_state():
        return service.interaction_state()

    @app.post("/api/interaction/mode")
    def interaction_mode(body: ModeBody):
        return service.set_mode(body.mode, toggle=body.toggle)

    @app.post("/api/interaction/click")
    def interaction_click(body: NodeEventBody):
        return _call(service.click, body.node_id)

    @app.post("/api/interaction/select")
    def interaction_select(body: SelectBody):
        return service.select(body.node_ids)

    @app.get("/api/interaction/hover/{node_id}")
    def interaction_hover(node_id: str):
        return {"node_id": node_id, "tooltip": _call(service.hover, node_id)}

    @app.post("/api/interaction/double-click")
    def interaction_double_click(body: NodeEventBody):
        if body.node_id is None:
            raise HTTPException(status_code=400, detail="Missing 'node_id' in payload")
        return _call(service.double_click, body.node_id)

    @app.post("/api/interaction/submit-cluster")
    def interaction_submit_cluster(body: NameBody):
        return _call(service.submit_cluster, body.name)

    @app.post("/api/interaction/submit-rename")
    def interaction_submit_rename(body: NameBody):
        return _call(service.submit_rename, body.name)

    @app.post("/api/interaction/cancel-rename")
    def interaction_cancel_rename():
        return service.cancel_rename()

    @app.post("/api/interaction/close-editor")
    def interaction_close_editor():
        return service.close_editor()

    @app.post("/api/interaction/save-edit")
    def interaction_save_edit(body: EditNodeBody):
        return _call(service.save_edit, label=body.label, size=body.size, comment=body.comment, color=body.color)

    @app.post("/api/interaction/delete-node")
    def interaction_delete_node():
        return _call(service.delete_edited_node)

    # ========================================================================
    # TEXT COMMANDS
    # ========================================================================

    @app.get("/api/commands")
    def commands():
        return {"commands": [{"intent": i, "label": label_of(i)} for i in list_intents()]}

    @app.post("/api/command")
    def command(body: Dict[str, Any]):
        if "command" in body:
            return service.execute_text(body["command"])
        return service.execute(body)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    ensure_dirs()
    uvicorn.run(app, host="0.0.0.0", port=8000)
