# cgraph/session.py
"""
Chat session: turns user messages into graph nodes.

Per message: embed -> add node -> link it -> ask the chat model -> attach the
reply to the node. The embedding is fetched before anything is written, so a
provider failure leaves the graph exactly as it was and only shows up as an
error message in the transcript.
"""
from __future__ import annotations

import time
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from cgraph.embeddings import EmbeddingError, embed_text
from cgraph.linker import link_node
from cgraph.llm import chat_reply
from cgraph.model import DEFAULT_NODE_SIZE, Edge, GraphSnapshot, Node, UpdateCallback, replace_nodes, unique_id
from cgraph.persistence import GraphDocument, new_graph_id, now_iso

GREETING = "Hi, I am your Sequel AI Assistant. How can I help you?"
DEFAULT_NAME_PREFIX = "Chat"
TITLE_WORDS = 8
TITLE_CHARS = 40

EmbedFn = Callable[[str], List[float]]
ReplyFn = Callable[[str, GraphSnapshot], Optional[str]]


def new_document(index: int = 1) -> GraphDocument:
    """Empty graph for a new conversation, opened with a greeting."""
    doc = GraphDocument(id=new_graph_id(), name=f"{DEFAULT_NAME_PREFIX} {index}")
    doc.messages.append(_message(doc, GREETING, "ai"))
    return doc


def title_from(text: str) -> str:
    title = " ".join(text.strip().split()[:TITLE_WORDS])
    if len(title) > TITLE_CHARS:
        title = title[:TITLE_CHARS] + "..."
    return title


def message_node_id(message_id: str) -> str:
    return f"message_{message_id}"


def _message(doc: GraphDocument, content: str, sender: str) -> Dict[str, Any]:
    taken = [str(m.get("id")) for m in doc.messages]
    return {
        "id": unique_id(str(int(time.time() * 1000)), taken),
        "content": content,
        "sender": sender,
        "timestamp": now_iso(),
    }


def default_reply(message: str, snapshot: GraphSnapshot) -> Optional[str]:
    return chat_reply(message, graph=snapshot)


class ChatSession:
    def __init__(
        self,
        doc: GraphDocument,
        embed: EmbedFn = embed_text,
        reply: ReplyFn = default_reply,
        on_update: Optional[UpdateCallback] = None,
    ) -> None:
        self.doc = doc
        self._embed = embed
        self._reply = reply
        self._on_update = on_update or self._apply

    def _apply(self, nodes: List[Node], edges: List[Edge]) -> None:
        self.doc.snapshot = GraphSnapshot.of(nodes, edges)

    def _append(self, content: str, sender: str) -> Dict[str, Any]:
        msg = _message(self.doc, content, sender)
        self.doc.messages.append(msg)
        self._maybe_retitle()
        return msg

    def _maybe_retitle(self) -> None:
        if not self.doc.name.startswith(DEFAULT_NAME_PREFIX):
            return
        first_user = next((m for m in self.doc.messages if m.get("sender") == "user" and m.get("content")), None)
        if first_user:
            self.doc.name = title_from(first_user["content"])

    def send(self, text: str) -> Dict[str, Any]:
        if not (text or "").strip():
            return {"ok": False, "error": "Empty message"}

        try:
            embedding = self._embed(text)
        except EmbeddingError as exc:
            print(f"[cgraph.session] Embedding failed: {exc}")
            self._append(text, "user")
            self._append(f"Error: {exc}", "ai")
            return {"ok": False, "error": str(exc)}

        user_msg = self._append(text, "user")
        node_id = unique_id(message_node_id(user_msg["id"]), self.doc.snapshot.node_ids())
        node = Node(id=node_id, label=text, size=DEFAULT_NODE_SIZE, embedding=tuple(embedding))

        snapshot = self.doc.snapshot
        self._on_update(list(snapshot.nodes) + [node], list(snapshot.edges))
        added = link_node(self.doc.snapshot, node_id, self._on_update)

        answer = self._reply(text, self.doc.snapshot)
        if not answer:
            self._append("Error: No response from LLM.", "ai")
            return {"ok": False, "node_id": node_id, "edges_added": len(added), "error": "No response from LLM."}

        self._append(answer, "ai")
        snapshot = self.doc.snapshot
        with_answer = replace(snapshot.get_node(node_id), answer=answer)
        self._on_update(replace_nodes(snapshot.nodes, {node_id: with_answer}), list(snapshot.edges))
        return {"ok": True, "node_id": node_id, "edges_added": len(added), "reply": answer}
