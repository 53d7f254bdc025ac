# cluster/modes.py
"""
Interaction mode controller.

Three revisitable modes gate what a gesture does:
  BROWSE          click selects one node, hover shows content (initial)
  EDIT            click opens the node attribute editor; save / delete
  CLUSTER_SELECT  clicks/selection accumulate a selection set; with 2+ nodes
                  the naming prompt is shown and submit builds a manual cluster
Entering any mode clears every mode's transient state.
"""
from __future__ import annotations
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from cgraph.model import Edge, GraphSnapshot, UpdateCallback
from cluster import ops as O

TOOLTIP_WORDS = 20


class Mode(str, Enum):
    BROWSE = "browse"
    EDIT = "edit"
    CLUSTER_SELECT = "cluster_select"


def tooltip_text(snapshot: GraphSnapshot, node_id: str) -> str:
    """Attached answer (first 20 words), else title, else label."""
    node = snapshot.get_node(node_id)
    if node.answer:
        words = node.answer.split()
        text = " ".join(words[:TOOLTIP_WORDS])
        return text + "..." if len(words) > TOOLTIP_WORDS else text
    return node.title or node.label or ""


class InteractionController:
    def __init__(self, get_snapshot: Callable[[], GraphSnapshot], on_update: UpdateCallback) -> None:
        self._get_snapshot = get_snapshot
        self._on_update = on_update
        self.mode = Mode.BROWSE
        self._reset_transient()

    def _reset_transient(self) -> None:
        self.selected_node: Optional[str] = None
        self.selection: List[str] = []
        self.editor: Optional[Dict[str, Any]] = None
        self.renaming: Optional[str] = None
        self.cluster_panel: Optional[Dict[str, Any]] = None

    # ------------------------------------------------------------------ #
    # Mode transitions
    # ------------------------------------------------------------------ #

    def enter(self, mode: Mode) -> Mode:
        self._reset_transient()
        self.mode = Mode(mode)
        return self.mode

    def toggle(self, mode: Mode) -> Mode:
        """Switch into `mode`, or back to BROWSE when already in it."""
        return self.enter(Mode.BROWSE if self.mode == Mode(mode) else mode)

    @property
    def naming_prompt(self) -> bool:
        return self.mode == Mode.CLUSTER_SELECT and len(self.selection) >= O.MIN_MANUAL_CLUSTER

    # ------------------------------------------------------------------ #
    # Renderer events
    # ------------------------------------------------------------------ #

    def click(self, node_id: Optional[str]) -> Dict[str, Any]:
        snapshot = self._get_snapshot()
        if self.mode == Mode.CLUSTER_SELECT:
            if node_id is not None:
                snapshot.get_node(node_id)
                if node_id in self.selection:
                    self.selection.remove(node_id)
                else:
                    self.selection.append(node_id)
        elif self.mode == Mode.EDIT:
            if node_id is None:
                self.editor = None
            else:
                node = snapshot.get_node(node_id)
                self.editor = {"node_id": node_id, "form": O.edit_form(node)}
        else:
            self.selected_node = node_id
            self.cluster_panel = None
            if node_id is not None:
                node = snapshot.get_node(node_id)
                if node.group:
                    self.cluster_panel = O.cluster_info(snapshot, node.group)
        return self.state()

    def select(self, node_ids: Sequence[str]) -> Dict[str, Any]:
        """Multi-select gesture (shift-click / box select); only in CLUSTER_SELECT."""
        if self.mode == Mode.CLUSTER_SELECT:
            self.selection = list(dict.fromkeys(str(n) for n in node_ids))
        return self.state()

    def hover(self, node_id: str) -> str:
        return tooltip_text(self._get_snapshot(), node_id)

    def double_click(self, node_id: str) -> Optional[str]:
        """On a clustered node in BROWSE, start renaming its cluster."""
        if self.mode != Mode.BROWSE:
            return None
        node = self._get_snapshot().get_node(node_id)
        self.renaming = node.group
        return self.renaming

    # ------------------------------------------------------------------ #
    # Submissions
    # ------------------------------------------------------------------ #

    def submit_cluster(self, name: Optional[str] = None) -> List[Edge]:
        if not self.naming_prompt:
            return []
        edges = O.build_manual_cluster(self._get_snapshot(), self.selection, self._on_update, name=name)
        self.enter(Mode.BROWSE)
        return edges

    def submit_rename(self, name: str) -> List[str]:
        if not self.renaming or not (name or "").strip():
            return []
        changed = O.rename_cluster(self._get_snapshot(), self.renaming, name, self._on_update)
        self.renaming = None
        return changed

    def cancel_rename(self) -> None:
        self.renaming = None

    def save_edit(
        self,
        label: Optional[str] = None,
        size: Optional[float] = None,
        comment: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Dict[str, Any]:
        node_id = self._editing()
        node = O.edit_node(
            self._get_snapshot(), node_id, self._on_update,
            label=label, size=size, comment=comment, color=color,
        )
        self.editor = None
        return node.to_dict()

    def delete_node(self) -> Dict[str, Any]:
        node_id = self._editing()
        result = O.delete_node(self._get_snapshot(), node_id, self._on_update)
        self.editor = None
        return result

    def close_editor(self) -> None:
        self.editor = None

    def _editing(self) -> str:
        if self.mode != Mode.EDIT or not self.editor:
            raise ValueError("No node is open in the editor")
        return self.editor["node_id"]

    def state(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "selected_node": self.selected_node,
            "selection": list(self.selection),
            "naming_prompt": self.naming_prompt,
            "editor": self.editor,
            "renaming": self.renaming,
            "cluster_panel": self.cluster_panel,
        }
