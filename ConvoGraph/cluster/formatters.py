# cluster/formatters.py
"""
Formatters for graph command results - convert execute() results to markdown.
Deterministic, no LLM.
"""
from __future__ import annotations
from typing import Any, Callable, Dict

def _status_line(result: Dict[str, Any], default: str) -> str:
    if result.get("status") == "ok":
        return f"✓ {result.get('message', default)}"
    return f"✗ Error: {result.get('error', 'Unknown error')}"

def render_cluster_members(result: Dict[str, Any]) -> str:
    if result.get("status") != "ok":
        return _status_line(result, "")
    info = result.get("result") or {}
    lines = [f"**Cluster `{info.get('cluster_id')}`** ({info.get('count', 0)} nodes)"]
    for member in info.get("members", []):
        first_line = (member.get("label") or "").split("\n")[0]
        lines.append(f"- `{member.get('id')}` {first_line}")
    return "\n".join(lines)

def render_list_clusters(result: Dict[str, Any]) -> str:
    if result.get("status") != "ok":
        return _status_line(result, "")
    clusters = result.get("result") or []
    if not clusters:
        return "No clusters yet."
    lines = [f"**Clusters** ({len(clusters)})"]
    for c in clusters:
        lines.append(f"- `{c['cluster_id']}`: {c['count']} nodes")
    return "\n".join(lines)

def render_auto_cluster(result: Dict[str, Any]) -> str:
    if result.get("status") != "ok":
        return _status_line(result, "")
    lines = [_status_line(result, "Clustered")]
    for c in (result.get("result") or {}).get("clusters", []):
        lines.append(f"- **{c['tag']}** `{c['cluster_id']}` {c['count']} nodes ({c['color']})")
    return "\n".join(lines)

RENDERERS: Dict[str, Callable[[Dict[str, Any]], str]] = {
    "cluster_members": render_cluster_members,
    "list_clusters": render_list_clusters,
    "auto_cluster": render_auto_cluster,
}

def render(intent: str, result: Dict[str, Any]) -> str:
    """Markdown for any command result; falls back to the status line."""
    fn = RENDERERS.get(intent)
    if fn is not None:
        return fn(result)
    return _status_line(result, "Done")
