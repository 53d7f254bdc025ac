from __future__ import annotations
from typing import Any, Dict, Iterable, List, Tuple

from cgraph.model import Edge

def _first_line(label: str) -> str:
    return (label or "").split("\n")[0]

def print_edges(title: str, edges: Iterable[Edge]) -> None:
    edges = list(edges)
    print(f"{title}: {len(edges)}")
    for e in edges:
        print(f"  {e.source} -- {e.target} ({e.label or ''})")

def print_clusters(clusters: List[Dict[str, Any]]) -> None:
    if not clusters:
        print("No clusters.")
        return
    for c in clusters:
        extra = f" {c['tag']} {c['color']}" if "tag" in c else ""
        print(f"{c['cluster_id']}: {c['count']} nodes{extra}")

def print_members(info: Dict[str, Any]) -> None:
    print(f"{info['cluster_id']} ({info['count']} nodes, color {info.get('color') or '-'})")
    for m in info["members"]:
        print(f"  {m['id']} -> {_first_line(m['label'])}")

def print_positions(positions: Dict[str, Tuple[float, float]]) -> None:
    for nid, (x, y) in positions.items():
        print(f"  {nid}: ({x:.1f}, {y:.1f})")
