from __future__ import annotations
import sys
from pathlib import Path
from typing import List

from cgraph import persistence as P
from cgraph.linker import link_similar
from cgraph.model import Edge, GraphSnapshot, Node
from cluster import ops as O
from cluster.clustering import auto_cluster, cluster_by_topic
from gcli.printers import print_clusters, print_edges, print_members, print_positions

def via_local(args) -> P.GraphDocument:
    """
    Apply the requested operations to a graph file, in a fixed order:
    link, auto-cluster, topic, manual cluster, rename, dissolve.
    Every step goes through the same update callback the web service uses.
    """
    path = Path(args.graph)
    try:
        doc = P.load(path)
    except (FileNotFoundError, P.InvalidGraphFile) as e:
        print(f"[gcli] {e}", file=sys.stderr)
        sys.exit(2)

    def on_update(nodes: List[Node], edges: List[Edge]) -> None:
        doc.snapshot = GraphSnapshot.of(nodes, edges)

    print(f"[gcli] Loaded {path} ({len(doc.snapshot.nodes)} nodes, {len(doc.snapshot.edges)} edges)")

    if args.link:
        print_edges("Related edges added", link_similar(doc.snapshot, on_update))

    if args.auto_cluster:
        visible = O.filter_graph(doc.snapshot, label=args.filter_label, group=args.filter_group)
        run = auto_cluster(doc.snapshot, on_update, visible_ids=visible.node_ids())
        print_clusters(run.summary())
        if args.positions:
            print_positions(run.positions)

    if args.topic:
        members = cluster_by_topic(doc.snapshot, args.topic, on_update)
        print(f"Topic '{args.topic}': {len(members)} nodes")

    if args.cluster:
        ids = [x.strip() for x in args.cluster.split(",") if x.strip()]
        if not O.can_build_cluster(ids):
            print("[gcli] --cluster needs at least 2 distinct node ids", file=sys.stderr)
            sys.exit(2)
        try:
            edges = O.build_manual_cluster(doc.snapshot, ids, on_update, name=args.name)
        except KeyError as e:
            print(f"[gcli] {e}", file=sys.stderr)
            sys.exit(2)
        print_edges("Cluster edges added", edges)

    if args.rename:
        cid, name = args.rename
        changed = O.rename_cluster(doc.snapshot, cid, name, on_update)
        print(f"Renamed {len(changed)} nodes in {cid}")

    if args.dissolve:
        released = O.dissolve_cluster(doc.snapshot, args.dissolve, on_update)
        print(f"Dissolved {args.dissolve} ({len(released)} nodes released)")

    if args.members:
        try:
            print_members(O.cluster_info(doc.snapshot, args.members))
        except KeyError as e:
            print(f"[gcli] {e}", file=sys.stderr)

    if args.list:
        print_clusters(O.list_clusters(doc.snapshot))

    if not args.dry_run and _changes_requested(args):
        out = Path(args.out) if args.out else path
        P.save(doc, out)
        print(f"[gcli] Wrote: {out}")
    return doc

def _changes_requested(args) -> bool:
    return bool(args.link or args.auto_cluster or args.topic or args.cluster or args.rename or args.dissolve)
