from __future__ import annotations
import argparse

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="convograph", description="Link and cluster a saved conversation graph.")
    # Optional so --server --command can be used without a local file
    ap.add_argument("graph", nargs="?", default=None,
                    help="Path to a graph JSON file (as written by save/share).")

    # Engine operations (applied in this order)
    ap.add_argument("--link", action="store_true", help="Add 'related' edges between similar nodes")
    ap.add_argument("--filter-label", help="Only cluster nodes whose label contains this text")
    ap.add_argument("--filter-group", help="Only cluster nodes whose group contains this text")
    ap.add_argument("--auto-cluster", action="store_true", help="Automatically cluster the (filtered) nodes")
    ap.add_argument("--topic", help="Group nodes whose label mentions this topic")
    ap.add_argument("--cluster", help="Comma-separated node ids to connect as a manual cluster")
    ap.add_argument("--name", help="Name for --cluster (default: 'Cluster <n>')")
    ap.add_argument("--rename", nargs=2, metavar=("CLUSTER_ID", "NAME"), help="Rename a cluster's tag")
    ap.add_argument("--dissolve", metavar="CLUSTER_ID", help="Dissolve a cluster (edges are kept)")

    # Output
    ap.add_argument("--members", metavar="CLUSTER_ID", help="Print the members of a cluster")
    ap.add_argument("--list", action="store_true", help="Print every cluster with its size")
    ap.add_argument("--positions", action="store_true", help="Print layout positions after --auto-cluster")
    ap.add_argument("--out", help="Write the result here (default: overwrite the input file)")
    ap.add_argument("--dry-run", action="store_true", help="Do not write anything")

    # Remote
    ap.add_argument("--server", help="Base URL of running FastAPI app, e.g. http://127.0.0.1:8000")
    ap.add_argument("--command", help="Text command sent to --server (e.g. 'auto cluster')")
    return ap
