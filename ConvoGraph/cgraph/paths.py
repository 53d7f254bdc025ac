from __future__ import annotations
from pathlib import Path
import os

# Directory layout:
#   .../<repo>/
#       ├─ ConvoGraph/              <-- this file is in ConvoGraph/cgraph/
#       └─ output/                  <-- saved graphs live here
#
# BASE           -> .../<repo>/ConvoGraph
# ROOT_ABOVE     -> .../<repo>
BASE = Path(__file__).resolve().parent.parent
ROOT_ABOVE = BASE.parent

# GRAPH_OUTPUT_DIR overrides where graphs are saved
OUTPUT_DIR = Path(os.getenv("GRAPH_OUTPUT_DIR") or (ROOT_ABOVE / "output")).resolve()

GRAPHS_DIR = OUTPUT_DIR / "graphs"

STATIC_DIR = BASE / "static"

def ensure_dirs() -> None:
    """Create expected directories if they don't exist."""
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    GRAPHS_DIR.mkdir(parents=True, exist_ok=True)
