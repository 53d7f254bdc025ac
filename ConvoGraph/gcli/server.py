from __future__ import annotations
import sys
from typing import Any, Dict

def via_server(args) -> Dict[str, Any]:
    """
    Sends a text command to the running FastAPI server (POST /api/command)
    and prints the rendered answer.
    """
    try:
        import requests
    except ImportError as e:
        print(f"[remote error] requests not available: {e}", file=sys.stderr)
        sys.exit(2)

    base = args.server.rstrip("/")
    try:
        r = requests.post(f"{base}/api/command", json={"command": args.command}, timeout=120)
    except requests.RequestException as e:
        print(f"[remote /api/command] {e}", file=sys.stderr)
        sys.exit(1)
    if r.status_code >= 400:
        try:
            detail = r.json().get("detail")
        except ValueError:
            detail = r.text
        print(f"[remote /api/command] {r.status_code}: {detail}", file=sys.stderr)
        sys.exit(1)

    data = r.json()
    print(data.get("answer") or data.get("message") or "")
    return data
