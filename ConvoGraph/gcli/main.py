from __future__ import annotations
import sys

from gcli.args import build_parser
from gcli.server import via_server
from gcli.local import via_local

def main():
    ap = build_parser()
    args = ap.parse_args()

    # Server mode only needs the command text
    if args.server:
        if not args.command:
            ap.print_usage(sys.stderr)
            print("error: --server requires --command", file=sys.stderr)
            sys.exit(2)
        via_server(args)
        return

    if not args.graph:
        ap.print_usage(sys.stderr)
        print("error: the positional 'graph' is required unless using --server", file=sys.stderr)
        sys.exit(2)

    via_local(args)

if __name__ == "__main__":
    main()
