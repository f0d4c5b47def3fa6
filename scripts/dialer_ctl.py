#!/usr/bin/env python3
"""Drive a running dialer server from the command line.

Usage:
    python scripts/dialer_ctl.py status                    # current session
    python scripts/dialer_ctl.py add +15550100             # queue one number
    python scripts/dialer_ctl.py import numbers.txt        # one number per line ("-" for stdin)
    python scripts/dialer_ctl.py remove +15550100
    python scripts/dialer_ctl.py clear
    python scripts/dialer_ctl.py start
    python scripts/dialer_ctl.py stop
    python scripts/dialer_ctl.py --url http://host:8765 status --raw
"""

import argparse
import json
import sys
from urllib.parse import quote

import httpx

STATUS_TEXT = {
    "idle": "Ready to start calling",
    "calling": "Calling in progress...",
    "ringing": "Ringing...",
    "answered": "Call answered",
}


def format_status(session: dict) -> str:
    """Format a session snapshot dict into human-readable output."""
    state = session.get("state", "idle")
    lines = [STATUS_TEXT.get(state, state)]
    current = session.get("current_number")
    if current:
        lines.append(f"Calling: {current}")
    lines.append(f"Calls made: {session.get('call_count', 0)}")

    queue = session.get("queue", [])
    if queue:
        lines.append(f"Queued ({len(queue)}):")
        for i, number in enumerate(queue, start=1):
            lines.append(f"  {i:>3}. {number}")
    else:
        lines.append("Queue is empty")
    return "\n".join(lines)


def read_numbers_text(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(path, encoding="utf-8") as f:
        return f.read()


def run_command(client: httpx.Client, args) -> dict:
    """Send one command to the server and return the session snapshot."""
    if args.command == "status":
        resp = client.get("/session")
    elif args.command == "add":
        resp = client.post("/numbers", json={"number": args.number})
    elif args.command == "import":
        resp = client.post("/numbers/import", json={"text": read_numbers_text(args.path)})
        resp.raise_for_status()
        result = resp.json()
        print(result["message"], file=sys.stderr)
        return result["session"]
    elif args.command == "remove":
        resp = client.delete(f"/numbers/{quote(args.number, safe='+')}")
    elif args.command == "clear":
        resp = client.delete("/numbers")
    elif args.command == "start":
        resp = client.post("/session/start")
    elif args.command == "stop":
        resp = client.post("/session/stop")
    else:
        raise ValueError(f"unknown command {args.command!r}")
    resp.raise_for_status()
    return resp.json()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Control a running auto-dialer")
    parser.add_argument("--url", type=str, default="http://localhost:8765", help="Dialer server base URL")
    output = argparse.ArgumentParser(add_help=False)
    output.add_argument("--raw", action="store_true", help="Output raw JSON")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", parents=[output], help="Show the current session")
    add = sub.add_parser("add", parents=[output], help="Queue one number")
    add.add_argument("number")
    imp = sub.add_parser("import", parents=[output], help="Queue numbers from a file, one per line")
    imp.add_argument("path")
    remove = sub.add_parser("remove", parents=[output], help="Remove a queued number")
    remove.add_argument("number")
    sub.add_parser("clear", parents=[output], help="Empty the queue")
    sub.add_parser("start", parents=[output], help="Start dialing")
    sub.add_parser("stop", parents=[output], help="Stop auto-advancing")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        with httpx.Client(base_url=args.url, timeout=10.0) as client:
            session = run_command(client, args)
    except httpx.HTTPStatusError as e:
        print(f"Error: server returned {e.response.status_code}: {e.response.text}", file=sys.stderr)
        sys.exit(1)
    except httpx.HTTPError as e:
        print(f"Error: could not reach dialer at {args.url}: {e}", file=sys.stderr)
        sys.exit(1)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.raw:
        print(json.dumps(session, indent=2))
    else:
        print(format_status(session))


if __name__ == "__main__":
    main()
