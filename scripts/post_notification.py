"""Post one parsed gateway notification to the reconciliation service.

Useful for replaying a notification by hand or checking duplicate handling.
"""

import argparse
import json
from pathlib import Path

import httpx


def main() -> None:
    """Parse CLI args and post one notification JSON payload."""

    parser = argparse.ArgumentParser(description="Post a gateway notification to the reconciliation service.")
    parser.add_argument("--url", default="http://localhost:8000")
    parser.add_argument("--json", dest="json_inline", default=None, help="Inline JSON payload")
    parser.add_argument("--file", dest="json_file", default=None, help="Path to JSON file")
    args = parser.parse_args()

    if bool(args.json_inline) == bool(args.json_file):
        raise SystemExit("Provide exactly one of --json or --file")

    if args.json_inline:
        payload = json.loads(args.json_inline)
    else:
        payload = json.loads(Path(args.json_file).read_text())

    resp = httpx.post(f"{args.url}/notifications", json=payload, timeout=10.0)
    resp.raise_for_status()
    print(json.dumps(resp.json(), indent=2))


if __name__ == "__main__":
    main()
