"""Trigger a digest run on a running slackdigest server.

Development helper that POSTs to /api/v1/runs and prints the started window.
"""

import argparse
import http.client
import json
import sys


def create_parser() -> argparse.ArgumentParser:
    """Create the command line parser."""
    parser = argparse.ArgumentParser(
        description="Trigger a digest run on the server",
    )
    parser.add_argument(
        "-H",
        "--host",
        default="localhost",
        help="Server host (default: localhost)",
    )
    parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=8080,
        help="Server port (default: 8080)",
    )
    parser.add_argument(
        "--start",
        help="Window start as ISO 8601 (default: last scheduled window)",
    )
    parser.add_argument(
        "--end",
        help="Window end as ISO 8601 (required with --start)",
    )
    return parser


def trigger_run(
    host: str, port: int, start: str | None, end: str | None
) -> tuple[bool, str]:
    """Start a run.

    Returns:
        (success flag, message) tuple
    """
    payload = {}
    if start or end:
        payload = {"start": start, "end": end}

    try:
        conn = http.client.HTTPConnection(host, port, timeout=30)
        try:
            conn.request(
                "POST",
                "/api/v1/runs",
                body=json.dumps(payload),
                headers={"Content-Type": "application/json"},
            )
            response = conn.getresponse()
            body = response.read().decode("utf-8")

            try:
                data = json.loads(body)
            except json.JSONDecodeError:
                return False, f"Invalid JSON response: {body}"

            if response.status == 202:
                return True, f"{data['window_start']} - {data['window_end']}"
            return False, f"{response.status} {data.get('error', response.reason)}"
        finally:
            conn.close()
    except ConnectionRefusedError:
        return False, "Connection refused"
    except TimeoutError:
        return False, "Connection timeout"
    except OSError as e:
        return False, str(e)


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()
    if (args.start is None) != (args.end is None):
        parser.error("--start and --end must be given together")

    print(f"Triggering run on http://{args.host}:{args.port}/api/v1/runs...")
    success, message = trigger_run(args.host, args.port, args.start, args.end)

    if not success:
        print(f"Error: {message}")
        return 1

    print(f"Run started for window {message}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
