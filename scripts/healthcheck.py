"""
======================================================================
 Presence Runtime — Version v1.0.0 (Build 2026.10)
 Licensed under the MIT License
======================================================================
"""

"""
Container healthcheck probe.

Calls GET /health on the local presence runtime and exits 0 when it
answers {"status": "healthy"}, 1 otherwise.

Usage:
    python scripts/healthcheck.py [--url http://127.0.0.1:3000/health]

The default URL honours the PORT environment variable.
"""

import argparse
import os
import sys

import httpx


def default_url() -> str:
    port = os.getenv("PORT", "3000").strip() or "3000"
    return f"http://127.0.0.1:{port}/health"


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Probe the presence runtime health endpoint")
    parser.add_argument(
        "--url",
        default=default_url(),
        help="Health endpoint URL (default: http://127.0.0.1:$PORT/health)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=3.0,
        help="Request timeout in seconds (default: 3.0)",
    )
    return parser.parse_args(argv)


def check(url: str, timeout: float = 3.0) -> bool:
    try:
        response = httpx.get(url, timeout=timeout)
    except httpx.HTTPError as e:
        print(f"Health endpoint unreachable: {e}", file=sys.stderr)
        return False

    if response.status_code != 200:
        print(f"Health endpoint returned HTTP {response.status_code}", file=sys.stderr)
        return False

    try:
        payload = response.json()
    except ValueError:
        print("Health endpoint returned invalid JSON", file=sys.stderr)
        return False

    if payload.get("status") != "healthy":
        print(f"Unexpected health payload: {payload}", file=sys.stderr)
        return False

    print("Presence runtime is healthy")
    return True


def main(argv=None) -> int:
    args = parse_args(argv)
    return 0 if check(args.url, args.timeout) else 1


if __name__ == "__main__":
    sys.exit(main())
