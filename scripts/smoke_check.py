"""
Read-only smoke check against a running chordcoach server.

Waits for ``/health``, then checks that the stats and per-type review
queries answer with well-formed payloads. Exits non-zero on the first failure.

    CHORDCOACH_URL=http://127.0.0.1:8787 python scripts/smoke_check.py
"""

import os
import sys
import time

import requests

SERVER_URL = os.environ.get("CHORDCOACH_URL", "http://127.0.0.1:8787")
STARTUP_TIMEOUT = 30
ITEM_TYPES = ("character", "powerChord", "word")


def wait_until_healthy() -> str | None:
    deadline = time.monotonic() + STARTUP_TIMEOUT
    while time.monotonic() < deadline:
        try:
            response = requests.get(f"{SERVER_URL}/health", timeout=1)
            if response.ok:
                return response.json()["version"]
        except requests.exceptions.RequestException:
            pass
        time.sleep(1)
    return None


def check(path: str, expect: type) -> None:
    response = requests.get(f"{SERVER_URL}{path}", timeout=5)
    response.raise_for_status()
    body = response.json()
    if not isinstance(body, expect):
        raise ValueError(f"{path}: expected {expect.__name__}, got {type(body).__name__}")
    print(f"  ok  {path}")


def main() -> int:
    version = wait_until_healthy()
    if version is None:
        print(f"chordcoach did not become healthy at {SERVER_URL}")
        return 1
    print(f"chordcoach {version} at {SERVER_URL}")

    try:
        check("/stats", dict)
        for item_type in ITEM_TYPES:
            check(f"/progress/{item_type}/due", list)
            check(f"/progress/{item_type}/weak", list)
    except (requests.exceptions.RequestException, ValueError) as e:
        print(f"  FAIL {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
