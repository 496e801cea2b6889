#!/usr/bin/env python3
"""Start the webhook without TLS, send the example AdmissionReview and check the reply."""

from __future__ import annotations

import argparse
import base64
import json
import subprocess
import sys
import time
from pathlib import Path
from typing import Any, Dict, List

import httpx

ROOT = Path(__file__).resolve().parents[1]
PYTHON = sys.executable
STATUS_KEY = "mutating.lxcfs-admission-webhook.io/status"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="End-to-end smoke test for the admission webhook")
    parser.add_argument("--port", type=int, default=18443, help="Port for the temporary server.")
    parser.add_argument(
        "--review",
        type=Path,
        default=ROOT / "tests" / "fixtures" / "admission_review.json",
        help="AdmissionReview document to send.",
    )
    parser.add_argument("--timeout", type=float, default=15.0, help="Seconds to wait for the server.")
    return parser.parse_args()


def start_server(port: int) -> subprocess.Popen:
    return subprocess.Popen(
        [PYTHON, "-m", "src.webhook.cli", "serve", "--no-tls", "--host", "127.0.0.1", "--port", str(port)],
        cwd=str(ROOT),
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
    )


def wait_until_ready(client: httpx.Client, timeout: float) -> None:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            response = client.get("/ping")
            if response.status_code == 200 and response.text == "pong":
                return
        except httpx.TransportError:
            pass
        time.sleep(0.2)
    raise RuntimeError(f"webhook did not answer /ping within {timeout:.0f}s")


def check_reply(body: Dict[str, Any], uid: str) -> List[Dict[str, Any]]:
    reply = body.get("response") or {}
    if reply.get("uid") != uid:
        raise RuntimeError(f"uid not echoed: {reply.get('uid')!r}")
    if reply.get("allowed") is not True:
        raise RuntimeError(f"review was not allowed: {reply}")
    if reply.get("patchType") != "JSONPatch":
        raise RuntimeError(f"unexpected patchType: {reply.get('patchType')!r}")
    patch = json.loads(base64.b64decode(reply["patch"]))
    last = patch[-1]
    written = last["value"].get(STATUS_KEY) if isinstance(last["value"], dict) else last["value"]
    if not last["path"].startswith("/metadata/annotations") or written not in {"mutated", "skip", "conflict"}:
        raise RuntimeError(f"patch does not end with the status annotation: {last}")
    return patch


def main() -> None:
    args = parse_args()
    review = json.loads(args.review.read_text(encoding="utf-8"))
    uid = review["request"]["uid"]

    server = start_server(args.port)
    try:
        with httpx.Client(base_url=f"http://127.0.0.1:{args.port}", timeout=5.0) as client:
            wait_until_ready(client, args.timeout)
            response = client.post("/mutate", json=review)
            response.raise_for_status()
            patch = check_reply(response.json(), uid)
    finally:
        server.terminate()
        try:
            output, _ = server.communicate(timeout=10)
        except subprocess.TimeoutExpired:
            server.kill()
            output, _ = server.communicate()

    print(f"Received {len(patch)} patch operation(s); last: {json.dumps(patch[-1])}")
    if output:
        print("Server log:")
        print(output.rstrip())


if __name__ == "__main__":
    main()
