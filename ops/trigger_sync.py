from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any
import urllib.request
import urllib.error


DEFAULT_BASE_URL = os.getenv("LISTING_SYNC_BASE_URL", "http://localhost:8000")
DEFAULT_ADMIN_KEY = os.getenv("INTERNAL_ADMIN_KEY", "")

# a full run sleeps between batches; give it room
DEFAULT_TIMEOUT_SECONDS = 3 * 60 * 60


def http_call(method: str, url: str, admin_key: str, timeout: float) -> dict[str, Any]:
    req = urllib.request.Request(
        url=url,
        method=method,
        headers={"X-Internal-Admin-Key": admin_key},
    )
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            raw = resp.read().decode("utf-8")
            return json.loads(raw) if raw else {}
    except urllib.error.HTTPError as e:
        body = e.read().decode("utf-8", errors="replace")
        print(f"HTTP {e.code} {e.reason} for {url}", file=sys.stderr)
        if body:
            print(body, file=sys.stderr)
        return {"error": {"status": e.code, "reason": e.reason, "body": body}}
    except urllib.error.URLError as e:
        print(f"Network error for {url}: {e}", file=sys.stderr)
        return {"error": {"reason": str(e)}}


def main() -> int:
    p = argparse.ArgumentParser(description="Trigger a listing sync on a running service.")
    p.add_argument("--base-url", default=DEFAULT_BASE_URL)
    p.add_argument("--admin-key", default=DEFAULT_ADMIN_KEY)
    p.add_argument("--mode", choices=["plan", "run"], default="plan")
    p.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT_SECONDS)
    p.add_argument("--yes", action="store_true", help="required for run mode (mutates the CMS)")
    args = p.parse_args()

    if not args.admin_key:
        print("Missing INTERNAL_ADMIN_KEY (env) or --admin-key", file=sys.stderr)
        return 2

    if args.mode == "run" and not args.yes:
        print("Refusing to run without --yes (safety).", file=sys.stderr)
        return 2

    base_url = args.base_url.rstrip("/")
    if args.mode == "plan":
        resp = http_call("GET", f"{base_url}/v1/internal/sync/plan", args.admin_key, args.timeout)
    else:
        resp = http_call("POST", f"{base_url}/v1/internal/sync/run", args.admin_key, args.timeout)

    print(json.dumps(resp, indent=2, ensure_ascii=False))
    if "error" in resp:
        return 1
    return 0 if resp.get("status", "success") != "failed" else 1

if __name__ == "__main__":
    raise SystemExit(main())
