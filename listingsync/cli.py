from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from listingsync.core.errors import CredentialError, FetchError
from listingsync.services.run_lock import RunAlreadyInProgress
from listingsync.services.runner import plan_once, run_sync_locked, run_sync_once


log = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="listing-sync", description="Sync CREA listings into the Webflow CMS collection.")
    sub = p.add_subparsers(dest="command", required=True)

    run_p = sub.add_parser("run", help="run one full sync (create/update, cleanup, publish)")
    run_p.add_argument("--no-lock", action="store_true", help="skip the redis run lock")
    sub.add_parser("plan", help="print create/update/delete counts without mutating anything")

    args = p.parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    if args.command == "plan":
        try:
            summary = asyncio.run(plan_once())
        except (CredentialError, FetchError) as e:
            print(f"plan failed: {e}", file=sys.stderr)
            return 1
        print(json.dumps(summary.to_dict(), indent=2))
        return 0

    try:
        result = asyncio.run(run_sync_once() if args.no_lock else run_sync_locked())
    except RunAlreadyInProgress as e:
        print(str(e), file=sys.stderr)
        return 3
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
