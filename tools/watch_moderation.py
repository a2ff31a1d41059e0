"""Moderation watcher tool.

Polls a running backend for an event's submissions and prints the pending
and approved lists whenever they change structurally.

Usage:
    python tools/watch_moderation.py --event <event_id>
    python tools/watch_moderation.py --event <event_id> --api http://localhost:8000 --interval 5
"""

import argparse
import asyncio
import logging
import os

from dotenv import load_dotenv

from onair.config import get_settings
from onair.services.reconciler import ModerationReconciler, ModerationView, http_fetcher

load_dotenv()

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")


def _slot(submission) -> str:
    if submission.position is None:
        return "      "
    return f"[{submission.position.value:^6}]"


def print_view(view: ModerationView):
    print()
    print(f"PENDING ({len(view.pending)})")
    for s in view.pending:
        print(f"  {s.status.value:<9} {_slot(s)} {s.question[:70]}")
    print(f"APPROVED ({len(view.approved)})")
    for s in view.approved:
        print(f"  #{s.queue_order or '-':<4} {_slot(s)} {s.question[:70]}  ({s.submitter_name or 'Anonymous'})")


async def watch(api_url: str, event_id: str, interval: float):
    reconciler = ModerationReconciler(http_fetcher(api_url, event_id), interval=interval, on_change=print_view)
    reconciler.start()
    try:
        await asyncio.Event().wait()
    finally:
        await reconciler.stop()


def main():
    default_api = f"http://localhost:{os.getenv('BACKEND_PORT', '8000')}"

    parser = argparse.ArgumentParser(description="Watch an event's moderation lists")
    parser.add_argument("--event", required=True, help="Event id")
    parser.add_argument("--api", default=default_api, help=f"Backend URL (default: {default_api})")
    parser.add_argument("--interval", type=float, default=get_settings().reconcile_interval_seconds,
                        help="Seconds between refreshes")
    args = parser.parse_args()

    try:
        asyncio.run(watch(args.api, args.event, args.interval))
    except KeyboardInterrupt:
        print("\nStopped.")


if __name__ == "__main__":
    main()
