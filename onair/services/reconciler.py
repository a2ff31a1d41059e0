"""Polling reconciler for moderator views.

Not every consumer gets pushed changes, so moderator tools re-read the
event's submissions on a fixed interval and rebuild their pending and
approved lists. The local view is only replaced when something structural
changed (a status, a position flag, or the set of submissions), so a refresh
with nothing new does not disturb whatever the moderator is doing.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

import httpx

from onair.models.qa import QAStatus, Submission

logger = logging.getLogger(__name__)

Fetch = Callable[[], Awaitable[list[Submission]]]


@dataclass
class ModerationView:
    """The two lists a moderator works from."""
    pending: list[Submission] = field(default_factory=list)
    approved: list[Submission] = field(default_factory=list)

    def to_api(self) -> dict:
        return {
            "pending": [s.to_api() for s in self.pending],
            "approved": [s.to_api() for s in self.approved],
        }


def build_views(submissions: list[Submission]) -> ModerationView:
    """Pending list: every submission, newest first.
    Approved list: approved submissions, queued first, then newest first.
    """
    newest_first = sorted(submissions, key=lambda s: s.created_at, reverse=True)
    approved = [s for s in newest_first if s.status == QAStatus.APPROVED]
    approved.sort(key=lambda s: not s.is_queued)
    return ModerationView(pending=newest_first, approved=approved)


def _signature(submission: Submission) -> tuple:
    return (
        submission.status,
        submission.is_active,
        submission.is_next,
        submission.is_queued,
        submission.is_done,
    )


def has_structural_change(previous: Optional[list[Submission]], current: list[Submission]) -> bool:
    """True if a submission was added or removed, or its status or a flag changed.

    Text edits alone are not structural.
    """
    if previous is None:
        return True
    before = {s.id: _signature(s) for s in previous}
    after = {s.id: _signature(s) for s in current}
    return before != after


class ModerationReconciler:
    """Re-fetches submissions every ``interval`` seconds and keeps the latest view."""

    def __init__(
        self,
        fetch: Fetch,
        interval: float = 2.0,
        on_change: Optional[Callable[[ModerationView], None]] = None,
    ):
        self._fetch = fetch
        self.interval = interval
        self._on_change = on_change
        self._submissions: Optional[list[Submission]] = None
        self._in_flight = False
        self._runner: Optional[asyncio.Task] = None
        self._refreshes: set[asyncio.Task] = set()
        self.view = ModerationView()

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def refresh(self) -> bool:
        """Fetch once and replace the view if it changed structurally.

        Returns:
            True if the view was replaced. False if nothing changed, the fetch
            failed, or another fetch was already in flight.
        """
        if self._in_flight:
            logger.debug("Moderation refresh skipped, previous fetch still in flight.")
            return False

        self._in_flight = True
        try:
            submissions = await self._fetch()
        except Exception as e:
            logger.warning(f"Moderation refresh failed, keeping previous view: {e}")
            return False
        finally:
            self._in_flight = False

        if not has_structural_change(self._submissions, submissions):
            return False

        self._submissions = submissions
        self.view = build_views(submissions)
        logger.debug(f"Moderation view replaced: {len(self.view.pending)} total, {len(self.view.approved)} approved.")
        if self._on_change is not None:
            self._on_change(self.view)
        return True

    async def run(self):
        """Start a refresh every tick. Ticks that find a fetch in flight do nothing."""
        while True:
            task = asyncio.create_task(self.refresh())
            self._refreshes.add(task)
            task.add_done_callback(self._refreshes.discard)
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        if self._runner is None or self._runner.done():
            self._runner = asyncio.create_task(self.run())
        return self._runner

    async def stop(self):
        tasks = [t for t in [self._runner, *self._refreshes] if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._runner = None


def store_fetcher(moderation, event_id: str) -> Fetch:
    """Fetch submissions from an in-process ModerationService."""
    async def fetch() -> list[Submission]:
        return await moderation.list_submissions(event_id)
    return fetch


def http_fetcher(base_url: str, event_id: str, timeout: float = 10.0) -> Fetch:
    """Fetch submissions from a running backend's moderation API."""
    endpoint = f"{base_url.rstrip('/')}/api/moderation/events/{event_id}/submissions"

    async def fetch() -> list[Submission]:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.get(endpoint)
            response.raise_for_status()
            return [Submission.model_validate(doc) for doc in response.json()["submissions"]]
    return fetch
