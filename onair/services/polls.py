"""Audience polls: creation, on-air toggling and vote counting."""

import asyncio
import logging
import uuid
import weakref
from datetime import datetime, timezone
from typing import Optional

from onair.errors import InvalidState, NotFound, UpstreamError, ValidationError
from onair.models.base import utc_now_iso
from onair.models.poll import Poll, PollCreate, PollOption, PollType
from onair.services.document_store import POLLS, DocumentStore
from onair.services.events import EventService
from onair.services.live_state import LiveStateProjector
from onair.services.sheet_sync import SheetSyncDispatcher

logger = logging.getLogger(__name__)

YES_NO_OPTIONS = ("Yes", "No")


class PollService:
    """Manages polls and their vote counts.

    Votes are read, incremented in memory and written back as a whole options
    list. A per-poll lock serializes voters within this process; voters on
    other processes can still overwrite each other's increments.
    """

    def __init__(
        self,
        store: DocumentStore,
        events: EventService,
        live: LiveStateProjector,
        dispatcher: SheetSyncDispatcher,
        max_options: int = 6,
    ):
        self._store = store
        self._events = events
        self._live = live
        self._dispatcher = dispatcher
        self._max_options = max_options
        # Entries vanish once no voter holds or waits on the lock.
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, poll_id: str) -> asyncio.Lock:
        lock = self._locks.get(poll_id)
        if lock is None:
            lock = self._locks[poll_id] = asyncio.Lock()
        return lock

    async def create_poll(self, request: PollCreate) -> Poll:
        title = request.title.strip()
        if not title:
            raise ValidationError("Poll title is required.")

        texts = [option.text.strip() for option in request.options]
        if request.type == PollType.YES_NO and not texts:
            texts = list(YES_NO_OPTIONS)
        if any(not text for text in texts):
            raise ValidationError("Poll options cannot be empty.")
        if not 1 <= len(texts) <= self._max_options:
            raise ValidationError(f"A poll needs between 1 and {self._max_options} options.")

        image_urls = [option.image_url for option in request.options] or [None] * len(texts)
        poll = Poll(
            event_id=request.event_id,
            type=request.type,
            title=title,
            options=[
                PollOption(id=uuid.uuid4().hex, text=text, votes=0, image_url=image_url or None)
                for text, image_url in zip(texts, image_urls)
            ],
            google_sheet_tab=(request.google_sheet_tab or "").strip() or None,
            display=request.display,
        )
        poll_id = await self._store.create(POLLS, poll.to_document())
        logger.info(f"Poll {poll_id} created in event {poll.event_id}: {title}")
        return poll.model_copy(update={"id": poll_id})

    async def get_poll(self, poll_id: str) -> Poll:
        doc = await self._store.get(POLLS, poll_id)
        if doc is None:
            raise NotFound(f"Poll {poll_id} not found.")
        return Poll.model_validate(doc)

    async def list_polls(self, event_id: str) -> list[Poll]:
        docs = await self._store.query(POLLS, eventId=event_id)
        return sorted((Poll.model_validate(d) for d in docs), key=lambda p: p.created_at)

    async def set_poll_active(self, poll_id: str, active: bool) -> Poll:
        """Put a poll on air (taking any other poll in the event off) or take it off."""
        poll = await self.get_poll(poll_id)
        now = utc_now_iso()

        if active:
            others = await self._store.query(POLLS, eventId=poll.event_id, isActive=True)
            updates = {doc["id"]: {"isActive": False, "updatedAt": now} for doc in others if doc["id"] != poll_id}
            updates[poll_id] = {"isActive": True, "updatedAt": now}
            await self._store.batch_update(POLLS, updates)
            poll = await self.get_poll(poll_id)
            await self._live.publish_live_poll(poll.event_id, poll)
            logger.info(f"Poll {poll_id} is on air.")
            return poll

        await self._store.update(POLLS, poll_id, {"isActive": False, "updatedAt": now})
        if await self._is_live(poll):
            await self._live.publish_live_poll(poll.event_id, None)
        logger.info(f"Poll {poll_id} taken off air.")
        return await self.get_poll(poll_id)

    async def set_poll_public(self, poll_id: str, enabled: bool) -> Poll:
        await self.get_poll(poll_id)
        await self._store.update(POLLS, poll_id, {"isActiveForPublic": enabled, "updatedAt": utc_now_iso()})
        return await self.get_poll(poll_id)

    async def delete_poll(self, poll_id: str):
        poll = await self.get_poll(poll_id)
        await self._store.delete(POLLS, poll_id)
        if await self._is_live(poll):
            await self._live.publish_live_poll(poll.event_id, None)
        logger.info(f"Poll {poll_id} deleted.")

    async def submit_votes(self, poll_id: str, option_ids: list[str]) -> Poll:
        """Add one vote to each chosen option.

        Raises:
            NotFound: If the poll does not exist.
            InvalidState: If the poll is neither on air nor open to the public.
            ValidationError: If no option, an unknown option, or several options
                on a single-answer poll were chosen.
        """
        chosen = list(dict.fromkeys(option_ids))
        if not chosen:
            raise ValidationError("Select at least one option.")

        async with self._lock_for(poll_id):
            poll = await self.get_poll(poll_id)
            if not (poll.is_active or poll.is_active_for_public):
                raise InvalidState("This poll is not open for voting.")

            known = {option.id for option in poll.options}
            unknown = [option_id for option_id in chosen if option_id not in known]
            if unknown:
                raise ValidationError(f"Unknown poll options: {', '.join(unknown)}")
            if len(chosen) > 1 and poll.type != PollType.MULTIPLE_CHOICE:
                raise ValidationError("This poll accepts a single option.")

            for option in poll.options:
                if option.id in chosen:
                    option.votes += 1
            await self._store.update(POLLS, poll_id, {
                "options": [option.to_document(include_id=True) for option in poll.options],
                "updatedAt": utc_now_iso(),
            })
            # Published under the lock so the live counts never go backwards.
            if await self._is_live(poll):
                await self._live.publish_live_poll(poll.event_id, poll)

        logger.info(f"Poll {poll_id}: vote recorded for {len(chosen)} option(s), {poll.total_votes} total.")
        await self._backup(poll)
        return poll

    async def _is_live(self, poll: Poll) -> bool:
        state = await self._live.get_live_state(poll.event_id)
        return state.active_poll is not None and state.active_poll.id == poll.id

    async def _backup(self, poll: Poll):
        try:
            event = await self._events.find_event(poll.event_id)
        except UpstreamError as e:
            logger.warning(f"Poll backup skipped for {poll.id}: {e}")
            return
        if event is None or not event.web_app_url:
            return
        sheet: Optional[str] = event.poll_backup_sheet(poll.id)
        if not sheet:
            return

        self._dispatcher.dispatch_backup(event.web_app_url, sheet, "poll_backup", {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "id": poll.id,
            "title": poll.title,
            "options": [{"text": option.text, "votes": option.votes} for option in poll.options],
        })
