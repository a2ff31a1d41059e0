"""Projection of what is on air into the per-event live-state document.

The live-state document is what output screens, the CSV endpoints and
spreadsheet scripts read. Every write merges into it, stamps ``updatedAt``,
notifies listeners (the output WebSocket feed) and, when the event mirrors to
a spreadsheet, dispatches the matching webhook without waiting for it.
"""

import logging
from typing import Awaitable, Callable, Optional

from onair.errors import ValidationError
from onair.models.base import utc_now_iso
from onair.models.live_state import ActivePollSnapshot, ActiveQASnapshot, Event, LiveState
from onair.models.poll import Poll
from onair.models.qa import Submission
from onair.services.document_store import LIVE_STATE, DocumentStore
from onair.services.events import EventService
from onair.services.sheet_sync import SheetSyncDispatcher

logger = logging.getLogger(__name__)

LiveStateListener = Callable[[str, dict], Awaitable[None]]


class LiveStateProjector:
    """Maintains one live-state document per event."""

    def __init__(self, store: DocumentStore, events: EventService, dispatcher: SheetSyncDispatcher):
        self._store = store
        self._events = events
        self._dispatcher = dispatcher
        self._listeners: list[LiveStateListener] = []

    def add_listener(self, listener: LiveStateListener):
        self._listeners.append(listener)

    async def get_live_state(self, event_id: str) -> LiveState:
        doc = await self._store.get(LIVE_STATE, event_id)
        return LiveState.model_validate({**(doc or {}), "eventId": event_id})

    async def publish_live_qa(self, event_id: str, submission: Optional[Submission]) -> LiveState:
        """Put ``submission`` on air as the event's active Q&A, or clear it with None."""
        event = await self._events.find_event(event_id)
        snapshot = None
        if submission is not None:
            snapshot = ActiveQASnapshot(
                question=submission.question,
                answer=submission.answer or "",
                submitter_name=submission.submitter_name or "",
            )

        state = await self._write(event_id, {
            "activeQA": snapshot.to_document() if snapshot else None,
            **_event_hints(event),
        })

        if event and event.web_app_url and event.active_qa_sheet_name and event.active_qa_cell:
            data = snapshot or ActiveQASnapshot(question="")
            self._dispatcher.dispatch(event.web_app_url, {
                "type": "qa_active",
                "sheetName": event.active_qa_sheet_name.strip(),
                "cell": event.active_qa_cell.strip(),
                "data": data.to_document(),
            })
        return state

    async def publish_live_poll(self, event_id: str, poll: Optional[Poll]) -> LiveState:
        """Put ``poll`` (with its current counts) on air, or clear it with None."""
        event = await self._events.find_event(event_id)
        snapshot = None
        if poll is not None:
            snapshot = ActivePollSnapshot(
                id=poll.id,
                title=poll.title,
                type=poll.type.value,
                options=poll.options,
                google_sheet_tab=poll.google_sheet_tab,
            )

        sheet_tab = (poll.google_sheet_tab or "").strip() if poll else ""
        state = await self._write(event_id, {
            "activePoll": snapshot.to_document(include_id=True) if snapshot else None,
            "pollSheetName": sheet_tab or None,
            **_event_hints(event),
        })

        if poll is not None and sheet_tab and event and event.web_app_url:
            self._dispatcher.dispatch(event.web_app_url, {
                "type": "poll",
                "subSheet": sheet_tab,
                "poll": {
                    "id": poll.id,
                    "title": poll.title,
                    "type": poll.type.value,
                    "options": [o.to_document(include_id=True) for o in poll.options],
                    "isActive": poll.is_active,
                },
            })
        return state

    async def select_csv_source(
        self,
        event_id: str,
        session_id: Optional[str] = None,
        poll_id: Optional[str] = None,
    ) -> LiveState:
        """Choose which session/poll the CSV endpoints read. An empty string clears."""
        fields = {}
        if session_id is not None:
            fields["csvSourceSessionId"] = session_id or None
        if poll_id is not None:
            fields["csvSourcePollId"] = poll_id or None
        if not fields:
            raise ValidationError("Provide session_id or poll_id.")
        return await self._write(event_id, fields)

    async def _write(self, event_id: str, fields: dict) -> LiveState:
        await self._store.upsert(LIVE_STATE, event_id, {
            **fields,
            "eventId": event_id,
            "updatedAt": utc_now_iso(),
        })
        state = await self.get_live_state(event_id)
        await self._notify(event_id, state)
        return state

    async def _notify(self, event_id: str, state: LiveState):
        payload = state.to_api()
        for listener in self._listeners:
            try:
                await listener(event_id, payload)
            except Exception as e:
                logger.warning(f"Live state listener failed for event {event_id}: {e}")


def _event_hints(event: Optional[Event]) -> dict:
    if event is None:
        return {}
    return {
        "eventName": event.name,
        "qaSheetName": (event.active_qa_sheet_name or "").strip() or None,
        "qaCell": (event.active_qa_cell or "").strip() or None,
    }
