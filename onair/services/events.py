"""Event records and their spreadsheet configuration."""

import logging
from typing import Optional

from onair.errors import NotFound, ValidationError
from onair.models.base import utc_now_iso
from onair.models.live_state import Event
from onair.services.document_store import EVENTS, POLLS, DocumentStore
from onair.services.sheet_sync import SheetSyncDispatcher

logger = logging.getLogger(__name__)

# Fields a moderator may change after creation.
EDITABLE_FIELDS = set(Event.model_fields) - {"id", "created_at", "updated_at"}


class EventService:
    """CRUD for events, plus spreadsheet initialisation."""

    def __init__(self, store: DocumentStore, dispatcher: SheetSyncDispatcher):
        self._store = store
        self._dispatcher = dispatcher

    async def create_event(self, event: Event) -> Event:
        if not event.name.strip():
            raise ValidationError("Event name is required.")
        event_id = await self._store.create(EVENTS, event.to_document())
        logger.info(f"Event {event_id} created: {event.name}")
        return event.model_copy(update={"id": event_id})

    async def find_event(self, event_id: str) -> Optional[Event]:
        doc = await self._store.get(EVENTS, event_id)
        return Event.model_validate(doc) if doc else None

    async def get_event(self, event_id: str) -> Event:
        event = await self.find_event(event_id)
        if event is None:
            raise NotFound(f"Event {event_id} not found.")
        return event

    async def list_events(self) -> list[Event]:
        docs = await self._store.query(EVENTS)
        return sorted((Event.model_validate(d) for d in docs), key=lambda e: e.created_at)

    async def update_event(self, event_id: str, updates: dict) -> Event:
        """Merge editable fields (snake_case keys) into the event."""
        event = await self.get_event(event_id)
        unknown = set(updates) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown event fields: {', '.join(sorted(unknown))}")
        merged = event.model_copy(update={**updates, "updated_at": utc_now_iso()})
        fields = merged.to_document()
        # A null in the request clears the stored value.
        for name, value in updates.items():
            if value is None:
                fields[Event.model_fields[name].alias or name] = None
        await self._store.update(EVENTS, event_id, fields)
        return merged

    async def delete_event(self, event_id: str):
        await self.get_event(event_id)
        await self._store.delete(EVENTS, event_id)
        logger.info(f"Event {event_id} deleted.")

    async def sheet_names(self, event: Event) -> list[str]:
        """Every sheet the event's mirror writes to."""
        names = [
            event.active_qa_sheet_name,
            event.qa_backup_sheet_name,
            event.poll_backup_sheet_name,
            *event.qa_backup_sheet_names.values(),
        ]
        for poll in await self._store.query(POLLS, eventId=event.id):
            names.append(poll.get("googleSheetTab"))

        unique: list[str] = []
        for name in names:
            name = (name or "").strip()
            if name and name not in unique:
                unique.append(name)
        return unique

    async def initialize_sheets(self, event_id: str) -> dict:
        """Ask the spreadsheet script to create the event's sheets.

        Unlike backups this is awaited: the moderator needs to know if it failed.
        """
        event = await self.get_event(event_id)
        if not event.web_app_url:
            raise ValidationError("Event has no spreadsheet web app URL.")
        names = await self.sheet_names(event)
        return await self._dispatcher.post(event.web_app_url, {"type": "initialize", "sheetNames": names})
