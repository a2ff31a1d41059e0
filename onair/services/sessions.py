"""Q&A sessions: named collection points for public questions."""

import logging
from typing import Optional

from onair.errors import InvalidState, NotFound, ValidationError
from onair.models.base import utc_now_iso
from onair.models.qa import (
    DEFAULT_SESSION_ID,
    DocumentKind,
    Session,
    SessionCreate,
    SessionUpdate,
    classify_document,
)
from onair.services.document_store import QA, DocumentStore

logger = logging.getLogger(__name__)


class SessionService:
    """CRUD for sessions. Deleting a session leaves its submissions in place."""

    def __init__(self, store: DocumentStore):
        self._store = store

    async def create_session(self, request: SessionCreate) -> Session:
        if not request.name.strip():
            raise ValidationError("Session name is required.")
        session = Session(**request.model_dump(), id="")
        session.name = session.name.strip()
        session_id = await self._store.create(QA, session.to_document())
        logger.info(f"Session {session_id} created in event {session.event_id}: {session.name}")
        return session.model_copy(update={"id": session_id})

    async def get_session(self, session_id: str) -> Session:
        """Resolve a session id.

        Raises:
            NotFound: If no document has this id.
            InvalidState: If the document is a submission.
        """
        doc = await self._store.get(QA, session_id)
        if doc is None:
            raise NotFound(f"Session {session_id} not found.")
        if classify_document(doc) != DocumentKind.SESSION:
            raise InvalidState(f"Document {session_id} is not a session.")
        return Session.model_validate(doc)

    async def list_sessions(self, event_id: str) -> list[Session]:
        sessions = []
        for doc in await self._store.query(QA, eventId=event_id):
            try:
                if classify_document(doc) == DocumentKind.SESSION:
                    sessions.append(Session.model_validate(doc))
            except InvalidState as e:
                logger.warning(f"Skipping malformed document in event {event_id}: {e}")
        return sorted(sessions, key=lambda s: s.created_at)

    async def update_session(self, session_id: str, request: SessionUpdate) -> Session:
        session = await self.get_session(session_id)
        changes = request.model_dump(exclude_none=True)
        if "name" in changes:
            if not changes["name"].strip():
                raise ValidationError("Session name is required.")
            changes["name"] = changes["name"].strip()
        if not changes:
            return session

        updated = session.model_copy(update={**changes, "updated_at": utc_now_iso()})
        await self._store.update(QA, session_id, updated.to_document())
        return updated

    async def delete_session(self, session_id: str):
        await self.get_session(session_id)
        await self._store.delete(QA, session_id)
        logger.info(f"Session {session_id} deleted; its submissions are kept.")

    async def backfill_orphaned_submissions(self, event_id: str, session_id: Optional[str] = None) -> int:
        """Write a session id into submissions that were created without one.

        Without an explicit ``session_id`` the event's only session is used, or
        the default sentinel when the event has none or several.

        Returns:
            The number of submissions updated.
        """
        if session_id is not None:
            await self.get_session(session_id)
        else:
            sessions = await self.list_sessions(event_id)
            session_id = sessions[0].id if len(sessions) == 1 else DEFAULT_SESSION_ID

        orphans = []
        for doc in await self._store.query(QA, eventId=event_id):
            if doc.get("sessionId"):
                continue
            try:
                if classify_document(doc) == DocumentKind.SUBMISSION:
                    orphans.append(doc["id"])
            except InvalidState as e:
                logger.warning(f"Skipping malformed document in event {event_id}: {e}")

        if orphans:
            now = utc_now_iso()
            await self._store.batch_update(QA, {
                doc_id: {"sessionId": session_id, "kind": DocumentKind.SUBMISSION.value, "updatedAt": now}
                for doc_id in orphans
            })
            logger.info(f"Backfilled {len(orphans)} orphaned submissions in event {event_id} with session {session_id}.")
        return len(orphans)
