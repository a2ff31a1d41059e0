"""Public question intake.

Validates a question against its session's collection policy and records it
as a pending submission. The submission copies the session's policy and
display settings so later session edits do not change it.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Optional

from onair.errors import InvalidState, UpstreamError, ValidationError
from onair.models.qa import QAStatus, Submission
from onair.services.document_store import QA, DocumentStore
from onair.services.events import EventService
from onair.services.sessions import SessionService
from onair.services.sheet_sync import SheetSyncDispatcher

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


class SubmissionIntake:
    """Records public questions against sessions."""

    def __init__(
        self,
        store: DocumentStore,
        sessions: SessionService,
        events: EventService,
        dispatcher: SheetSyncDispatcher,
        max_question_length: int = 500,
    ):
        self._store = store
        self._sessions = sessions
        self._events = events
        self._dispatcher = dispatcher
        self._max_question_length = max_question_length

    async def submit(
        self,
        session_id: str,
        question: str,
        submitter_name: Optional[str] = None,
        submitter_email: Optional[str] = None,
        anonymous: bool = False,
    ) -> Submission:
        """Submit a question from an audience member.

        Args:
            session_id: The session the question is asked in.
            question: The question text.
            submitter_name: Optional name, dropped when anonymous.
            submitter_email: Optional email, dropped when anonymous.
            anonymous: Whether to discard any supplied identity.

        Returns:
            The created pending Submission.

        Raises:
            NotFound: If the session does not exist.
            InvalidState: If the id is not a session, or it is closed to the public.
            ValidationError: If the question or identity fails the session's policy.
        """
        session = await self._sessions.get_session(session_id)
        if not session.enable_public_submission:
            raise InvalidState("This session is not accepting questions.")

        text = (question or "").strip()
        if not text:
            raise ValidationError("Question cannot be empty.")
        if len(text) > self._max_question_length:
            raise ValidationError(f"Question too long (max {self._max_question_length} characters).")

        if anonymous:
            if not session.allow_anonymous:
                raise ValidationError("This session does not accept anonymous questions.")
            name, email = None, None
        else:
            name, email = _clean(submitter_name), _clean(submitter_email)
            if session.collect_name and not name:
                raise ValidationError("Please enter your name.")
            if session.collect_email and not email:
                raise ValidationError("Please enter your email.")
            if email and not EMAIL_PATTERN.match(email):
                raise ValidationError("Please enter a valid email address.")

        submission = Submission(
            event_id=session.event_id,
            session_id=session.id,
            question=text,
            status=QAStatus.PENDING,
            submitter_name=name,
            submitter_email=email,
            collect_name=session.collect_name,
            collect_email=session.collect_email,
            allow_anonymous=session.allow_anonymous,
            enable_public_submission=False,
            display=dict(session.display),
        )
        submission_id = await self._store.create(QA, submission.to_document())
        submission = submission.model_copy(update={"id": submission_id})
        logger.info(f"Question {submission_id} submitted by {name or 'Anonymous'}: {text[:50]}...")

        await self._backup(submission)
        return submission

    async def _backup(self, submission: Submission):
        """Mirror the submission to the event's backup sheet, without waiting."""
        try:
            event = await self._events.find_event(submission.event_id)
        except UpstreamError as e:
            logger.warning(f"Q&A backup skipped for {submission.id}: {e}")
            return
        if event is None or not event.web_app_url:
            return
        sheet = event.qa_backup_sheet(submission.session_id)
        if not sheet:
            return

        self._dispatcher.dispatch_backup(event.web_app_url, sheet, "qa_backup", {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "sessionId": submission.session_id,
            "question": submission.question,
            "submitterName": submission.submitter_name or "",
            "submitterEmail": submission.submitter_email or "",
            "status": QAStatus.PENDING.value,
        })
