"""Moderation state machine for submitted questions.

Manages the triage status (pending/approved/rejected) and the on-air position
(queued/next/active/done) of every submission in an event, and keeps the
event's live Q&A in step with the active submission.

Operations that touch several submissions hold a per-event lock and write
through the store's batch primitive. The lock only serializes moderators that
share this process; moderators on other processes can still interleave with
the read-then-write sequence, and the reconciler converges their views.
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator

from onair.errors import InvalidState, NotFound, ValidationError
from onair.models.base import utc_now_iso
from onair.models.qa import (
    DocumentKind,
    ModerationPosition,
    QAStatus,
    Submission,
    SubmissionEdit,
    classify_document,
    position_fields,
)
from onair.services.document_store import QA, DocumentStore
from onair.services.live_state import LiveStateProjector
from onair.services.reconciler import ModerationView, build_views

logger = logging.getLogger(__name__)


def next_queue_order(submissions: list[Submission]) -> int:
    """One more than the highest queueOrder ever handed out in the event."""
    return max((s.queue_order for s in submissions if s.queue_order is not None), default=0) + 1


class ModerationService:
    """Moves submissions through triage and on-air sequencing."""

    def __init__(self, store: DocumentStore, live: LiveStateProjector):
        self._store = store
        self._live = live
        # Entries vanish once no moderator holds or waits on the lock.
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, event_id: str) -> asyncio.Lock:
        lock = self._locks.get(event_id)
        if lock is None:
            lock = self._locks[event_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def _locked(self, submission_id: str) -> AsyncIterator[Submission]:
        """Hold the event lock and yield a fresh read of the submission."""
        target = await self.get(submission_id)
        async with self._lock_for(target.event_id):
            yield await self.get(submission_id)

    async def _write(self, updates: dict[str, dict]):
        now = utc_now_iso()
        await self._store.batch_update(QA, {
            doc_id: {**fields, "updatedAt": now} for doc_id, fields in updates.items()
        })

    # --- reads ---

    async def get(self, submission_id: str) -> Submission:
        doc = await self._store.get(QA, submission_id)
        if doc is None:
            raise NotFound(f"Submission {submission_id} not found.")
        if classify_document(doc) != DocumentKind.SUBMISSION:
            raise InvalidState(f"Document {submission_id} is a session, not a submission.")
        return Submission.model_validate(doc)

    async def list_submissions(self, event_id: str) -> list[Submission]:
        submissions = []
        for doc in await self._store.query(QA, eventId=event_id):
            try:
                kind = classify_document(doc)
            except InvalidState as e:
                logger.warning(f"Skipping malformed document in event {event_id}: {e}")
                continue
            if kind == DocumentKind.SUBMISSION:
                submissions.append(Submission.model_validate(doc))
        return submissions

    async def list_views(self, event_id: str) -> ModerationView:
        return build_views(await self.list_submissions(event_id))

    # --- triage ---

    async def approve(self, submission_id: str) -> Submission:
        """Approve with a fresh queueOrder. Approving twice is a no-op."""
        async with self._locked(submission_id) as target:
            if target.status == QAStatus.APPROVED:
                return target
            if target.status == QAStatus.REJECTED:
                raise InvalidState("Rejected submissions must be reset before they can be approved.")

            siblings = await self.list_submissions(target.event_id)
            fields = {"status": QAStatus.APPROVED.value, "queueOrder": next_queue_order(siblings)}
            was_active = target.position == ModerationPosition.ACTIVE
            if target.position in (ModerationPosition.ACTIVE, ModerationPosition.NEXT):
                fields.update(position_fields(None))

            await self._write({target.id: fields})
            if was_active:
                await self._live.publish_live_qa(target.event_id, None)

        logger.info(f"Submission {submission_id} approved (queueOrder {fields['queueOrder']}).")
        return await self.get(submission_id)

    async def reject(self, submission_id: str) -> Submission:
        """Reject. The on-air position is left as it is."""
        async with self._locked(submission_id) as target:
            if target.status != QAStatus.REJECTED:
                await self._write({target.id: {"status": QAStatus.REJECTED.value}})
                logger.info(f"Submission {submission_id} rejected.")
        return await self.get(submission_id)

    # --- sequencing ---

    async def queue(self, submission_id: str) -> Submission:
        """Put the submission in the queued slot.

        The previous queued submission moves to next, and any other next
        submission is cleared. A pending target is approved on the way.
        """
        async with self._locked(submission_id) as target:
            if target.status == QAStatus.REJECTED:
                raise InvalidState("Rejected submissions cannot be queued.")
            if target.position in (ModerationPosition.ACTIVE, ModerationPosition.DONE):
                raise InvalidState(f"Submission is {target.position.value} and cannot be queued.")
            if target.position == ModerationPosition.QUEUED and target.status == QAStatus.APPROVED:
                return target

            siblings = await self.list_submissions(target.event_id)
            updates: dict[str, dict] = {}
            for other in siblings:
                if other.id == target.id:
                    continue
                if other.position == ModerationPosition.QUEUED:
                    updates[other.id] = position_fields(ModerationPosition.NEXT)
                elif other.position == ModerationPosition.NEXT:
                    updates[other.id] = position_fields(None)

            fields = position_fields(ModerationPosition.QUEUED)
            if target.status == QAStatus.PENDING:
                fields["status"] = QAStatus.APPROVED.value
                fields["queueOrder"] = next_queue_order(siblings)
            updates[target.id] = fields
            await self._write(updates)

        logger.info(f"Submission {submission_id} queued.")
        return await self.get(submission_id)

    async def set_next(self, submission_id: str) -> Submission:
        async with self._locked(submission_id) as target:
            if target.status == QAStatus.REJECTED:
                raise InvalidState("Rejected submissions cannot be set as next.")
            if target.position == ModerationPosition.DONE:
                raise InvalidState("Submission is done and cannot be set as next.")
            if target.position == ModerationPosition.NEXT:
                return target

            siblings = await self.list_submissions(target.event_id)
            updates = {
                other.id: position_fields(None)
                for other in siblings
                if other.id != target.id and other.position == ModerationPosition.NEXT
            }
            updates[target.id] = position_fields(ModerationPosition.NEXT)
            await self._write(updates)

            if target.position == ModerationPosition.ACTIVE:
                await self._live.publish_live_qa(target.event_id, None)

        logger.info(f"Submission {submission_id} set as next.")
        return await self.get(submission_id)

    async def set_active(self, submission_id: str) -> Submission:
        """Put the submission on air. Every other active submission in the event is cleared."""
        async with self._locked(submission_id) as target:
            if target.status == QAStatus.REJECTED:
                raise InvalidState("Rejected submissions cannot go on air.")

            siblings = await self.list_submissions(target.event_id)
            updates = {
                other.id: position_fields(None)
                for other in siblings
                if other.id != target.id and other.position == ModerationPosition.ACTIVE
            }
            updates[target.id] = position_fields(ModerationPosition.ACTIVE)
            await self._write(updates)

            active = await self.get(submission_id)
            await self._live.publish_live_qa(active.event_id, active)

        logger.info(f"Submission {submission_id} is on air.")
        return active

    async def stop(self, submission_id: str) -> Submission:
        """Take the active submission off air and mark it done.

        The next submission is promoted to the queued slot when that slot is free.
        """
        async with self._locked(submission_id) as target:
            if target.position != ModerationPosition.ACTIVE:
                raise InvalidState("Only the active submission can be stopped.")

            siblings = await self.list_submissions(target.event_id)
            updates = {target.id: position_fields(ModerationPosition.DONE)}
            if not any(s.position == ModerationPosition.QUEUED for s in siblings):
                for other in siblings:
                    if other.position == ModerationPosition.NEXT:
                        updates[other.id] = position_fields(ModerationPosition.QUEUED)
                        break
            await self._write(updates)
            await self._live.publish_live_qa(target.event_id, None)

        logger.info(f"Submission {submission_id} done.")
        return await self.get(submission_id)

    async def set_queue_order(self, submission_id: str, order: int) -> Submission:
        async with self._locked(submission_id) as target:
            await self._write({target.id: {"queueOrder": order}})
        return await self.get(submission_id)

    # --- resets ---

    async def reset_all(self, event_id: str) -> int:
        """Return every submission in the event to pending with no position.

        Returns:
            The number of submissions reset.
        """
        async with self._lock_for(event_id):
            submissions = await self.list_submissions(event_id)
            if not submissions:
                return 0
            fields = {"status": QAStatus.PENDING.value, **position_fields(None)}
            await self._write({s.id: fields for s in submissions})
            if any(s.position == ModerationPosition.ACTIVE for s in submissions):
                await self._live.publish_live_qa(event_id, None)

        logger.warning(f"All {len(submissions)} submissions in event {event_id} reset to pending.")
        return len(submissions)

    async def reset_to_pending(self, submission_id: str) -> Submission:
        async with self._locked(submission_id) as target:
            await self._write({target.id: {"status": QAStatus.PENDING.value, **position_fields(None)}})
            if target.position == ModerationPosition.ACTIVE:
                await self._live.publish_live_qa(target.event_id, None)
        return await self.get(submission_id)

    async def reset_to_approved(self, submission_id: str) -> Submission:
        """Approve again with a fresh queueOrder, lifting rejected or done."""
        async with self._locked(submission_id) as target:
            siblings = await self.list_submissions(target.event_id)
            await self._write({target.id: {
                "status": QAStatus.APPROVED.value,
                "queueOrder": next_queue_order(siblings),
                **position_fields(None),
            }})
            if target.position == ModerationPosition.ACTIVE:
                await self._live.publish_live_qa(target.event_id, None)
        return await self.get(submission_id)

    # --- editing ---

    async def edit_submission(self, submission_id: str, edit: SubmissionEdit) -> Submission:
        """Change question, answer or notes. Editing the active submission updates the live Q&A."""
        fields = {}
        if edit.question is not None:
            if not edit.question.strip():
                raise ValidationError("Question cannot be empty.")
            fields["question"] = edit.question.strip()
        if edit.answer is not None:
            fields["answer"] = edit.answer
        if edit.moderator_notes is not None:
            fields["moderatorNotes"] = edit.moderator_notes

        async with self._locked(submission_id) as target:
            if not fields:
                return target
            await self._write({target.id: fields})
            edited = await self.get(submission_id)
            if edited.position == ModerationPosition.ACTIVE:
                await self._live.publish_live_qa(edited.event_id, edited)
        return edited

    async def delete(self, submission_id: str) -> Submission:
        """Delete permanently. Deleting the active submission clears the live Q&A."""
        async with self._locked(submission_id) as target:
            await self._store.delete(QA, target.id)
            if target.position == ModerationPosition.ACTIVE:
                await self._live.publish_live_qa(target.event_id, None)
        logger.info(f"Submission {submission_id} deleted.")
        return target
