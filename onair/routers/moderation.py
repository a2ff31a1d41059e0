"""REST endpoints for moderators triaging and sequencing questions."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from onair.dependencies import AppServices, get_services
from onair.errors import ValidationError
from onair.models.qa import QueueOrderUpdate, ResetConfirmation, SubmissionEdit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/moderation", tags=["moderation"])


# --- Event-wide ---

@router.get("/events/{event_id}/submissions")
async def list_submissions(event_id: str, services: AppServices = Depends(get_services)):
    submissions = await services.moderation.list_submissions(event_id)
    return {"count": len(submissions), "submissions": [s.to_api() for s in submissions]}


@router.get("/events/{event_id}/views")
async def get_views(event_id: str, services: AppServices = Depends(get_services)):
    """Pending and approved lists as the moderation page shows them."""
    view = await services.moderation.list_views(event_id)
    return view.to_api()


@router.post("/events/{event_id}/reset-all")
async def reset_all(event_id: str, request: ResetConfirmation, services: AppServices = Depends(get_services)):
    """Return every submission to pending. Irreversible, so the body must confirm it."""
    if not request.confirm:
        raise ValidationError("Resetting all submissions requires confirm: true.")
    count = await services.moderation.reset_all(event_id)
    return {"status": "reset", "count": count}


@router.post("/events/{event_id}/backfill-orphans")
async def backfill_orphans(
    event_id: str,
    session_id: Optional[str] = None,
    services: AppServices = Depends(get_services),
):
    count = await services.sessions.backfill_orphaned_submissions(event_id, session_id)
    return {"status": "backfilled", "count": count}


# --- Single submission ---

@router.get("/submissions/{submission_id}")
async def get_submission(submission_id: str, services: AppServices = Depends(get_services)):
    submission = await services.moderation.get(submission_id)
    return submission.to_api()


@router.patch("/submissions/{submission_id}")
async def edit_submission(submission_id: str, edit: SubmissionEdit, services: AppServices = Depends(get_services)):
    submission = await services.moderation.edit_submission(submission_id, edit)
    return submission.to_api()


@router.delete("/submissions/{submission_id}")
async def delete_submission(submission_id: str, services: AppServices = Depends(get_services)):
    await services.moderation.delete(submission_id)
    return {"status": "deleted", "id": submission_id}


@router.put("/submissions/{submission_id}/order")
async def set_queue_order(
    submission_id: str,
    request: QueueOrderUpdate,
    services: AppServices = Depends(get_services),
):
    submission = await services.moderation.set_queue_order(submission_id, request.order)
    return submission.to_api()


_ACTIONS = {
    "approve": "approve",
    "reject": "reject",
    "queue": "queue",
    "next": "set_next",
    "active": "set_active",
    "stop": "stop",
    "reset-pending": "reset_to_pending",
    "reset-approved": "reset_to_approved",
}


@router.post("/submissions/{submission_id}/{action}")
async def apply_action(submission_id: str, action: str, services: AppServices = Depends(get_services)):
    """Apply a moderation action: approve, reject, queue, next, active, stop,
    reset-pending or reset-approved.
    """
    method_name = _ACTIONS.get(action)
    if method_name is None:
        raise ValidationError(f"Unknown moderation action: {action}")
    submission = await getattr(services.moderation, method_name)(submission_id)
    logger.debug(f"Moderation action '{action}' applied to {submission_id}.")
    return submission.to_api()
