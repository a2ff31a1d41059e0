"""REST endpoints for the public question page.

Audience members submit questions into a session via a simple web form.
Questions land as pending submissions for the moderators.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from onair.dependencies import AppServices, get_services
from onair.models.qa import QuestionSubmission

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/questions", tags=["audience"])


@router.post("/submit")
async def submit_question(submission: QuestionSubmission, services: AppServices = Depends(get_services)):
    """Submit a question from an audience member.

    Called by the public Q&A page when someone submits a question.
    """
    question = await services.intake.submit(
        session_id=submission.session_id,
        question=submission.question,
        submitter_name=submission.submitter_name,
        submitter_email=submission.submitter_email,
        anonymous=submission.anonymous,
    )

    return JSONResponse(
        status_code=201,
        content={
            "status": "submitted",
            "message": "Your question has been submitted!",
            "question_id": question.id,
        },
    )


@router.get("/sessions/{session_id}")
async def get_public_session(session_id: str, services: AppServices = Depends(get_services)):
    """Session settings the submission form needs (what to collect, whether it is open)."""
    session = await services.sessions.get_session(session_id)
    return {
        "id": session.id,
        "name": session.name,
        "collectName": session.collect_name,
        "collectEmail": session.collect_email,
        "allowAnonymous": session.allow_anonymous,
        "enablePublicSubmission": session.enable_public_submission,
        "display": session.display,
    }
