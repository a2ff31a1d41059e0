"""REST endpoints for Q&A sessions."""

from fastapi import APIRouter, Depends

from onair.dependencies import AppServices, get_services
from onair.models.qa import SessionCreate, SessionUpdate

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.post("", status_code=201)
async def create_session(request: SessionCreate, services: AppServices = Depends(get_services)):
    await services.events.get_event(request.event_id)
    session = await services.sessions.create_session(request)
    return session.to_api()


@router.get("/{session_id}")
async def get_session(session_id: str, services: AppServices = Depends(get_services)):
    session = await services.sessions.get_session(session_id)
    return session.to_api()


@router.patch("/{session_id}")
async def update_session(session_id: str, request: SessionUpdate, services: AppServices = Depends(get_services)):
    session = await services.sessions.update_session(session_id, request)
    return session.to_api()


@router.delete("/{session_id}")
async def delete_session(session_id: str, services: AppServices = Depends(get_services)):
    """Delete the session. Its submissions stay in the event."""
    await services.sessions.delete_session(session_id)
    return {"status": "deleted", "id": session_id}
