"""REST endpoints for events and their spreadsheet setup."""

import logging

from fastapi import APIRouter, Body, Depends

from onair.dependencies import AppServices, get_services
from onair.models.live_state import Event, EventCreate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/events", tags=["events"])


@router.post("", status_code=201)
async def create_event(request: EventCreate, services: AppServices = Depends(get_services)):
    event = await services.events.create_event(Event(**request.model_dump()))
    return event.to_api()


@router.get("")
async def list_events(services: AppServices = Depends(get_services)):
    events = await services.events.list_events()
    return {"events": [e.to_api() for e in events]}


@router.get("/{event_id}")
async def get_event(event_id: str, services: AppServices = Depends(get_services)):
    event = await services.events.get_event(event_id)
    return event.to_api()


@router.patch("/{event_id}")
async def update_event(event_id: str, updates: dict = Body(...), services: AppServices = Depends(get_services)):
    """Merge fields (snake_case names) into the event."""
    event = await services.events.update_event(event_id, updates)
    return event.to_api()


@router.delete("/{event_id}")
async def delete_event(event_id: str, services: AppServices = Depends(get_services)):
    await services.events.delete_event(event_id)
    return {"status": "deleted", "id": event_id}


@router.get("/{event_id}/sessions")
async def list_sessions(event_id: str, services: AppServices = Depends(get_services)):
    sessions = await services.sessions.list_sessions(event_id)
    return {"sessions": [s.to_api() for s in sessions]}


@router.post("/{event_id}/initialize-sheets")
async def initialize_sheets(event_id: str, services: AppServices = Depends(get_services)):
    """Create every sheet the event mirrors to. Waits for the spreadsheet's reply."""
    reply = await services.events.initialize_sheets(event_id)
    return {"status": "initialized", "reply": reply}
