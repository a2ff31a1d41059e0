"""REST endpoints for polls: moderator management and public voting."""

from fastapi import APIRouter, Depends

from onair.dependencies import AppServices, get_services
from onair.models.poll import PollCreate, ToggleRequest, VoteSubmission

router = APIRouter(prefix="/api/polls", tags=["polls"])


@router.post("", status_code=201)
async def create_poll(request: PollCreate, services: AppServices = Depends(get_services)):
    await services.events.get_event(request.event_id)
    poll = await services.polls.create_poll(request)
    return poll.to_api()


@router.get("")
async def list_polls(event_id: str, services: AppServices = Depends(get_services)):
    polls = await services.polls.list_polls(event_id)
    return {"polls": [p.to_api() for p in polls]}


@router.get("/{poll_id}")
async def get_poll(poll_id: str, services: AppServices = Depends(get_services)):
    poll = await services.polls.get_poll(poll_id)
    return poll.to_api()


@router.put("/{poll_id}/active")
async def set_poll_active(poll_id: str, request: ToggleRequest, services: AppServices = Depends(get_services)):
    poll = await services.polls.set_poll_active(poll_id, request.enabled)
    return poll.to_api()


@router.put("/{poll_id}/public")
async def set_poll_public(poll_id: str, request: ToggleRequest, services: AppServices = Depends(get_services)):
    poll = await services.polls.set_poll_public(poll_id, request.enabled)
    return poll.to_api()


@router.delete("/{poll_id}")
async def delete_poll(poll_id: str, services: AppServices = Depends(get_services)):
    await services.polls.delete_poll(poll_id)
    return {"status": "deleted", "id": poll_id}


@router.post("/{poll_id}/vote")
async def vote(poll_id: str, request: VoteSubmission, services: AppServices = Depends(get_services)):
    """Public vote. Each chosen option gets one more vote; nothing is deduplicated."""
    poll = await services.polls.submit_votes(poll_id, request.option_ids)
    return {"status": "recorded", "poll": poll.to_api()}
