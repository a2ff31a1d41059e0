"""Live-state reads and the CSV endpoints polled by spreadsheets.

The CSV endpoints answer plain text on errors so IMPORTDATA cells show the
message, allow any origin, and cache each rendered document briefly.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, Response

from onair.dependencies import AppServices, get_services
from onair.errors import NotFound, UpstreamError
from onair.models.live_state import CsvSourceSelection, LiveState
from onair.services.csv_export import (
    build_live_poll_csv,
    build_live_qa_csv,
    build_live_queue_csv,
    build_session_csv,
    pick_queue_slots,
)
from onair.services.supabase_store import fetch_live_state_rest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["live"])

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}
CSV_MEDIA_TYPE = "text/csv; charset=utf-8"


def _csv(body: str) -> Response:
    return Response(content=body, media_type=CSV_MEDIA_TYPE, headers=CORS_HEADERS)


def _text(status_code: int, message: str) -> PlainTextResponse:
    return PlainTextResponse(message, status_code=status_code, headers=CORS_HEADERS)


def _event_id_param(request: Request) -> str:
    params = request.query_params
    return (params.get("eventId") or params.get("eventid") or "").strip()


async def _read_live_state(services: AppServices, event_id: str) -> LiveState:
    """Read through the store, falling back to the REST interface for Supabase."""
    try:
        return await services.live.get_live_state(event_id)
    except UpstreamError as e:
        settings = services.settings
        if settings.store_backend != "supabase":
            raise
        logger.warning(f"Live state read failed, trying REST fallback: {e}")
        doc = await fetch_live_state_rest(settings.supabase_url, settings.supabase_key, event_id)
        return LiveState.model_validate({**(doc or {}), "eventId": event_id})


async def _cached_csv(services: AppServices, key: str, render) -> Response:
    cached = services.csv_cache.get(key)
    if cached is not None:
        return _csv(cached)
    try:
        body = await render()
    except UpstreamError as e:
        logger.error(f"CSV export '{key}' failed: {e}")
        return _text(500, e.message)
    services.csv_cache.set(key, body)
    return _csv(body)


# --- Live state ---

@router.get("/api/live/{event_id}")
async def get_live_state(event_id: str, services: AppServices = Depends(get_services)):
    state = await services.live.get_live_state(event_id)
    return state.to_api()


@router.put("/api/live/{event_id}/csv-source")
async def select_csv_source(
    event_id: str,
    request: CsvSourceSelection,
    services: AppServices = Depends(get_services),
):
    """Pick the session and/or poll the CSV endpoints read. An empty string clears."""
    state = await services.live.select_csv_source(event_id, request.session_id, request.poll_id)
    services.csv_cache.clear()
    return state.to_api()


# --- CSV ---

@router.get("/live-qa-csv")
async def live_qa_csv(request: Request, services: AppServices = Depends(get_services)):
    event_id = _event_id_param(request)
    if not event_id:
        return _text(400, "Missing eventId query parameter")

    async def render() -> str:
        state = await _read_live_state(services, event_id)
        return build_live_qa_csv(state, services.settings.csv_placeholder)

    return await _cached_csv(services, f"qa:{event_id}", render)


@router.get("/live-qa-queue-csv")
async def live_qa_queue_csv(request: Request, services: AppServices = Depends(get_services)):
    event_id = _event_id_param(request)
    if not event_id:
        return _text(400, "Missing eventId query parameter")

    async def render() -> str:
        state = await _read_live_state(services, event_id)
        if not state.csv_source_session_id:
            return build_live_queue_csv(None, None, None)
        submissions = await services.moderation.list_submissions(event_id)
        return build_live_queue_csv(*pick_queue_slots(submissions, state.csv_source_session_id))

    return await _cached_csv(services, f"queue:{event_id}", render)


@router.get("/live-poll-csv")
async def live_poll_csv(request: Request, services: AppServices = Depends(get_services)):
    event_id = _event_id_param(request)
    if not event_id:
        return _text(400, "Missing eventId query parameter")

    async def render() -> str:
        state = await _read_live_state(services, event_id)
        poll = None
        if state.csv_source_poll_id:
            try:
                poll = await services.polls.get_poll(state.csv_source_poll_id)
            except NotFound:
                logger.warning(f"CSV source poll {state.csv_source_poll_id} no longer exists.")
            if poll is not None and poll.event_id != event_id:
                poll = None
        return build_live_poll_csv(poll)

    return await _cached_csv(services, f"poll:{event_id}", render)


@router.get("/api/events/{event_id}/sessions/{session_id}/csv")
async def session_csv(event_id: str, session_id: str, services: AppServices = Depends(get_services)):
    """Every question of one session with status and position flags."""

    async def render() -> str:
        submissions = await services.moderation.list_submissions(event_id)
        in_session = sorted(
            (s for s in submissions if s.session_id == session_id),
            key=lambda s: s.created_at,
        )
        return build_session_csv(in_session)

    return await _cached_csv(services, f"session:{event_id}:{session_id}", render)


@router.api_route(
    "/live-qa-csv",
    methods=["POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
@router.api_route(
    "/live-qa-queue-csv",
    methods=["POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
@router.api_route(
    "/live-poll-csv",
    methods=["POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def csv_method_not_allowed():
    return _text(405, "Method not allowed")
