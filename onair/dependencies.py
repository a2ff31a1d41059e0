"""Service wiring shared by the app factory and the routers."""

import logging
from dataclasses import dataclass
from typing import Optional

from starlette.requests import HTTPConnection

from onair.config import Settings
from onair.services.csv_export import CsvCache
from onair.services.document_store import DocumentStore, MemoryDocumentStore
from onair.services.events import EventService
from onair.services.intake import SubmissionIntake
from onair.services.live_state import LiveStateProjector
from onair.services.moderation import ModerationService
from onair.services.polls import PollService
from onair.services.sessions import SessionService
from onair.services.sheet_sync import SheetProxy, SheetSyncDispatcher
from onair.services.supabase_store import SupabaseDocumentStore

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    settings: Settings
    store: DocumentStore
    proxy: SheetProxy
    dispatcher: SheetSyncDispatcher
    events: EventService
    sessions: SessionService
    live: LiveStateProjector
    intake: SubmissionIntake
    moderation: ModerationService
    polls: PollService
    csv_cache: CsvCache


def create_store(settings: Settings) -> DocumentStore:
    if settings.store_backend == "supabase":
        logger.info("Using Supabase document store.")
        return SupabaseDocumentStore(settings.supabase_url, settings.supabase_key)
    if settings.store_backend != "memory":
        logger.warning(f"Unknown store backend '{settings.store_backend}', using in-memory store.")
    return MemoryDocumentStore()


def build_services(settings: Settings, store: Optional[DocumentStore] = None) -> AppServices:
    store = store or create_store(settings)
    proxy = SheetProxy(settings.sheet_allowed_prefix, settings.sheet_timeout_seconds)
    dispatcher = SheetSyncDispatcher(proxy, settings.sheet_proxy_url, settings.sheet_timeout_seconds)
    events = EventService(store, dispatcher)
    sessions = SessionService(store)
    live = LiveStateProjector(store, events, dispatcher)
    return AppServices(
        settings=settings,
        store=store,
        proxy=proxy,
        dispatcher=dispatcher,
        events=events,
        sessions=sessions,
        live=live,
        intake=SubmissionIntake(store, sessions, events, dispatcher, settings.max_question_length),
        moderation=ModerationService(store, live),
        polls=PollService(store, events, live, dispatcher, settings.max_poll_options),
        csv_cache=CsvCache(settings.csv_cache_ttl_seconds),
    )


def get_services(connection: HTTPConnection) -> AppServices:
    """FastAPI dependency returning the app's services (HTTP and WebSocket)."""
    return connection.app.state.services
