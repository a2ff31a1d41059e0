"""FastAPI application entry point for the ON-AIR live interaction backend.

Collects audience questions and poll votes, lets moderators sequence
questions on air, and publishes the per-event live state to output screens,
CSV consumers and the spreadsheet mirror.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from onair.config import Settings, get_settings
from onair.dependencies import build_services
from onair.errors import OnAirError
from onair.routers import audience, events, live, moderation, output, polls, sessions, sheet_proxy
from onair.services.document_store import DocumentStore

logging.basicConfig(
    level=logging.DEBUG if os.getenv("DEBUG", "false").lower() == "true" else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    services = app.state.services
    logger.info(f"ON-AIR backend starting up (store: {services.settings.store_backend}).")
    yield
    if services.dispatcher.pending_count:
        logger.info(f"Waiting for {services.dispatcher.pending_count} sheet sync dispatches.")
    await services.dispatcher.drain()
    logger.info("ON-AIR backend shutting down.")


async def handle_onair_error(request: Request, exc: OnAirError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app(settings: Optional[Settings] = None, store: Optional[DocumentStore] = None) -> FastAPI:
    """Build the app with its services. Tests pass their own settings and store."""
    settings = settings or get_settings()

    app = FastAPI(
        title="ON-AIR",
        description="Live audience Q&A, polls and on-air state",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = build_services(settings, store)
    app.state.services.live.add_listener(output.broadcast_live_state)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(OnAirError, handle_onair_error)

    # Mount routers
    app.include_router(audience.router)
    app.include_router(events.router)
    app.include_router(sessions.router)
    app.include_router(moderation.router)
    app.include_router(polls.router)
    app.include_router(live.router)
    app.include_router(sheet_proxy.router)
    app.include_router(output.router)

    # --- Health Endpoints ---

    @app.get("/")
    async def root():
        return {"status": "ok", "app": "ON-AIR", "version": "0.1.0"}

    @app.get("/health")
    async def health():
        services = app.state.services
        return {
            "status": "healthy",
            "store": services.settings.store_backend,
            "output_connections": output.get_output_count(),
            "pending_sheet_syncs": services.dispatcher.pending_count,
        }

    return app


app = create_app()


# --- Entry point for uvicorn ---
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "onair.main:app",
        host=os.getenv("BACKEND_HOST", "0.0.0.0"),
        port=int(os.getenv("BACKEND_PORT", "8000")),
        reload=get_settings().debug,
    )
