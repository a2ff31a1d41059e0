"""WebSocket feed for on-air output screens.

Each output screen connects for one event and receives the event's live
state on connect and again whenever it changes.
"""

import logging
from typing import Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter()

# Active output WebSocket connections, per event
_output_connections: dict[str, Set[WebSocket]] = {}


async def broadcast_live_state(event_id: str, live_state: dict):
    """Send a live state to every output screen watching the event."""
    connections = _output_connections.get(event_id, set())
    disconnected = set()
    for ws in list(connections):
        try:
            await ws.send_json({"type": "live_state", "data": live_state})
        except Exception:
            disconnected.add(ws)

    for ws in disconnected:
        connections.discard(ws)


@router.websocket("/ws/output/{event_id}")
async def output_websocket(websocket: WebSocket, event_id: str):
    """WebSocket endpoint for an output screen.

    The screen connects here and receives ``{"type": "live_state", "data": ...}``
    messages. It may send ``{"type": "ping"}`` to keep the connection alive.
    """
    await websocket.accept()
    connections = _output_connections.setdefault(event_id, set())
    connections.add(websocket)
    logger.info(f"Output screen connected to event {event_id}. Total: {len(connections)}")

    try:
        services = websocket.app.state.services
        state = await services.live.get_live_state(event_id)
        await websocket.send_json({"type": "live_state", "data": state.to_api()})

        while True:
            data = await websocket.receive_json()
            if data.get("type") == "ping":
                await websocket.send_json({"type": "pong", "data": {}})

    except WebSocketDisconnect:
        logger.info(f"Output screen for event {event_id} disconnected.")
    except Exception as e:
        logger.error(f"Output WebSocket error: {e}")
    finally:
        connections.discard(websocket)
        logger.info(f"Output connections remaining for event {event_id}: {len(connections)}")


def get_output_count() -> int:
    """Number of connected output screens across all events."""
    return sum(len(c) for c in _output_connections.values())
