"""Allow-listed forwarding proxy to the spreadsheet web app.

Browsers cannot post to the spreadsheet script directly, so clients send
``{"url": ..., "body": ...}`` here and the body is forwarded verbatim.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from onair.dependencies import AppServices, get_services
from onair.errors import UpstreamError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sheet-proxy", tags=["sheet-proxy"])

PROXY_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message}, headers=PROXY_HEADERS)


@router.post("")
async def forward(request: Request, services: AppServices = Depends(get_services)):
    """Forward ``body`` to ``url`` and pass the upstream status and body back."""
    try:
        payload = await request.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    try:
        status, text = await services.proxy.forward(payload.get("url"), payload.get("body"))
    except ValidationError as e:
        return _error(400, e.message)
    except UpstreamError as e:
        return _error(502, e.message)

    return Response(content=text, status_code=status, media_type="application/json", headers=PROXY_HEADERS)


@router.options("")
async def preflight():
    return Response(status_code=204, headers=PROXY_HEADERS)


@router.api_route("", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def method_not_allowed():
    return _error(405, "Method not allowed")
