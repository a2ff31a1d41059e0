"""Best-effort mirroring of polls and Q&A to a spreadsheet web app.

The spreadsheet script accepts a JSON envelope ``{"type": ..., ...}`` where
type is one of ``initialize``, ``poll``, ``poll_backup``, ``qa_active`` or
``qa_backup``, and answers ``{"ok": true}`` or ``{"ok": false, "error": ...}``.

All traffic goes through :class:`SheetProxy`, which only forwards to the
allow-listed script host. The spreadsheet is a convenience mirror, so
:meth:`SheetSyncDispatcher.dispatch` runs detached from the caller: failures
are logged and never raised, and nothing is retried.
"""

import asyncio
import json
import logging
from typing import Optional

import httpx

from onair.errors import UpstreamError, ValidationError

logger = logging.getLogger(__name__)

WEBHOOK_TYPES = {"initialize", "poll", "poll_backup", "qa_active", "qa_backup"}


class SheetProxy:
    """Forwards request bodies to allow-listed spreadsheet web apps."""

    def __init__(self, allowed_prefix: str = "https://script.google.com/", timeout: float = 10.0):
        self._allowed_prefix = allowed_prefix
        self._timeout = timeout

    def validate_target(self, url) -> str:
        """Return the trimmed target URL or raise ValidationError."""
        if not url or not isinstance(url, str):
            raise ValidationError("Missing url")
        trimmed = url.strip()
        if not trimmed.startswith(self._allowed_prefix):
            raise ValidationError(f"URL must be a Google Apps Script Web App ({self._allowed_prefix})")
        return trimmed

    async def forward(self, url, body) -> tuple[int, str]:
        """POST ``body`` to ``url`` unchanged.

        Returns:
            The upstream status code and response text.

        Raises:
            ValidationError: If the URL is missing or not allow-listed. No request is made.
            UpstreamError: If the upstream request could not be completed.
        """
        target = self.validate_target(url)
        payload = body if body is not None else {}

        async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
            try:
                response = await client.post(target, json=payload)
            except httpx.HTTPError as e:
                logger.error(f"Sheet proxy request to {target} failed: {e}")
                raise UpstreamError(str(e) or "Proxy request failed") from e

        text = response.text
        return response.status_code, text or json.dumps({"ok": response.is_success})


class SheetSyncDispatcher:
    """Sends webhook envelopes, either awaited or as detached tasks."""

    def __init__(self, proxy: SheetProxy, proxy_url: Optional[str] = None, timeout: float = 10.0):
        self._proxy = proxy
        self._proxy_url = proxy_url
        self._timeout = timeout
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    async def post(self, web_app_url: str, envelope: dict) -> dict:
        """Deliver one envelope and return the script's JSON reply.

        Raises:
            ValidationError: If the web app URL is not allow-listed.
            UpstreamError: If delivery fails or the script reports ``ok: false``.
        """
        kind = envelope.get("type")
        if kind not in WEBHOOK_TYPES:
            raise ValidationError(f"Unknown webhook type: {kind}")

        if self._proxy_url:
            status, text = await self._post_via_external_proxy(web_app_url, envelope)
        else:
            status, text = await self._proxy.forward(web_app_url, envelope)

        if status >= 400:
            raise UpstreamError(f"Spreadsheet web app returned {status}: {text[:200]}")

        try:
            reply = json.loads(text) if text else {}
        except ValueError:
            reply = {"ok": True, "raw": text}

        if isinstance(reply, dict) and reply.get("ok") is False:
            raise UpstreamError(f"Spreadsheet web app error: {reply.get('error', 'unknown')}")

        logger.info(f"Sheet sync '{kind}' delivered (status {status}).")
        return reply if isinstance(reply, dict) else {"ok": True}

    async def _post_via_external_proxy(self, web_app_url: str, envelope: dict) -> tuple[int, str]:
        self._proxy.validate_target(web_app_url)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            try:
                response = await client.post(self._proxy_url, json={"url": web_app_url, "body": envelope})
            except httpx.HTTPError as e:
                raise UpstreamError(f"Sheet proxy unreachable: {e}") from e
        return response.status_code, response.text

    def dispatch(self, web_app_url: str, envelope: dict) -> asyncio.Task:
        """Schedule delivery without waiting for it. Must be called from a running loop."""
        task = asyncio.create_task(self.post(web_app_url, envelope))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def dispatch_backup(self, web_app_url: str, sheet_name: str, backup_type: str, record: dict) -> asyncio.Task:
        """Fire-and-forget a ``poll_backup`` or ``qa_backup`` record."""
        return self.dispatch(web_app_url, {"type": backup_type, "sheetName": sheet_name, "data": record})

    def _on_task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"Sheet sync failed: {exc}")

    async def drain(self):
        """Wait for in-flight dispatches (used at shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
