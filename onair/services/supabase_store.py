"""Supabase persistence for the document store.

Each collection is a table with three columns:

    id        text primary key
    event_id  text             copied from data.eventId for indexed queries
    data      jsonb            the document body (camelCase keys)

The Supabase client is created lazily on first use. Calls run in a worker
thread because the client is synchronous. Merges are read-then-write per
document and ``batch_update`` is sequential, so concurrent writers from other
processes can interleave.
"""

import asyncio
import logging
import uuid
from typing import Any, Optional

import httpx

from onair.errors import NotFound, UpstreamError
from onair.services.document_store import LIVE_STATE, DocumentStore

logger = logging.getLogger(__name__)


def _as_text(value: Any) -> str:
    """Render a filter value the way PostgREST's ``->>`` operator returns it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _row_to_document(row: dict) -> dict:
    return {"id": row["id"], **(row.get("data") or {})}


class SupabaseDocumentStore(DocumentStore):
    """Document store backed by Supabase tables."""

    def __init__(self, url: Optional[str], key: Optional[str]):
        self._url = url
        self._key = key
        self._client = None

    def _get_client(self):
        """Lazily initialise and return the Supabase client."""
        if self._client is not None:
            return self._client

        if not self._url or not self._key:
            raise UpstreamError("SUPABASE_URL or SUPABASE_ANON_KEY not set.")

        try:
            from supabase import create_client
            self._client = create_client(self._url, self._key)
            logger.info("Supabase client initialised.")
        except Exception as e:
            logger.error(f"Failed to initialise Supabase client: {e}")
            raise UpstreamError(f"Supabase unavailable: {e}") from e

        return self._client

    async def _run(self, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except (NotFound, UpstreamError):
            raise
        except Exception as e:
            logger.error(f"Supabase call failed: {e}")
            raise UpstreamError(f"Document store error: {e}") from e

    # --- synchronous helpers, run in a worker thread ---

    def _select_one(self, collection: str, doc_id: str) -> Optional[dict]:
        response = self._get_client().table(collection).select("*").eq("id", doc_id).limit(1).execute()
        rows = response.data or []
        return _row_to_document(rows[0]) if rows else None

    def _select_many(self, collection: str, filters: dict) -> list[dict]:
        request = self._get_client().table(collection).select("*")
        for key, value in filters.items():
            if key == "eventId":
                request = request.eq("event_id", value)
            else:
                request = request.eq(f"data->>{key}", _as_text(value))
        response = request.execute()
        return [_row_to_document(row) for row in response.data or []]

    def _insert(self, collection: str, doc_id: str, data: dict) -> None:
        self._get_client().table(collection).insert({
            "id": doc_id,
            "event_id": data.get("eventId"),
            "data": data,
        }).execute()

    def _merge(self, collection: str, doc_id: str, fields: dict, create: bool) -> None:
        current = self._select_one(collection, doc_id)
        if current is None and not create:
            raise NotFound(f"{collection} document {doc_id} not found.")
        data = {k: v for k, v in (current or {}).items() if k != "id"}
        data.update(fields)
        self._get_client().table(collection).upsert({
            "id": doc_id,
            "event_id": data.get("eventId") or (doc_id if collection == LIVE_STATE else None),
            "data": data,
        }).execute()

    def _remove(self, collection: str, doc_id: str) -> None:
        self._get_client().table(collection).delete().eq("id", doc_id).execute()

    # --- DocumentStore ---

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        return await self._run(self._select_one, collection, doc_id)

    async def query(self, collection: str, **filters: Any) -> list[dict]:
        return await self._run(self._select_many, collection, filters)

    async def create(self, collection: str, data: dict, doc_id: Optional[str] = None) -> str:
        doc_id = doc_id or uuid.uuid4().hex
        data = {k: v for k, v in data.items() if k != "id"}
        await self._run(self._insert, collection, doc_id, data)
        return doc_id

    async def update(self, collection: str, doc_id: str, fields: dict) -> None:
        await self._run(self._merge, collection, doc_id, fields, False)

    async def upsert(self, collection: str, doc_id: str, fields: dict) -> None:
        await self._run(self._merge, collection, doc_id, fields, True)

    async def delete(self, collection: str, doc_id: str) -> None:
        await self._run(self._remove, collection, doc_id)


async def fetch_live_state_rest(url: Optional[str], key: Optional[str], event_id: str) -> Optional[dict]:
    """Read one live-state document through the PostgREST interface.

    Used by the CSV endpoints when the primary store client is unavailable.

    Returns:
        The live-state document, or None if the event has none.

    Raises:
        UpstreamError: If credentials are missing or the request fails.
    """
    if not url or not key:
        raise UpstreamError("Server not configured. Set SUPABASE_PROJECT_REF and SUPABASE_ANON_KEY.")

    endpoint = f"{url.rstrip('/')}/rest/v1/{LIVE_STATE}"
    headers = {"apikey": key, "Authorization": f"Bearer {key}"}
    params = {"id": f"eq.{event_id}", "select": "id,data"}

    async with httpx.AsyncClient(timeout=10.0) as client:
        try:
            response = await client.get(endpoint, headers=headers, params=params)
            response.raise_for_status()
            rows = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Live state REST read failed: {e.response.status_code} - {e.response.text}")
            raise UpstreamError(f"Live state read failed with status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"Live state REST read failed: {e}")
            raise UpstreamError(f"Live state read failed: {e}") from e

    return _row_to_document(rows[0]) if rows else None
