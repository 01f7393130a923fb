from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

import httpx
import logging
from postgrest import APIError

from supabase import Client, create_client

from inmo24x7.errors import PersistenceError
from inmo24x7.models.domain import Lead
from inmo24x7.storage.lead_store import LEAD_TABLE, insert_payload, update_payload

logger = logging.getLogger(__name__)


class SupabaseLeadRepository:
    """Lead CRUD over the Supabase ``leads`` table.

    supabase-py is blocking, so every call runs in a worker thread. Store
    rejections and transport failures both surface as ``PersistenceError``;
    a missing row is reported as ``None``.
    """

    def __init__(self, url: str, key: str, client: Optional[Client] = None) -> None:
        self.client: Client = client or create_client(url, key)

    def _table(self):
        return self.client.table(LEAD_TABLE)

    async def _run(self, action: str, fn: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(fn)
        except APIError as exc:
            logger.warning("lead_store.api_error action=%s code=%s err=%s", action, exc.code, exc.message)
            raise PersistenceError(f"Failed to {action}: {exc.message}") from exc
        except httpx.HTTPError as exc:
            logger.warning("lead_store.transport_error action=%s err=%s", action, exc)
            raise PersistenceError(f"Failed to {action}: {exc}") from exc

    async def create(self, fields: Dict[str, Any]) -> int:
        row = insert_payload(fields)
        resp = await self._run("create lead", lambda: self._table().insert(row).execute())
        if not resp.data:
            raise PersistenceError("Failed to create lead: no row returned")
        lead_id = resp.data[0]["id"]
        logger.info("lead_store.insert lead_id=%s tenant_id=%s", lead_id, row["tenant_id"])
        return lead_id

    async def update(self, lead_id: int, fields: Dict[str, Any]) -> None:
        patch = update_payload(fields)
        if not patch:
            return
        await self._run("update lead", lambda: self._table().update(patch).eq("id", lead_id).execute())

    async def find_by_visitor(self, visitor_id: str, tenant_id: Optional[str] = None) -> Optional[Lead]:
        def query():
            q = self._table().select("*").eq("visitor_id", visitor_id)
            if tenant_id:
                q = q.eq("tenant_id", tenant_id)
            return q.order("created_at", desc=True).limit(1).execute()

        resp = await self._run("get lead", query)
        return Lead.model_validate(resp.data[0]) if resp.data else None

    async def get(self, lead_id: int) -> Optional[Lead]:
        resp = await self._run(
            "get lead", lambda: self._table().select("*").eq("id", lead_id).limit(1).execute()
        )
        return Lead.model_validate(resp.data[0]) if resp.data else None

    async def list(
        self,
        limit: int = 50,
        tenant_id: Optional[str] = None,
        source_type: Optional[str] = None,
    ) -> List[Lead]:
        def query():
            q = self._table().select("*")
            if source_type:
                q = q.eq("source_type", source_type)
            if tenant_id:
                q = q.eq("tenant_id", tenant_id)
            return q.order("created_at", desc=True).limit(limit).execute()

        resp = await self._run("list leads", query)
        return [Lead.model_validate(row) for row in resp.data or []]

    async def delete(self, lead_id: int) -> None:
        await self._run("delete lead", lambda: self._table().delete().eq("id", lead_id).execute())
