from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import logging

from inmo24x7.config import SOURCE_TYPES
from inmo24x7.errors import PersistenceError
from inmo24x7.models.domain import OPERATIONS, Lead
from inmo24x7.storage.lead_store import insert_payload, update_payload

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryLeadRepository:
    """Local-mode lead store used when Supabase is not configured."""

    def __init__(self) -> None:
        self.rows: Dict[int, Dict[str, Any]] = {}
        self._next_id = 1

    async def create(self, fields: Dict[str, Any]) -> int:
        row = insert_payload(fields)
        self._check_constraints(row)
        lead_id = self._next_id
        self._next_id += 1
        now = _now_iso()
        self.rows[lead_id] = {**row, "id": lead_id, "created_at": now, "updated_at": now}
        logger.info("lead_store.insert lead_id=%s tenant_id=%s", lead_id, row["tenant_id"])
        return lead_id

    async def update(self, lead_id: int, fields: Dict[str, Any]) -> None:
        patch = update_payload(fields)
        if not patch:
            return
        row = self.rows.get(lead_id)
        if row is None:
            raise PersistenceError(f"Failed to update lead: lead {lead_id} does not exist")
        candidate = {**row, **patch}
        self._check_constraints(candidate)
        candidate["updated_at"] = _now_iso()
        self.rows[lead_id] = candidate

    async def find_by_visitor(self, visitor_id: str, tenant_id: Optional[str] = None) -> Optional[Lead]:
        matches = [
            row
            for row in self.rows.values()
            if row["visitor_id"] == visitor_id and (tenant_id is None or row["tenant_id"] == tenant_id)
        ]
        if not matches:
            return None
        latest = max(matches, key=lambda row: (row["created_at"], row["id"]))
        return Lead.model_validate(latest)

    async def get(self, lead_id: int) -> Optional[Lead]:
        row = self.rows.get(lead_id)
        return Lead.model_validate(row) if row else None

    async def list(
        self,
        limit: int = 50,
        tenant_id: Optional[str] = None,
        source_type: Optional[str] = None,
    ) -> List[Lead]:
        rows = [
            row
            for row in self.rows.values()
            if (tenant_id is None or row["tenant_id"] == tenant_id)
            and (source_type is None or row["source_type"] == source_type)
        ]
        rows.sort(key=lambda row: (row["created_at"], row["id"]), reverse=True)
        return [Lead.model_validate(row) for row in rows[:limit]]

    async def delete(self, lead_id: int) -> None:
        self.rows.pop(lead_id, None)

    @staticmethod
    def _check_constraints(row: Dict[str, Any]) -> None:
        if not row.get("tenant_id") or not row.get("visitor_id"):
            raise PersistenceError("Failed to create lead: tenant_id and visitor_id are required")
        if row.get("source_type") not in SOURCE_TYPES:
            raise PersistenceError(f"Failed to create lead: invalid source_type {row.get('source_type')!r}")
        if row.get("operacion") is not None and row["operacion"] not in OPERATIONS:
            raise PersistenceError(f"Failed to write lead: invalid operacion {row['operacion']!r}")
