from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

from inmo24x7.models.domain import Lead

LEAD_TABLE = "leads"

CREATE_FIELDS = (
    "tenant_id",
    "visitor_id",
    "source_type",
    "operacion",
    "zona",
    "presupuesto_max",
    "nombre",
    "contacto",
    "summary",
)

# Identity columns are fixed at creation time
UPDATE_FIELDS = ("operacion", "zona", "presupuesto_max", "nombre", "contacto", "summary")


def insert_payload(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {name: fields.get(name) for name in CREATE_FIELDS}


def update_payload(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {name: fields[name] for name in UPDATE_FIELDS if fields.get(name) is not None}


class LeadRepository(Protocol):
    async def create(self, fields: Dict[str, Any]) -> int: ...

    async def update(self, lead_id: int, fields: Dict[str, Any]) -> None: ...

    async def find_by_visitor(self, visitor_id: str, tenant_id: Optional[str] = None) -> Optional[Lead]: ...

    async def get(self, lead_id: int) -> Optional[Lead]: ...

    async def list(
        self,
        limit: int = 50,
        tenant_id: Optional[str] = None,
        source_type: Optional[str] = None,
    ) -> List[Lead]: ...

    async def delete(self, lead_id: int) -> None: ...
