from __future__ import annotations

from typing import Any, Dict, Optional

import logging

from inmo24x7.logging.flight_recorder import FlightRecorder
from inmo24x7.models.domain import LeadData
from inmo24x7.storage.lead_store import LeadRepository

logger = logging.getLogger(__name__)

# Session field name -> lead column
_COLUMN_FOR_FIELD = {
    "operacion": "operacion",
    "zona": "zona",
    "presupuestoMax": "presupuesto_max",
    "nombre": "nombre",
    "contacto": "contacto",
}


def can_create_lead(data: LeadData) -> bool:
    """Operation, zone and a positive budget are required before a lead is stored."""
    budget = data.presupuestoMax
    return bool(
        data.operacion
        and data.zona
        and isinstance(budget, (int, float))
        and not isinstance(budget, bool)
        and budget > 0
    )


class LeadService:
    def __init__(self, repo: LeadRepository, recorder: Optional[FlightRecorder] = None) -> None:
        self.repo = repo
        self.recorder = recorder

    async def load_or_create(
        self,
        visitor_id: str,
        tenant_id: str,
        source_type: str,
        lead_data: LeadData,
        existing_lead_id: Optional[int] = None,
    ) -> Optional[int]:
        """Return the session's lead id, creating the lead once it qualifies.

        Raises ``PersistenceError`` when the store rejects the insert; callers
        decide whether that is fatal.
        """
        if existing_lead_id:
            return existing_lead_id

        if not can_create_lead(lead_data):
            return None

        lead_id = await self.repo.create(
            {
                "tenant_id": tenant_id,
                "visitor_id": visitor_id,
                "source_type": source_type,
                "operacion": lead_data.operacion,
                "zona": lead_data.zona,
                "presupuesto_max": lead_data.presupuestoMax,
                "nombre": lead_data.nombre,
                "contacto": lead_data.contacto,
                "summary": lead_data.summary,
            }
        )
        logger.info("lead.created lead_id=%s visitor_id=%s tenant_id=%s", lead_id, visitor_id, tenant_id)
        if self.recorder:
            self.recorder.log("LEAD", "lead_created", lead_id=lead_id)
        return lead_id

    async def apply_update(
        self,
        lead_id: int,
        fields: Dict[str, Any],
        summary: Optional[str] = None,
    ) -> None:
        """Write only the provided fields; absent ones keep their stored value."""
        patch: Dict[str, Any] = {}
        for field_name, column in _COLUMN_FOR_FIELD.items():
            if fields.get(field_name) is not None:
                patch[column] = fields[field_name]
        if summary:
            patch["summary"] = summary
        if not patch:
            return
        await self.repo.update(lead_id, patch)
        logger.info("lead.updated lead_id=%s columns=%s", lead_id, sorted(patch))
        if self.recorder:
            self.recorder.log("LEAD", "lead_updated", lead_id=lead_id, columns=sorted(patch))
