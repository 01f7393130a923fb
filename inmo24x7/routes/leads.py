from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from inmo24x7.config import Settings, get_settings
from inmo24x7.dependencies import get_lead_repository
from inmo24x7.errors import PersistenceError
from inmo24x7.models.domain import Lead, SourceType
from inmo24x7.security import AuthenticatedUser, get_current_user, resolve_tenant
from inmo24x7.storage.lead_store import LeadRepository

router = APIRouter()


def _store_unavailable(exc: PersistenceError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


async def _tenant_lead(repo: LeadRepository, lead_id: int, tenant_id: str) -> Lead:
    try:
        lead = await repo.get(lead_id)
    except PersistenceError as exc:
        raise _store_unavailable(exc) from exc
    if lead is None or lead.tenant_id != tenant_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")
    return lead


@router.get("", response_model=List[Lead])
async def list_leads(
    limit: int = Query(50, ge=1, le=500),
    source_type: Optional[SourceType] = None,
    user: Optional[AuthenticatedUser] = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    repo: LeadRepository = Depends(get_lead_repository),
) -> List[Lead]:
    tenant_id = resolve_tenant(user, settings)
    try:
        return await repo.list(limit=limit, tenant_id=tenant_id, source_type=source_type)
    except PersistenceError as exc:
        raise _store_unavailable(exc) from exc


@router.get("/{lead_id}", response_model=Lead)
async def get_lead(
    lead_id: int,
    user: Optional[AuthenticatedUser] = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    repo: LeadRepository = Depends(get_lead_repository),
) -> Lead:
    return await _tenant_lead(repo, lead_id, resolve_tenant(user, settings))


@router.delete("/{lead_id}")
async def delete_lead(
    lead_id: int,
    user: Optional[AuthenticatedUser] = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    repo: LeadRepository = Depends(get_lead_repository),
) -> dict:
    lead = await _tenant_lead(repo, lead_id, resolve_tenant(user, settings))
    try:
        await repo.delete(lead.id)
    except PersistenceError as exc:
        raise _store_unavailable(exc) from exc
    return {"ok": True}
