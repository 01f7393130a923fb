from __future__ import annotations

from functools import lru_cache

import logging

from inmo24x7.config import get_settings
from inmo24x7.services.conversation import ConversationOrchestrator
from inmo24x7.services.model_client import ModelClient
from inmo24x7.services.session_store import InMemorySessionStore
from inmo24x7.storage.lead_store import LeadRepository
from inmo24x7.storage.memory_store import InMemoryLeadRepository

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@lru_cache(maxsize=1)
def get_lead_repository() -> LeadRepository:
    settings = get_settings()
    if settings.lead_store_configured:
        from inmo24x7.storage.supabase_store import SupabaseLeadRepository

        logger.info("lead_store.supabase url=%s", settings.supabase_url)
        return SupabaseLeadRepository(settings.supabase_url, settings.supabase_anon_key)
    logger.warning("lead_store.in_memory reason=supabase_not_configured")
    return InMemoryLeadRepository()


@lru_cache(maxsize=1)
def get_model_client() -> ModelClient:
    settings = get_settings()
    return ModelClient(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        timeout_seconds=settings.model_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_orchestrator() -> ConversationOrchestrator:
    settings = get_settings()
    return ConversationOrchestrator(
        model_client=get_model_client(),
        sessions=get_session_store(),
        lead_repo=get_lead_repository(),
        history_limit=settings.history_limit,
    )
