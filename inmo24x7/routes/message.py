from __future__ import annotations

from typing import Optional

import logging
from fastapi import APIRouter, Depends, Request

from inmo24x7.config import Settings, get_settings
from inmo24x7.dependencies import get_orchestrator
from inmo24x7.logging.flight_recorder import get_recorder
from inmo24x7.models.messages import BotReply, InboundMessage, MessageRequest
from inmo24x7.security import AuthenticatedUser, get_current_user, resolve_source_type, resolve_tenant
from inmo24x7.services.conversation import ConversationOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/message", response_model=BotReply, response_model_exclude_none=True)
async def post_message(
    payload: MessageRequest,
    request: Request,
    user: Optional[AuthenticatedUser] = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> BotReply:
    tenant_id = resolve_tenant(user, settings)
    source_type = resolve_source_type(user, settings)
    logger.info("message.received user_id=%s tenant_id=%s source_type=%s", payload.user_id, tenant_id, source_type)

    inbound = InboundMessage(
        user_id=payload.user_id,
        text=payload.text,
        tenant_id=tenant_id,
        source_type=source_type,
    )
    return await orchestrator.reply(inbound, recorder=get_recorder(request))
