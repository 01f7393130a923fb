from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from inmo24x7.models.domain import SourceType


class MessageRequest(BaseModel):
    user_id: str = Field(..., min_length=1, alias="userId")
    text: str = Field(..., min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class InboundMessage(BaseModel):
    """An authenticated message as handed to the orchestrator."""

    user_id: str
    text: str
    tenant_id: str
    source_type: SourceType = "web_chat"


class Handoff(BaseModel):
    summary: str


class BotReply(BaseModel):
    messages: List[str] = Field(..., min_length=1)
    handoff: Optional[Handoff] = None
