from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel

Operation = Literal["venta", "alquiler"]
SourceType = Literal["web_chat", "whatsapp", "form", "backoffice"]
Role = Literal["user", "assistant"]

OPERATIONS = ("venta", "alquiler")


@dataclass(frozen=True)
class Property:
    id: str
    operacion: str
    zona: str
    precio: float
    titulo: str
    link: Optional[str] = None
    disponible: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LeadData:
    """Qualification fields captured from tool calls across turns."""

    operacion: Optional[str] = None
    zona: Optional[str] = None
    presupuestoMax: Optional[float] = None
    nombre: Optional[str] = None
    contacto: Optional[str] = None
    summary: Optional[str] = None

    def merge(self, **updates: Any) -> Dict[str, Any]:
        """Apply non-empty updates and return the subset that actually changed."""
        changed: Dict[str, Any] = {}
        for name, value in updates.items():
            if value is None or value == "":
                continue
            if getattr(self, name) != value:
                setattr(self, name, value)
                changed[name] = value
        return changed

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


@dataclass
class ChatTurn:
    role: Role
    content: str

    def to_message(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class Session:
    user_id: str
    history: List[ChatTurn] = field(default_factory=list)
    lead_data: LeadData = field(default_factory=LeadData)
    lead_id: Optional[int] = None

    def append_turns(self, turns: List[ChatTurn], limit: int = 10) -> None:
        # Sliding window: older turns are dropped, never summarized
        self.history = [*self.history, *turns][-limit:]


class Lead(BaseModel):
    id: int
    tenant_id: str
    visitor_id: str
    source_type: SourceType
    operacion: Optional[Operation] = None
    zona: Optional[str] = None
    presupuesto_max: Optional[float] = None
    nombre: Optional[str] = None
    contacto: Optional[str] = None
    summary: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
