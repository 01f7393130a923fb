from __future__ import annotations

import json
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ToolCallRequest(BaseModel):
    id: str
    name: str
    arguments_json: str = "{}"


class ToolResult(BaseModel):
    tool_call_id: str
    name: str
    content: str

    @property
    def payload(self) -> Dict[str, Any]:
        return json.loads(self.content)

    def to_message(self) -> Dict[str, str]:
        return {"role": "tool", "tool_call_id": self.tool_call_id, "content": self.content}


class SearchArgs(BaseModel):
    """Lenient: anything malformed becomes an unset filter instead of an error."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    operacion: Optional[str] = None
    zona: Optional[str] = None
    presupuesto_max: Optional[float] = Field(default=None, alias="presupuestoMax")

    @field_validator("operacion", mode="before")
    @classmethod
    def _operacion(cls, value: Any) -> Optional[str]:
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower()
        return normalized if normalized in ("venta", "alquiler") else None

    @field_validator("zona", mode="before")
    @classmethod
    def _zona(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("presupuesto_max", mode="before")
    @classmethod
    def _presupuesto(cls, value: Any) -> Optional[float]:
        if isinstance(value, bool):
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        return number if number == number else None


class ContactArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    nombre: Optional[str] = Field(default=None, min_length=1)
    contacto: Optional[str] = Field(default=None, min_length=1)

    @model_validator(mode="after")
    def _at_least_one(self) -> "ContactArgs":
        if not self.nombre and not self.contacto:
            raise ValueError("nombre or contacto is required")
        return self


class HandoffArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    summary: str = Field(..., min_length=1)
