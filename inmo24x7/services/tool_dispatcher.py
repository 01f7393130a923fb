from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Type

import logging
from pydantic import BaseModel, ValidationError

from inmo24x7.errors import PersistenceError, ToolExecutionError
from inmo24x7.logging.flight_recorder import FlightRecorder
from inmo24x7.models.domain import Property, Session
from inmo24x7.models.tooling import ContactArgs, HandoffArgs, SearchArgs, ToolCallRequest, ToolResult
from inmo24x7.services.lead_service import LeadService
from inmo24x7.services.property_search import DEFAULT_LIMIT, search_properties

logger = logging.getLogger(__name__)

SEARCH_PROPERTIES = "search_properties"
SAVE_CONTACT = "save_contact"
HANDOFF_TO_HUMAN = "handoff_to_human"


@dataclass
class ToolContext:
    """Turn-scoped state the tool handlers read and mutate."""

    session: Session
    tenant_id: str
    source_type: str
    lead_id: Optional[int] = None
    handoff_summary: Optional[str] = None

    @classmethod
    def for_session(cls, session: Session, tenant_id: str, source_type: str) -> "ToolContext":
        return cls(session=session, tenant_id=tenant_id, source_type=source_type, lead_id=session.lead_id)


Handler = Callable[[str, ToolContext], Awaitable[Dict[str, Any]]]


class ToolDispatcher:
    def __init__(
        self,
        lead_service: LeadService,
        recorder: Optional[FlightRecorder] = None,
        catalog: Optional[Sequence[Property]] = None,
    ) -> None:
        self.lead_service = lead_service
        self.recorder = recorder
        self.catalog = catalog
        self.registry: Dict[str, Handler] = {
            SEARCH_PROPERTIES: self._wrap(SEARCH_PROPERTIES, self._search_properties),
            SAVE_CONTACT: self._wrap(SAVE_CONTACT, self._save_contact),
            HANDOFF_TO_HUMAN: self._wrap(HANDOFF_TO_HUMAN, self._handoff_to_human),
        }
        self._tool_schemas: Dict[str, Dict[str, Any]] = self._build_tool_schemas()

    def _wrap(self, name: str, func: Handler) -> Handler:
        async def wrapped(arguments_json: str, context: ToolContext) -> Dict[str, Any]:
            logger.info("tool.call tool=%s", name)
            return await func(arguments_json, context)

        return wrapped

    async def dispatch(self, calls: Sequence[ToolCallRequest], context: ToolContext) -> List[ToolResult]:
        """Run tool calls strictly in request order.

        Unknown tools are skipped. A failing call produces an error payload
        for its own id and never stops the calls after it.
        """
        results: List[ToolResult] = []
        for call in calls:
            handler = self.registry.get(call.name)
            if handler is None:
                logger.warning("tool.unknown tool=%s call_id=%s", call.name, call.id)
                continue
            try:
                payload = await handler(call.arguments_json, context)
            except ToolExecutionError as exc:
                logger.warning("tool.failed tool=%s call_id=%s err=%s", call.name, call.id, exc.message)
                payload = {"ok": False, "error": exc.message}
            except Exception:
                logger.exception("tool.crashed tool=%s call_id=%s", call.name, call.id)
                payload = {"ok": False, "error": "internal_error"}
            if self.recorder:
                self.recorder.log("TOOLS", "tool_result", tool=call.name, call_id=call.id, ok=payload.get("ok", True))
            results.append(
                ToolResult(
                    tool_call_id=call.id,
                    name=call.name,
                    content=json.dumps(payload, ensure_ascii=False),
                )
            )
        return results

    def get_tool_schemas(self) -> List[Dict[str, Any]]:
        return list(self._tool_schemas.values())

    async def _search_properties(self, arguments_json: str, context: ToolContext) -> Dict[str, Any]:
        # Search never fails: unreadable arguments just mean no filters
        try:
            raw = json.loads(arguments_json or "{}")
        except json.JSONDecodeError:
            logger.warning("tool.search_bad_json arguments=%r", arguments_json[:200])
            raw = {}
        args = SearchArgs.model_validate(raw if isinstance(raw, dict) else {})

        results = search_properties(
            operacion=args.operacion,
            zona=args.zona,
            presupuesto_max=args.presupuesto_max,
            limit=DEFAULT_LIMIT,
            catalog=self.catalog,
            recorder=self.recorder,
        )

        budget = args.presupuesto_max if args.presupuesto_max and args.presupuesto_max > 0 else None
        changed = context.session.lead_data.merge(operacion=args.operacion, zona=args.zona, presupuestoMax=budget)
        await self._sync_lead(context, changed)
        return self._with_lead_id({"results": [prop.to_dict() for prop in results]}, context)

    async def _save_contact(self, arguments_json: str, context: ToolContext) -> Dict[str, Any]:
        args = _decode(SAVE_CONTACT, arguments_json, ContactArgs)
        changed = context.session.lead_data.merge(nombre=args.nombre, contacto=args.contacto)
        await self._sync_lead(context, changed)
        return self._with_lead_id({"ok": True}, context)

    async def _handoff_to_human(self, arguments_json: str, context: ToolContext) -> Dict[str, Any]:
        args = _decode(HANDOFF_TO_HUMAN, arguments_json, HandoffArgs)
        summary = args.summary.strip()
        context.session.lead_data.merge(summary=summary)
        context.handoff_summary = summary
        if self.recorder:
            self.recorder.log("TOOLS", "handoff_requested", lead_id=context.lead_id)
        await self._sync_lead(context, {}, summary=summary)
        return self._with_lead_id({"ok": True, "summary": summary}, context)

    async def _sync_lead(self, context: ToolContext, changed: Dict[str, Any], summary: Optional[str] = None) -> None:
        """Create the lead once it qualifies, otherwise patch it. Best effort."""
        session = context.session
        try:
            if context.lead_id is None:
                context.lead_id = await self.lead_service.load_or_create(
                    visitor_id=session.user_id,
                    tenant_id=context.tenant_id,
                    source_type=context.source_type,
                    lead_data=session.lead_data,
                )
            elif changed or summary:
                await self.lead_service.apply_update(context.lead_id, changed, summary=summary)
        except PersistenceError as exc:
            logger.warning("tool.lead_sync_failed user_id=%s err=%s", session.user_id, exc)

    @staticmethod
    def _with_lead_id(payload: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        if context.lead_id is not None:
            payload["leadId"] = context.lead_id
        return payload

    def _build_tool_schemas(self) -> Dict[str, Dict[str, Any]]:
        return {
            SEARCH_PROPERTIES: {
                "type": "function",
                "function": {
                    "name": SEARCH_PROPERTIES,
                    "description": (
                        "Busca propiedades disponibles según operación, zona y presupuesto máximo. "
                        "Devuelve hasta 3 opciones ordenadas por precio."
                    ),
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "operacion": {"type": "string", "enum": ["venta", "alquiler"]},
                            "zona": {"type": "string"},
                            "presupuestoMax": {"type": "number"},
                        },
                        "required": ["operacion", "zona", "presupuestoMax"],
                    },
                },
            },
            SAVE_CONTACT: {
                "type": "function",
                "function": {
                    "name": SAVE_CONTACT,
                    "description": "Guarda el nombre y/o el dato de contacto (teléfono o email) que dio el usuario.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "nombre": {"type": "string"},
                            "contacto": {"type": "string"},
                        },
                        "required": [],
                    },
                },
            },
            HANDOFF_TO_HUMAN: {
                "type": "function",
                "function": {
                    "name": HANDOFF_TO_HUMAN,
                    "description": "Marca el lead como listo para asesor humano. Debe incluir un resumen corto del caso.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "summary": {"type": "string"},
                        },
                        "required": ["summary"],
                    },
                },
            },
        }


def _decode(tool_name: str, arguments_json: str, model: Type[BaseModel]) -> Any:
    try:
        raw = json.loads(arguments_json or "{}")
    except json.JSONDecodeError as exc:
        raise ToolExecutionError(tool_name, f"invalid JSON arguments: {exc.msg}") from exc
    if not isinstance(raw, dict):
        raise ToolExecutionError(tool_name, "arguments must be a JSON object")
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise ToolExecutionError(tool_name, f"invalid arguments: {exc.error_count()} error(s)") from exc
