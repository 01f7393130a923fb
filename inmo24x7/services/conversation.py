from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import logging

from inmo24x7.errors import RateLimitedError
from inmo24x7.logging.flight_recorder import FlightRecorder
from inmo24x7.models.domain import ChatTurn, LeadData, Property, Session
from inmo24x7.models.messages import BotReply, Handoff, InboundMessage
from inmo24x7.models.tooling import ToolCallRequest, ToolResult
from inmo24x7.services.lead_service import LeadService
from inmo24x7.services.model_client import ModelClient, ModelReply
from inmo24x7.services.session_store import SessionStore
from inmo24x7.services.tool_dispatcher import ToolContext, ToolDispatcher
from inmo24x7.storage.lead_store import LeadRepository

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """
Sos Inmo24x7, asistente virtual de una inmobiliaria.
Objetivo: calificar el lead (operación, zona, presupuesto) y mostrar SOLO propiedades disponibles del listado.
Reglas:
- No inventes propiedades ni precios. Usá search_properties para buscar.
- Hacé una pregunta por mensaje. Máximo 3 preguntas seguidas.
- Si el usuario te da su nombre, teléfono o email, guardalo con save_contact.
- Si el usuario confirma interés ("sí", "quiero visitar", etc.), ofrecé derivarlo a un asesor con handoff_to_human.
- Si faltan datos, preguntá lo mínimo necesario.
- Respuestas cortas, claras y en español rioplatense.
""".strip()

RESET_COMMANDS = frozenset({"/reset", "reset", "reiniciar", "empezar de nuevo"})

RESET_REPLY = "Listo ✅ Reinicié la conversación. ¿Buscás comprar o alquilar?"
RATE_LIMITED_REPLY = ("Ahora mismo estoy sin cupo de IA ⚠️ (demo).", "¿Buscás comprar o alquilar?")
NO_MESSAGE_REPLY = "Tuve un problema 😅 ¿me repetís eso?"
EMPTY_DIRECT_REPLY = "¿Me decís si buscás comprar o alquilar?"
EMPTY_FINAL_REPLY = "Ok. ¿Querés que te muestre opciones?"
FALLBACK_REPLY = "Perdón, tuve un problema técnico 😅 ¿Podés intentar de nuevo en un momento?"


class TurnState(str, Enum):
    IDLE = "idle"
    AWAITING_MODEL_FIRST_PASS = "awaiting_model_first_pass"
    TOOL_EXECUTION = "tool_execution"
    AWAITING_MODEL_SECOND_PASS = "awaiting_model_second_pass"
    REPLIED = "replied"
    ERRORED = "errored"


def is_reset_command(text: str) -> bool:
    return text.strip().lower() in RESET_COMMANDS


def extract_lead_id(results: Sequence[ToolResult]) -> Optional[int]:
    lead_id = None
    for result in results:
        try:
            payload = result.payload
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict) and isinstance(payload.get("leadId"), int):
            lead_id = payload["leadId"]
    return lead_id


def tool_messages_for(calls: Sequence[ToolCallRequest], results: Sequence[ToolResult]) -> List[Dict[str, str]]:
    """Tool messages in the assistant's call order, matched by call id.

    Every replayed tool call needs an answer, so calls that produced no
    result (unknown tool, aborted dispatch) get an explicit error payload.
    """
    by_id = {result.tool_call_id: result for result in results}
    messages: List[Dict[str, str]] = []
    for call in calls:
        result = by_id.get(call.id)
        if result is not None:
            messages.append(result.to_message())
        else:
            content = json.dumps({"ok": False, "error": "tool_not_executed"})
            messages.append({"role": "tool", "tool_call_id": call.id, "content": content})
    return messages


class ConversationOrchestrator:
    """Runs one conversational turn: session, model, tools, model again, persist.

    The first model call may request tools; their results are fed back in a
    second call that only produces text. Nothing is written to the session
    store unless the turn produced a reply.
    """

    def __init__(
        self,
        model_client: ModelClient,
        sessions: SessionStore,
        lead_repo: LeadRepository,
        catalog: Optional[Sequence[Property]] = None,
        history_limit: int = 10,
    ) -> None:
        self.model_client = model_client
        self.sessions = sessions
        self.lead_repo = lead_repo
        self.catalog = catalog
        self.history_limit = history_limit

    async def reply(self, message: InboundMessage, recorder: Optional[FlightRecorder] = None) -> BotReply:
        recorder = recorder or FlightRecorder()
        async with self.sessions.lock(message.user_id):
            if is_reset_command(message.text):
                self.sessions.reset(message.user_id)
                recorder.log("SESSION", "reset", user_id=message.user_id)
                return BotReply(messages=[RESET_REPLY])

            _enter(recorder, TurnState.IDLE)
            with recorder.stage("SESSION", operation="load"):
                session = self.sessions.load(message.user_id)
            try:
                return await self._run_turn(message, session, recorder)
            except RateLimitedError:
                self._keep_lead(message.user_id, session)
                _enter(recorder, TurnState.REPLIED, degraded=True)
                return BotReply(messages=list(RATE_LIMITED_REPLY))
            except Exception:
                logger.exception("conversation.turn_failed user_id=%s", message.user_id)
                self._keep_lead(message.user_id, session)
                _enter(recorder, TurnState.ERRORED)
                return BotReply(messages=[FALLBACK_REPLY])

    async def _run_turn(self, message: InboundMessage, session: Session, recorder: FlightRecorder) -> BotReply:
        if session.lead_data is None:
            session.lead_data = LeadData()

        lead_service = LeadService(self.lead_repo, recorder)
        dispatcher = ToolDispatcher(lead_service, recorder, catalog=self.catalog)
        await self._init_lead(lead_service, session, message)

        user_turn = ChatTurn(role="user", content=message.text)
        history = [*session.history, user_turn][-self.history_limit :]
        transcript: List[Dict[str, Any]] = [
            {"role": "system", "content": SYSTEM_PROMPT},
            *(turn.to_message() for turn in history),
        ]

        _enter(recorder, TurnState.AWAITING_MODEL_FIRST_PASS)
        first = await self.model_client.complete(
            transcript, tools=dispatcher.get_tool_schemas(), tool_choice="auto", recorder=recorder
        )
        if first is None:
            self._keep_lead(message.user_id, session)
            _enter(recorder, TurnState.REPLIED, empty=True)
            return BotReply(messages=[NO_MESSAGE_REPLY])

        handoff: Optional[Handoff] = None
        if first.tool_calls:
            final_text, handoff = await self._run_tools(first, transcript, dispatcher, session, message, recorder)
        else:
            final_text = (first.text or "").strip()
            if not final_text:
                self._keep_lead(message.user_id, session)
                _enter(recorder, TurnState.REPLIED, empty=True)
                return BotReply(messages=[EMPTY_DIRECT_REPLY])

        session.append_turns([user_turn, ChatTurn(role="assistant", content=final_text)], self.history_limit)
        with recorder.stage("SESSION", operation="save"):
            self.sessions.save(message.user_id, session)
        _enter(recorder, TurnState.REPLIED, handoff=handoff is not None)
        return BotReply(messages=[final_text], handoff=handoff)

    def _keep_lead(self, user_id: str, session: Session) -> None:
        """Persist only a newly created lead when the turn itself is not committed.

        History stays as it was; the next turn reuses the lead instead of
        inserting a second one for the same session.
        """
        if session.lead_id is None:
            return
        stored = self.sessions.load(user_id)
        if stored.lead_id == session.lead_id:
            return
        stored.lead_id = session.lead_id
        stored.lead_data = session.lead_data
        self.sessions.save(user_id, stored)
        logger.info("conversation.lead_kept user_id=%s lead_id=%s", user_id, session.lead_id)

    async def _init_lead(self, lead_service: LeadService, session: Session, message: InboundMessage) -> None:
        try:
            session.lead_id = await lead_service.load_or_create(
                visitor_id=message.user_id,
                tenant_id=message.tenant_id,
                source_type=message.source_type,
                lead_data=session.lead_data,
                existing_lead_id=session.lead_id,
            )
        except Exception as exc:  # noqa: BLE001
            # Lead tracking must never cost the user a reply
            logger.warning("conversation.lead_init_failed user_id=%s err=%s", message.user_id, exc)

    async def _run_tools(
        self,
        first: ModelReply,
        transcript: List[Dict[str, Any]],
        dispatcher: ToolDispatcher,
        session: Session,
        message: InboundMessage,
        recorder: FlightRecorder,
    ) -> Tuple[str, Optional[Handoff]]:
        _enter(recorder, TurnState.TOOL_EXECUTION, tools=[call.name for call in first.tool_calls])
        context = ToolContext.for_session(session, message.tenant_id, message.source_type)
        results: List[ToolResult] = []
        try:
            with recorder.stage("TOOLS", count=len(first.tool_calls)):
                results = await dispatcher.dispatch(first.tool_calls, context)
        except Exception:
            logger.exception("conversation.dispatch_failed user_id=%s", message.user_id)
            results = []

        lead_id = extract_lead_id(results) or context.lead_id
        if lead_id is not None:
            session.lead_id = lead_id

        followup = [
            *transcript,
            first.assistant_message,
            *tool_messages_for(first.tool_calls, results),
        ]
        _enter(recorder, TurnState.AWAITING_MODEL_SECOND_PASS)
        second = await self.model_client.complete(followup, recorder=recorder)
        final_text = ((second.text if second else None) or "").strip() or EMPTY_FINAL_REPLY

        handoff = Handoff(summary=context.handoff_summary) if context.handoff_summary else None
        return final_text, handoff


def _enter(recorder: FlightRecorder, state: TurnState, **metadata: Any) -> None:
    logger.debug("conversation.state state=%s", state.value)
    recorder.log("SESSION", f"state={state.value}", **metadata)
