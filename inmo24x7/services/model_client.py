from __future__ import annotations

import asyncio
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import logging
import openai
from openai import AsyncOpenAI

from inmo24x7.errors import ModelServiceError, RateLimitedError
from inmo24x7.logging.flight_recorder import FlightRecorder
from inmo24x7.models.tooling import ToolCallRequest

logger = logging.getLogger(__name__)


@dataclass
class ModelReply:
    text: Optional[str]
    tool_calls: List[ToolCallRequest] = field(default_factory=list)
    # The assistant turn exactly as it must be replayed on a follow-up call
    assistant_message: Dict[str, Any] = field(default_factory=dict)


def assistant_message_from(message: Any) -> Dict[str, Any]:
    replay: Dict[str, Any] = {"role": "assistant", "content": message.content or ""}
    tool_calls = getattr(message, "tool_calls", None) or []
    if tool_calls:
        replay["tool_calls"] = [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.function.name, "arguments": call.function.arguments or "{}"},
            }
            for call in tool_calls
            if getattr(call, "type", "function") == "function"
        ]
    return replay


class ModelClient:
    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: Optional[str] = None,
        timeout_seconds: float = 30.0,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._client: Optional[AsyncOpenAI] = client
        if self._client is None and api_key:
            self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout_seconds)
        if self._client is None:
            logger.warning("model.disabled reason=no_api_key")

    async def complete(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Optional[str] = None,
        recorder: Optional[FlightRecorder] = None,
    ) -> Optional[ModelReply]:
        """Run one chat completion. Returns None when the model sent no message."""
        if self._client is None:
            raise ModelServiceError("OPENAI_API_KEY not configured")

        kwargs: Dict[str, Any] = {"model": self.model, "messages": messages}
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = tool_choice or "auto"

        try:
            stage = recorder.stage("MODEL", model=self.model, with_tools=bool(tools)) if recorder else nullcontext()
            with stage:
                response = await asyncio.wait_for(
                    self._client.chat.completions.create(**kwargs), timeout=self.timeout_seconds
                )
        except openai.RateLimitError as exc:
            logger.warning("model.rate_limited model=%s", self.model)
            raise RateLimitedError(str(exc)) from exc
        except asyncio.TimeoutError as exc:
            logger.warning("model.timeout model=%s timeout_s=%s", self.model, self.timeout_seconds)
            raise ModelServiceError(f"model call timed out after {self.timeout_seconds}s") from exc
        except openai.APIError as exc:
            if getattr(exc, "status_code", None) == 429:
                raise RateLimitedError(str(exc)) from exc
            logger.warning("model.error model=%s err=%s", self.model, exc)
            raise ModelServiceError(str(exc)) from exc

        if not response.choices:
            return None
        message = response.choices[0].message
        if message is None:
            return None

        tool_calls = [
            ToolCallRequest(id=call.id, name=call.function.name, arguments_json=call.function.arguments or "{}")
            for call in (message.tool_calls or [])
            if getattr(call, "type", "function") == "function"
        ]
        return ModelReply(text=message.content, tool_calls=tool_calls, assistant_message=assistant_message_from(message))
