from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List

import logging
from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

_STAGE_ORDER = [
    "HTTP",
    "SESSION",
    "LEAD",
    "MODEL",
    "TOOLS",
    "SEARCH",
]

_REDACTED_KEYS = {"nombre", "contacto", "phone", "email", "name"}


@dataclass
class StageEvent:
    stage: str
    message: str
    elapsed_ms: float
    metadata: Dict[str, Any] = field(default_factory=dict)


class FlightRecorder:
    """Collects per-turn stage timings and mirrors them to the log."""

    def __init__(self) -> None:
        self.events: List[StageEvent] = []
        self.start_time = time.perf_counter()

    @contextmanager
    def stage(self, stage: str, **metadata: Any):
        if stage not in _STAGE_ORDER:
            logger.warning("flight_recorder.unknown_stage stage=%s", stage)
        stage_start = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - stage_start) * 1000
            total_ms = (time.perf_counter() - self.start_time) * 1000
            redacted = _redact(metadata)
            self.events.append(
                StageEvent(
                    stage=stage,
                    message=f"{stage} completed",
                    elapsed_ms=elapsed_ms,
                    metadata={"total_ms": round(total_ms, 2), **redacted},
                )
            )
            logger.info(
                "flight_recorder.stage stage=%s elapsed_ms=%.2f total_ms=%.2f metadata=%s",
                stage,
                round(elapsed_ms, 2),
                round(total_ms, 2),
                redacted,
            )

    def log(self, stage: str, message: str, **metadata: Any) -> None:
        if stage not in _STAGE_ORDER:
            logger.warning("flight_recorder.unknown_stage stage=%s", stage)
        total_ms = (time.perf_counter() - self.start_time) * 1000
        redacted = _redact(metadata)
        self.events.append(
            StageEvent(
                stage=stage,
                message=message,
                elapsed_ms=0,
                metadata={"total_ms": round(total_ms, 2), **redacted},
            )
        )
        logger.info(
            "flight_recorder.log stage=%s message=%s total_ms=%.2f metadata=%s",
            stage,
            message,
            round(total_ms, 2),
            redacted,
        )

    def messages(self, stage: str) -> List[str]:
        return [event.message for event in self.events if event.stage == stage]


def _redact(payload: Dict[str, Any]) -> Dict[str, Any]:
    redacted = {}
    for key, value in payload.items():
        if key in _REDACTED_KEYS and value:
            redacted[key] = "***"
        else:
            redacted[key] = value
    return redacted


class FlightRecorderMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        recorder = FlightRecorder()
        request.state.flight_recorder = recorder
        with recorder.stage("HTTP", method=request.method, path=request.url.path):
            response = await call_next(request)
        return response


def register_log_middleware(app: FastAPI) -> None:
    app.add_middleware(FlightRecorderMiddleware)


def get_recorder(request: Request) -> FlightRecorder:
    recorder = getattr(request.state, "flight_recorder", None)
    return recorder if recorder is not None else FlightRecorder()
