from __future__ import annotations

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from inmo24x7.config import get_settings
from inmo24x7.logging.flight_recorder import register_log_middleware
from inmo24x7.logging.setup import configure_logging
from inmo24x7.routes import health, leads, message


async def _invalid_payload(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Invalid payload", "details": jsonable_encoder(exc.errors())})


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Inmo24x7", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_log_middleware(app)
    app.add_exception_handler(RequestValidationError, _invalid_payload)

    app.include_router(health.router, tags=["health"])
    app.include_router(message.router, tags=["messages"])
    app.include_router(leads.router, prefix="/leads", tags=["leads"])

    # Mounted last so API routes take precedence
    if settings.static_dir.is_dir():
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run("inmo24x7.main:app", host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
