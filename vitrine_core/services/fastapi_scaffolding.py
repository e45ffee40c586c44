from __future__ import annotations

import os
import uuid
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from vitrine_core.logging import configure_logging

_OPEN_CORS_ENVS = frozenset({"dev", "local", "test"})


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    env: str | None = None
    checked_at: str


class ErrorDetail(BaseModel):
    status: str
    message: str


def allowed_origins(env: str | None) -> list[str]:
    """Browser origins for callables: CORS_ALLOW_ORIGINS, else open in dev."""
    configured = os.getenv("CORS_ALLOW_ORIGINS", "")
    origins = [item.strip() for item in configured.split(",") if item.strip()]
    if origins:
        return origins
    return ["*"] if (env or "dev").lower() in _OPEN_CORS_ENVS else []


def request_correlation_id(request: Request) -> str:
    return request.headers.get("x-correlation-id") or uuid.uuid4().hex


def create_service_app(service_name: str, *, browser_callable: bool = False) -> FastAPI:
    """FastAPI app with JSON logging, correlation ids and ``GET /health``."""
    env = os.getenv("ENV")
    version = os.getenv("VITRINE_VERSION", "dev")
    configure_logging(service=service_name, env=env, version=version)

    app = FastAPI(title=service_name, version=version)

    @app.middleware("http")
    async def _correlate(request: Request, call_next):
        correlation = request_correlation_id(request)
        request.state.correlation_id = correlation
        response = await call_next(request)
        response.headers["x-correlation-id"] = correlation
        return response

    if browser_callable:
        origins = allowed_origins(env)
        if origins:
            app.add_middleware(
                CORSMiddleware,
                allow_origins=origins,
                allow_credentials=False,
                allow_methods=["POST", "OPTIONS"],
                allow_headers=["Authorization", "Content-Type", "X-Correlation-Id"],
            )

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(
            status="ok",
            service=service_name,
            version=version,
            env=env,
            checked_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        )

    return app


def error_response(code: str, message: str, http_status: int) -> JSONResponse:
    """Callable error body; ``failed-precondition`` is sent as FAILED_PRECONDITION."""
    detail = ErrorDetail(status=code.upper().replace("-", "_"), message=message)
    return JSONResponse(status_code=http_status, content={"error": detail.model_dump()})
