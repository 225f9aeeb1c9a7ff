from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from schoolconnect.api.router import router
from schoolconnect.errors import SchoolConnectError, field_errors
from schoolconnect.observability import init_logging, init_otel
from schoolconnect.settings import settings
from schoolconnect.wiring import get_repo

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(SchoolConnectError)
    async def _domain_error(request: Request, exc: SchoolConnectError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc.__cause__)
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_body()))

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "Validation failed", "details": jsonable_encoder(field_errors(exc.errors()))},
        )

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


@asynccontextmanager
async def lifespan(app: FastAPI):
    repo = get_repo()
    await repo.init()
    logger.info("%s started (env=%s, storage=%s)", settings.app_name, settings.env, settings.storage_backend)
    yield
    await repo.close()


def create_app() -> FastAPI:
    init_logging(settings.log_level)
    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    init_otel(
        app=app,
        enabled=settings.observability_enabled,
        service_name=settings.otel_service_name,
        otlp_endpoint=settings.otel_exporter_otlp_endpoint,
        console_exporter=settings.otel_exporter_console,
        sample_rate=settings.otel_sample_rate,
    )

    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "env": settings.env}

    return app


app = create_app()
