from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from iot_platform.api.router import api_router
from iot_platform.api.ws import router as ws_router
from iot_platform.core.errors import AppHTTPException, DomainError, StorageFailure, error_payload
from iot_platform.core.logging import setup_logging
from iot_platform.core.rate_limit import rate_limiter
from iot_platform.core.realtime import ConnectionManager
from iot_platform.core.request_id import ensure_request_id, get_request_id, set_request_id
from iot_platform.core.settings import settings
from iot_platform.db import session as db_session
from iot_platform.services.device_polling import DevicePoller
from iot_platform.services.notifications import publish_evaluation

"""
Application FastAPI (entrypoint).

Rôle (fonctionnel) :
- Configure l’application (settings, CORS, middlewares, routers).
- Cycle de vie (lifespan) :
  - création du schéma si DB_AUTO_CREATE (dev / tests, sinon Alembic)
  - démarrage du polling HTTP_PULL si POLLING_ENABLED, annulé à l’arrêt
  - fermeture des WebSockets et de l’engine
- Centralise l’observabilité :
  - request_id propagé (X-Request-Id)
  - logs structurés JSON (timing, status, client_ip)
  - seuil de “slow request”
- Applique un rate-limit simple (optionnel) sur les routes d’écriture fréquentes.
- Uniformise les erreurs côté client (format error_payload), y compris les erreurs métier (DomainError).

Ce fichier ne contient pas de logique métier :
- La logique métier est dans iot_platform.services
- Les routes sont dans iot_platform.api
- Les composants transverses sont dans iot_platform.core
"""


# --- Force UTF-8 in Content-Type for JSON responses ---
class UTF8JSONResponse(JSONResponse):
    """Réponse JSON avec charset UTF-8 explicite (cohérent sur tous les endpoints)."""
    media_type = "application/json; charset=utf-8"


# --- Logging (niveau depuis .env si dispo) ---
setup_logging(settings.LOG_LEVEL)

# logger principal projet
log = logging.getLogger("iot_platform")

# logger dédié observabilité HTTP (séparé du métier)
http_log = logging.getLogger("iot_platform.http")

# seuil slow request (ms)
SLOW_MS = int(settings.SLOW_REQUEST_MS)


def _split_origins(value: str) -> list[str]:
    """Parse une liste d’origines CORS depuis une string 'a,b,c'."""
    if not value:
        return []
    return [o.strip() for o in value.split(",") if o.strip()]


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id() or str(uuid.uuid4())


def create_app(engine: Optional[AsyncEngine] = None) -> FastAPI:
    """
    Construit l’application.

    `engine` permet d’injecter une base dédiée (tests) ; par défaut l’engine de settings.DATABASE_URL.
    """
    bind = engine or db_session.engine
    session_factory = (
        db_session.AsyncSessionLocal if engine is None else db_session.build_session_factory(engine)
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.DB_AUTO_CREATE:
            await db_session.init_models(bind)

        if settings.POLLING_ENABLED:
            poller = DevicePoller(
                session_factory,
                on_evaluation=functools.partial(publish_evaluation, app.state.ws_manager),
            )
            app.state.poller_task = asyncio.create_task(poller.run_forever())
            log.info("polling_started (interval=%ss)", poller.interval_seconds)

        try:
            yield
        finally:
            task = getattr(app.state, "poller_task", None)
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
                app.state.poller_task = None

            await app.state.ws_manager.close_all()

            # L’engine injecté reste sous la responsabilité de l’appelant
            if engine is None:
                await bind.dispose()

    app = FastAPI(
        title=settings.APP_NAME,
        debug=settings.DEBUG,
        default_response_class=UTF8JSONResponse,
        lifespan=lifespan,
    )

    app.state.session_factory = session_factory
    app.state.poller_task = None

    # WebSocket manager partagé (accessible via request.app.state.ws_manager)
    app.state.ws_manager = ConnectionManager()

    # --- CORS ---
    origins = _split_origins(settings.CORS_ORIGINS)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=False,  # pas de cookies (API stateless)
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=[
            "Content-Type",
            "Authorization",
            "X-API-Key",
            "X-Actor",
            "X-Request-Id",
        ],
    )

    # --- Routers ---
    app.include_router(api_router)
    app.include_router(ws_router)

    # --- Middleware observabilité : request_id + timing + logs structurés ---
    @app.middleware("http")
    async def request_observability(request: Request, call_next):
        # Prend le header s’il existe, sinon génère un UUID
        rid = ensure_request_id(request.headers.get("X-Request-Id"))
        request.state.request_id = rid

        start = time.perf_counter()
        response = None
        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = int((time.perf_counter() - start) * 1000)

            # Toujours renvoyer le request id au client
            if response is not None:
                response.headers["X-Request-Id"] = rid

            # Slow request => WARNING, sinon INFO
            level = logging.WARNING if duration_ms >= SLOW_MS else logging.INFO
            http_log.log(
                level,
                "request",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": getattr(response, "status_code", None),
                    "duration_ms": duration_ms,
                    "client_ip": request.client.host if request.client else None,
                },
            )

            set_request_id(None)

    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next):
        """
        Rate-limit (optionnel) :
        - Ne bloque jamais les préflights CORS (OPTIONS).
        - S’applique uniquement sur les préfixes de rate_limit.LIMITED_PREFIXES.
        """
        if request.method == "OPTIONS" or not rate_limiter.applies_to(request.url.path):
            return await call_next(request)

        try:
            rate_limiter.check(request)
        except AppHTTPException as exc:
            detail = exc.detail if isinstance(exc.detail, dict) else {}
            return UTF8JSONResponse(
                status_code=exc.status_code,
                content=error_payload(
                    code=str(detail.get("code", "RATE_LIMITED")),
                    message=str(detail.get("message", "Trop de requêtes")),
                    status=exc.status_code,
                    request_id=_request_id(request),
                    details=detail.get("details", None),
                ),
            )

        return await call_next(request)

    # --- Error handlers : format standard, pas de stacktrace côté client ---
    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        """Erreurs métier (NotFound, transition interdite, validation, stockage) -> payload standard."""
        if isinstance(exc, StorageFailure):
            log.error("storage_failure: %s", exc.message, exc_info=exc.__cause__)

        return UTF8JSONResponse(
            status_code=exc.status_code,
            content=error_payload(
                code=exc.code,
                message=exc.message,
                status=exc.status_code,
                request_id=_request_id(request),
                details=exc.details,
            ),
        )

    @app.exception_handler(AppHTTPException)
    async def app_http_exception_handler(request: Request, exc: AppHTTPException):
        """Erreurs applicatives (AppHTTPException) -> payload standard."""
        detail = exc.detail if isinstance(exc.detail, dict) else {}

        return UTF8JSONResponse(
            status_code=exc.status_code,
            content=error_payload(
                code=str(detail.get("code", "HTTP_ERROR")),
                message=str(detail.get("message", "Erreur HTTP")),
                status=exc.status_code,
                request_id=_request_id(request),
                details=detail.get("details", None),
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Erreurs HTTP natives (404, 405, etc.) -> payload standard."""
        if isinstance(exc.detail, dict):
            code = str(exc.detail.get("code", "HTTP_ERROR"))
            message = str(exc.detail.get("message", "Erreur HTTP"))
            details = exc.detail.get("details", None)
        else:
            code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
            message = str(exc.detail)
            details = None

        return UTF8JSONResponse(
            status_code=exc.status_code,
            content=error_payload(
                code=code, message=message, status=exc.status_code, request_id=_request_id(request), details=details
            ),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Erreurs de validation Pydantic -> 422 + details=exc.errors()."""
        return UTF8JSONResponse(
            status_code=422,
            content=error_payload(
                code="VALIDATION_ERROR",
                message="Requête invalide",
                status=422,
                request_id=_request_id(request),
                details=jsonable_errors(exc),
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        """Fallback : toute exception non gérée -> 500 + log serveur."""
        log.exception("Unhandled error: %s", exc)

        return UTF8JSONResponse(
            status_code=500,
            content=error_payload(
                code="INTERNAL_ERROR",
                message="Erreur interne du serveur",
                status=500,
                request_id=_request_id(request),
            ),
        )

    return app


def jsonable_errors(exc: RequestValidationError):
    """exc.errors() peut contenir des objets non sérialisables (ex: ValueError dans ctx)."""
    return jsonable_encoder(exc.errors(), custom_encoder={Exception: str})


app = create_app()
