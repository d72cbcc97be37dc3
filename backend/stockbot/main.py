from __future__ import annotations

import time
import uuid
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from stockbot.api.router import api_router
from stockbot.core.settings import settings
from stockbot.core.logging import setup_logging
from stockbot.core.errors import error_payload, AppHTTPException, TradeError
from stockbot.core.request_id import set_request_id, get_request_id, ensure_request_id
from stockbot.core.rate_limit import rate_limiter

"""
Application FastAPI (entrypoint).

Rôle (fonctionnel) :
- Configure l’application (settings, CORS, middlewares, routers).
- Observabilité :
  - request_id propagé (X-Request-Id)
  - logs JSON (timing, status, client_ip) + seuil de “slow request”
- Rate-limit optionnel sur les routes de trading (/members/...).
- Uniformise les erreurs (format error_payload), y compris les erreurs métier du moteur
  (TradeError -> status + code stable ; CommitFailure signalée rejouable via Retry-After).

Ce fichier ne contient pas de logique métier :
- le moteur de trading est dans stockbot.services
- les routes sont dans stockbot.api
- les composants transverses sont dans stockbot.core
"""


class UTF8JSONResponse(JSONResponse):
    """Réponse JSON avec charset UTF-8 explicite (cohérent sur tous les endpoints)."""
    media_type = "application/json; charset=utf-8"


setup_logging(getattr(settings, "LOG_LEVEL", "INFO"))

log = logging.getLogger("stockbot")
http_log = logging.getLogger("stockbot.http")

SLOW_MS = int(getattr(settings, "SLOW_REQUEST_MS", 800))


def _split_origins(value: str) -> list[str]:
    """Parse une liste d’origines CORS depuis une string 'a,b,c'."""
    if not value:
        return []
    return [o.strip() for o in value.split(",") if o.strip()]


def _rid(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id() or str(uuid.uuid4())


app = FastAPI(
    title=getattr(settings, "APP_NAME", "Stockbot Ledger API"),
    debug=getattr(settings, "DEBUG", False),
    default_response_class=UTF8JSONResponse,
)

# --- CORS ---
origins = _split_origins(getattr(settings, "CORS_ORIGINS", ""))

default_dev_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or default_dev_origins,
    allow_credentials=False,  # API stateless
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "X-API-Key",
        settings.MEMBER_HEADER,
        "Idempotency-Key",
        "X-Request-Id",
    ],
)

app.include_router(api_router)


@app.middleware("http")
async def request_observability(request: Request, call_next):
    rid = ensure_request_id(request.headers.get("X-Request-Id"))
    request.state.request_id = rid

    start = time.perf_counter()
    response = None
    try:
        response = await call_next(request)
        return response
    finally:
        duration_ms = int((time.perf_counter() - start) * 1000)

        if response is not None:
            response.headers["X-Request-Id"] = rid

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
    """Rate-limit optionnel : jamais sur les préflights CORS, seulement sur /members/..."""
    if request.method == "OPTIONS":
        return await call_next(request)

    if request.url.path.startswith("/members"):
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
                    request_id=_rid(request),
                    details=detail.get("details", None),
                ),
            )

    return await call_next(request)


# --- Error handlers : format standard, pas de stacktrace côté client ---
@app.exception_handler(TradeError)
async def trade_error_handler(request: Request, exc: TradeError):
    """Erreurs du moteur de trading -> payload standard (code métier stable)."""
    headers = {"Retry-After": "1"} if exc.retryable else None
    return UTF8JSONResponse(
        status_code=exc.status,
        content=error_payload(
            code=exc.code,
            message=exc.message,
            status=exc.status,
            request_id=_rid(request),
            details=exc.details,
        ),
        headers=headers,
    )


@app.exception_handler(AppHTTPException)
async def app_http_exception_handler(request: Request, exc: AppHTTPException):
    detail = exc.detail if isinstance(exc.detail, dict) else {}
    return UTF8JSONResponse(
        status_code=exc.status_code,
        content=error_payload(
            code=str(detail.get("code", "HTTP_ERROR")),
            message=str(detail.get("message", "Erreur HTTP")),
            status=exc.status_code,
            request_id=_rid(request),
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
        content=error_payload(code=code, message=message, status=exc.status_code, request_id=_rid(request), details=details),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Erreurs de parsing Pydantic -> 422 + details=exc.errors()."""
    return UTF8JSONResponse(
        status_code=422,
        content=error_payload(
            code="VALIDATION_ERROR",
            message="Requête invalide",
            status=422,
            request_id=_rid(request),
            details=jsonable_errors(exc),
        ),
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # exc.errors() peut contenir des objets non sérialisables (ctx.error)
    return jsonable_encoder(exc.errors(), custom_encoder={Exception: str})


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
            request_id=_rid(request),
        ),
    )
