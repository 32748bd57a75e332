from __future__ import annotations

import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from cadastre.errors import ApiError
from cadastre.routes import jobs, pillars, surveyors
from cadastre.routes._deps import error_response, request_id_from_request, trace_id_from_request
from cadastre.schemas import success_envelope
from cadastre.security import ActorIdentityConfig, actor_from_bearer_token, actor_from_headers, redact_sensitive
from cadastre.settings import Settings

logger = logging.getLogger(__name__)

SECURITY_CODES = {"AUTH_UNAUTHORIZED", "AUTH_FORBIDDEN", "JOB_ACCESS_DENIED"}


def create_app() -> FastAPI:
    settings = Settings.from_env()
    logging.getLogger("cadastre").setLevel(settings.log_level)
    identity_cfg = ActorIdentityConfig.from_env()

    app = FastAPI(title="Cadastral Survey Registry API", version="0.1.0")
    app.state.settings = settings
    app.state.identity_cfg = identity_cfg
    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def resolve_actor(request: Request, call_next):
        incoming_trace_id = request.headers.get("x-trace-id", "").strip()
        request.state.trace_id = incoming_trace_id or uuid.uuid4().hex
        request.state.request_id = request.headers.get("x-request-id", f"req_{uuid.uuid4().hex[:12]}")
        request.state.actor = None
        try:
            if identity_cfg.enabled:
                request.state.actor = actor_from_bearer_token(
                    authorization=request.headers.get("Authorization"),
                    cfg=identity_cfg,
                )
            else:
                request.state.actor = actor_from_headers(request.headers)
        except ApiError as exc:
            logger.warning("actor resolution failed on %s: %s", request.url.path, exc.message)
            return error_response(
                request,
                code=exc.code,
                message=exc.message,
                error_class=exc.error_class,
                retryable=exc.retryable,
                status_code=exc.http_status,
            )
        response = await call_next(request)
        response.headers["x-trace-id"] = trace_id_from_request(request)
        response.headers["x-request-id"] = request_id_from_request(request)
        return response

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        actor = getattr(request.state, "actor", None)
        if exc.code in SECURITY_CODES:
            logger.warning(
                "security_blocked code=%s actor=%s path=%s trace_id=%s headers=%s",
                exc.code,
                actor.actor_id if actor is not None else "anonymous",
                request.url.path,
                trace_id_from_request(request),
                redact_sensitive(dict(request.headers.items())),
            )
        else:
            logger.info("request rejected code=%s path=%s: %s", exc.code, request.url.path, exc.message)
        return error_response(
            request,
            code=exc.code,
            message=exc.message,
            error_class=exc.error_class,
            retryable=exc.retryable,
            status_code=exc.http_status,
            details=exc.details,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        fields = [".".join(str(x) for x in err.get("loc", ())) for err in exc.errors()]
        return error_response(
            request,
            code="REQ_VALIDATION_FAILED",
            message="invalid payload",
            error_class="validation",
            retryable=False,
            status_code=400,
            details={"fields": fields},
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return error_response(
                request,
                code="REQ_NOT_FOUND",
                message="resource not found",
                error_class="validation",
                retryable=False,
                status_code=404,
            )
        return error_response(
            request,
            code="REQ_HTTP_ERROR",
            message=str(exc.detail),
            error_class="validation",
            retryable=False,
            status_code=exc.status_code,
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("unhandled error on %s", request.url.path)
        return error_response(
            request,
            code="INTERNAL_ERROR",
            message="internal server error",
            error_class="transient",
            retryable=True,
            status_code=500,
        )

    @app.get("/healthz")
    def healthz(request: Request) -> dict[str, object]:
        return success_envelope({"status": "ok"}, trace_id_from_request(request))

    @app.get("/api/v1/health")
    def health_api(request: Request) -> dict[str, object]:
        return success_envelope({"status": "ok"}, trace_id_from_request(request))

    app.include_router(surveyors.router)
    app.include_router(jobs.router)
    app.include_router(pillars.router)
    return app


app = create_app()
