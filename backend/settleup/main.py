from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from settleup.api.routes import admin, auth, clients, health, notifications, payments, realtime
from settleup.core.config import settings
from settleup.core.errors import SettleUpError
from settleup.core.logging_setup import logger
from settleup.db.session import init_db
from settleup.services.reminders import build_scheduler


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncGenerator[None, None]:
    init_db()

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = build_scheduler()
        scheduler.start()
        logger.info("Maintenance scheduler started (every %ss)", settings.scheduler_interval_seconds)

    yield

    if scheduler is not None:
        scheduler.shutdown(wait=False)


def _normalize_origin(value: str | None) -> str | None:
    if not value:
        return None
    cleaned = value.strip().rstrip("/")
    return cleaned or None


def _error_body(message: str) -> dict[str, object]:
    return {"success": False, "message": message}


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


def register_exception_handlers(application: FastAPI) -> None:
    @application.exception_handler(SettleUpError)
    async def handle_domain_error(_: Request, exc: SettleUpError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message))

    @application.exception_handler(StarletteHTTPException)
    async def handle_http_error(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @application.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_error_body(_validation_message(exc)))

    @application.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body("Internal server error"),
        )


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.project_name,
        debug=settings.debug,
        lifespan=lifespan,
    )

    origins: list[str] = []
    for item in settings.allowed_origins + [settings.resolved_frontend_url()]:
        normalized = _normalize_origin(item)
        if normalized and normalized not in origins:
            origins.append(normalized)
    logger.info("CORS origins: %s", origins)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(application)

    application.include_router(health.router, prefix="/health")
    application.include_router(auth.router, prefix=settings.api_prefix)
    application.include_router(clients.router, prefix=settings.api_prefix)
    application.include_router(payments.router, prefix=settings.api_prefix)
    application.include_router(notifications.router, prefix=settings.api_prefix)
    application.include_router(admin.router, prefix=settings.api_prefix)
    application.include_router(realtime.router)

    @application.get("/")
    def root():
        return {"service": settings.project_name}

    return application


app = create_app()
