from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi_pagination import add_pagination
from fastapi_pagination.utils import disable_installed_extensions_check

from app.config import get_settings
from app.core.errors import NotFoundError, StorageError, ValidationError
from app.infra.logging_config import configure_logging, get_logger
from app.routers import backup_router, chat_router
from app.routers.sessions_router import sessions_router

logger = get_logger("api")


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=404, content={"detail": f"{exc.resource} not found"}
    )


async def validation_error_handler(
    request: Request, exc: ValidationError
) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app(testing: bool = False) -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title=settings.app_name)

    if not testing:
        from app.db import init_db

        if settings.storage_backend == "sql":
            init_db()

    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(StorageError, storage_error_handler)

    app.include_router(sessions_router)
    app.include_router(backup_router.router)
    app.include_router(chat_router.router)

    @app.get("/health", tags=["system"])
    def health() -> dict[str, str]:
        return {"status": "ok", "storage_backend": settings.storage_backend}

    add_pagination(app)
    # listings are paginated in memory; the SQLAlchemy extension is not used
    disable_installed_extensions_check()
    logger.info(
        "Application %s started (env=%s, storage=%s)",
        settings.app_name,
        settings.environment,
        settings.storage_backend,
    )
    return app


app = create_app(testing=get_settings().is_test)


def run() -> None:
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=get_settings().port)
