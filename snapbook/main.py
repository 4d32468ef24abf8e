"""
Snapbook API

Daily standup snaps, exactly-once day/slot locking, card RAG rollups and
daily summaries, served under ``/api/v1``.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from sqlalchemy import text
import uvicorn

from .config import Settings, get_settings
from .core.exceptions import ForbiddenError, NotFoundError, SnapbookError, ValidationFailedError
from .database import async_session, create_schema, engine
from .api.v1.router import api_router
from .utils.logging import get_logger, setup_logging

logger = get_logger(__name__)

settings = get_settings()

# Most specific first; anything else is an internal error
_STATUS_BY_ERROR = (
    (NotFoundError, 404),
    (ValidationFailedError, 400),
    (ForbiddenError, 403),
)


async def snapbook_error_handler(request: Request, exc: SnapbookError):
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return JSONResponse(status_code=status_code, content={"detail": exc.message})

    logger.error(
        "Unhandled %s on %s %s: %s (%s)",
        type(exc).__name__, request.method, request.url.path, exc.message, exc.context,
    )
    return JSONResponse(status_code=500, content={"detail": exc.message})


def create_app(config: Settings) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(config.log_level, config.log_file)
        logger.info("Starting %s %s", config.app_name, config.app_version)
        await create_schema()

        yield

        logger.info("Shutting down %s", config.app_name)
        await engine.dispose()

    application = FastAPI(
        title=config.app_name,
        version=config.app_version,
        description="Daily standup snaps, day locking and RAG rollups for sprint teams",
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
        lifespan=lifespan
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["*"],
    )
    application.add_exception_handler(SnapbookError, snapbook_error_handler)
    application.include_router(api_router, prefix="/api/v1")

    @application.get("/health")
    async def health_check():
        """Liveness plus a database round trip"""
        try:
            async with async_session() as session:
                await session.execute(text("SELECT 1"))
            database = "ok"
        except Exception:
            logger.error("Health check could not reach the database", exc_info=True)
            database = "unavailable"

        return {
            "status": "healthy" if database == "ok" else "degraded",
            "database": database,
            "version": config.app_version,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    return application


app = create_app(settings)


if __name__ == "__main__":
    uvicorn.run(
        "snapbook.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
