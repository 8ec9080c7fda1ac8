"""
BirthGuide - Backend Entrypoint

FastAPI application factory and server configuration.
Run with: uvicorn main:app --reload  (from the backend/ directory)
"""

from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from birthguide import __version__
from birthguide.config import Settings, get_settings
from birthguide.api import routes
from birthguide.core.engine import LaborSessionEngine
from birthguide.core.exceptions import BirthGuideError
from birthguide.core.logging import setup_structured_logging
from birthguide.core.state_store import create_state_store
from birthguide.services.intent_matcher import KeywordIntentMatcher

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
        - Create the session state store from settings
        - Create the decision engine and the intent matcher
        - Restore any session persisted before a restart

    Shutdown:
        - Nothing to flush: every engine mutation is persisted before it returns
    """
    settings: Settings = app.state.settings

    # === Startup ===
    logger.info("BirthGuide starting in %s mode", settings.app_env)

    store = create_state_store(settings)
    engine = LaborSessionEngine.from_settings(settings, store)

    # Store collaborators in app state for dependency injection
    app.state.engine = engine
    app.state.intent_matcher = KeywordIntentMatcher()

    restored = await engine.get_current_state()
    if restored is not None:
        logger.info(
            "Restored labor session: stage=%s, emergency_active=%s",
            restored.stage.value,
            restored.emergency_active,
        )

    logger.info(
        "Engine ready: state_backend=%s, strict_answers=%s, retained_placenta_minutes=%d",
        settings.state_backend,
        settings.strict_answers,
        settings.retained_placenta_minutes,
    )

    yield

    # === Shutdown ===
    logger.info("BirthGuide shutting down")


async def birthguide_error_handler(request: Request, exc: BirthGuideError) -> JSONResponse:
    """Render engine errors with their stable code and status."""
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
    else:
        logger.info("%s on %s: %s", exc.code, request.url.path, exc.message)

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "message": exc.message, "details": exc.details},
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Application factory."""
    settings = settings or get_settings()

    setup_structured_logging(
        level=settings.app_log_level,
        json_format=settings.log_json_format or settings.is_production,
    )

    app = FastAPI(
        title="BirthGuide",
        description="Decision engine API for guided emergency home birth",
        version=__version__,
        docs_url="/docs" if settings.app_debug else None,
        redoc_url="/redoc" if settings.app_debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Errors ---
    app.add_exception_handler(BirthGuideError, birthguide_error_handler)

    # --- Routes ---
    app.include_router(routes.router, prefix="/api")

    @app.get("/")
    async def root():
        """Root health check."""
        return {
            "service": "BirthGuide",
            "status": "operational",
            "version": __version__,
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "main:app",
        host=_settings.backend_host,
        port=_settings.backend_port,
        reload=_settings.app_debug,
    )
