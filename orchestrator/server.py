"""
FastAPI application for the translation orchestrator.

The lifespan builds the engines and SessionManager from configuration, starts
a session when an identity is configured, and tears everything down on
shutdown.
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from logging_setup import get_logger, Component
from observability.event_store import event_store

from .config import OrchestratorConfig, get_config
from .control_api import router as translation_router
from .errors import OrchestratorError
from .factory import Services, build_services

logger = get_logger(Component.API)


def create_app(
    services: Optional[Services] = None,
    config: Optional[OrchestratorConfig] = None,
) -> FastAPI:
    """App factory. Tests pass prebuilt services with fake engines."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = config or get_config()
        app.state.services = services or build_services(cfg)
        if cfg.auto_start_session and app.state.services.identity.current_user() is not None:
            try:
                await app.state.services.manager.start_session()
            except OrchestratorError as e:
                # Surfaced as a notification; the client can retry via POST /sessions.
                logger.warning("Auto-start session failed", error_kind=e.kind)
        try:
            yield
        finally:
            await app.state.services.aclose()
            logger.info("Orchestrator stopped")

    app = FastAPI(title="Voice Translation Orchestrator", lifespan=lifespan)
    app.include_router(translation_router)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "ok", "component": "orchestrator", "events": event_store.get_stats()}

    return app
