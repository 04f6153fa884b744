# manga_api/main.py

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine

from manga_api.api.v1.api import api_router, iter_api_routes
from manga_api.core.config import Settings, settings as default_settings
from manga_api.core.errors import register_exception_handlers
from manga_api.core.logging_config import configure_logging
from manga_api.core.middleware import register_middleware
from manga_api.db.init_db import init_db
from manga_api.db.session import build_session_factory, install_query_timer
from manga_api.db.session import engine as default_engine
from manga_api.services.metrics import MetricsRecorder
from manga_api.services.status_service import RouteRegistry, StatusReporter

logger = logging.getLogger(__name__)


def create_application(
    settings: Optional[Settings] = None,
    *,
    engine: Optional[Engine] = None,
    metrics: Optional[MetricsRecorder] = None,
) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.log_level, json_output=settings.is_production)

    engine = engine if engine is not None else default_engine
    metrics = metrics or MetricsRecorder()
    install_query_timer(engine, metrics, settings.slow_query_threshold_ms)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.should_create_tables:
            init_db(engine)
        logger.info(
            "%s %s started (%s)",
            settings.PROJECT_NAME,
            settings.api_version,
            settings.environment,
        )
        yield
        engine.dispose()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.api_version,
        lifespan=lifespan,
    )

    # ---------- SHARED STATE ----------
    registry = RouteRegistry()
    session_factory = build_session_factory(engine)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.metrics = metrics
    app.state.route_registry = registry
    app.state.status_reporter = StatusReporter(
        settings=settings,
        metrics=metrics,
        session_factory=session_factory,
        registry=registry,
    )

    # ---------- MIDDLEWARE ----------
    register_middleware(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    # ---------- ROUTERS ----------
    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/healthz", tags=["status"], summary="Liveness probe")
    def healthz():
        return {"status": "ok"}

    registry.register_routes(iter_api_routes(settings.api_prefix))
    registry.register("/healthz", ["GET"], healthz)

    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("manga_api.main:app", host="0.0.0.0", port=default_settings.port)
