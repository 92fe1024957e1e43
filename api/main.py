from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

import api.v1.publishing.registry_init  # noqa: F401
import api.v1.render.registry_init  # noqa: F401
from api.config.logging import get_logger, setup_logging
from api.config.settings import Settings, get_settings
from api.infra import database as database_module
from api.v1.core.exceptions import (
    RequestContextMiddleware,
    StudioJobsException,
    general_exception_handler,
    http_exception_handler,
    request_validation_exception_handler,
    studio_jobs_exception_handler,
)
from api.v1.core.registries import analyzer_registry, provider_registry
from api.v1.healthz import router as health_router
from api.v1.publishing.routes import router as publishing_router
from api.v1.render.providers import close_providers
from api.v1.render.routes import router as render_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info(
        "Studio Jobs starting",
        environment=settings.environment,
        render_provider=settings.render_provider.value,
        story_analyzer=settings.story_analyzer.value,
        providers=provider_registry.list(),
        analyzers=analyzer_registry.list(),
    )
    yield
    await close_providers()
    if database_module._database is not None:
        await database_module._database.close()
        database_module._database = None
    logger.info("Studio Jobs stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the API: render jobs, provider webhook, publish trigger, health."""
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Render job orchestration and scheduled publishing",
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan,
        openapi_url="/v1/openapi.json" if settings.debug else None,
        docs_url="/v1/docs" if settings.debug else None,
        redoc_url="/v1/redoc" if settings.debug else None,
    )
    app.state.settings = settings

    app.add_middleware(RequestContextMiddleware)
    if settings.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(StudioJobsException, studio_jobs_exception_handler)
    app.add_exception_handler(
        RequestValidationError, request_validation_exception_handler
    )
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(health_router, prefix="/v1", tags=["health"])
    app.include_router(render_router, prefix="/v1")
    app.include_router(publishing_router, prefix="/v1")

    # Providers and analyzers are fixed once the process leaves development
    if settings.environment != "development":
        provider_registry.freeze()
        analyzer_registry.freeze()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers,
    )
