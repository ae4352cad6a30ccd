"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from attachvault.domain.errors import AttachmentError
from attachvault.infrastructure import AttachmentServices, Settings, get_settings
from attachvault.infrastructure.http.attachments import (
    attachment_error_handler,
    create_attachments_router,
)


def _lifespan(settings: Settings, services: tuple[AttachmentServices, ...]):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown."""
        logger.info(f"Starting {settings.app_name} v{settings.app_version}")
        logger.info(f"Environment: {settings.environment}")

        checked = set()
        for service in services:
            store = service.store
            if id(store) in checked or not hasattr(store, "health_check"):
                continue
            checked.add(id(store))
            health = store.health_check()
            if health.get("status") == "healthy":
                logger.info(f"Blob store reachable: bucket {health.get('bucket')}")
            else:
                logger.warning(f"Blob store unreachable (non-fatal): {health.get('error')}")

        yield

        logger.info("Shutdown complete")

    return lifespan


def create_app(*services: AttachmentServices, settings: Settings | None = None) -> FastAPI:
    """Create the FastAPI application serving attachments for each resource type."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Staged attachment uploads backed by S3",
        lifespan=_lifespan(settings, services),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AttachmentError, attachment_error_handler)

    for service in services:
        app.include_router(create_attachments_router(service))
        logger.debug(f"Attachment routes registered under {service.resource_type}")

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "version": settings.app_version}

    return app
