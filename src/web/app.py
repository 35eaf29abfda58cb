"""
FastAPI web application for podcast processing.

Exposes the project API used by the dashboard and the event intake endpoint
that feeds the processing workflow.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from src.config import Config
from src.db.factory import create_repository_from_config
from src.db.repository import ProjectRepositoryInterface
from src.services.blob_storage import BlobStorage
from src.services.project_service import ProjectService
from src.web.event_routes import router as event_router
from src.web.project_routes import router as project_router
from src.workflow.events import BackgroundEventSender, EventDispatcher
from src.workflow.factory import create_dispatcher

logger = logging.getLogger(__name__)


def _validate_jwt_config(config: Config) -> None:
    """
    Validate JWT configuration at startup.

    In DEV_MODE, allows running without JWT_SECRET_KEY by using an insecure key.
    In production, requires JWT_SECRET_KEY to be set.
    """
    is_dev_mode = os.getenv("DEV_MODE", "").lower() == "true"
    if not config.JWT_SECRET_KEY:
        if is_dev_mode:
            logger.warning(
                "JWT_SECRET_KEY not set - using insecure dev key. "
                "DO NOT use in production!"
            )
            config.JWT_SECRET_KEY = "dev-secret-key-insecure-do-not-use-in-prod"
        else:
            raise RuntimeError(
                "JWT_SECRET_KEY environment variable must be set. "
                "Set DEV_MODE=true to use an insecure dev key for local testing."
            )


def create_app(
    config: Optional[Config] = None,
    repository: Optional[ProjectRepositoryInterface] = None,
    dispatcher: Optional[EventDispatcher] = None,
    blob_storage: Optional[BlobStorage] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Application configuration; loaded from the environment when omitted.
        repository: Project store; created from `config` when omitted.
        dispatcher: Workflow dispatcher; built from `config` when omitted.
        blob_storage: Blob client used for delete cleanup.

    Returns:
        FastAPI: The configured application.
    """
    config = config or Config()
    _validate_jwt_config(config)

    repository = repository or create_repository_from_config(config)
    dispatcher = dispatcher or create_dispatcher(config, repository)
    event_sender = BackgroundEventSender(dispatcher)
    project_service = ProjectService(
        repository=repository,
        blob_storage=blob_storage or BlobStorage(config),
        send_event=event_sender,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        logger.info("Application started")
        yield
        event_sender.shutdown(wait=False)
        repository.close()
        logger.info("Application shutdown")

    app = FastAPI(
        title="Airtime",
        description="Podcast transcription and content generation API",
        version="1.0.0",
        lifespan=lifespan,
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[config.WEB_RATE_LIMIT])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # CORS middleware (configurable via environment variable)
    allowed_origins = config.WEB_ALLOWED_ORIGINS.split(",") if config.WEB_ALLOWED_ORIGINS != "*" else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Shared state for routes
    app.state.config = config
    app.state.repository = repository
    app.state.event_sender = event_sender
    app.state.project_service = project_service

    app.include_router(project_router)
    app.include_router(event_router)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "service": "airtime"}

    return app


def main() -> None:
    import uvicorn

    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    config = Config()
    uvicorn.run(create_app(config), host="0.0.0.0", port=config.WEB_PORT)


if __name__ == "__main__":
    main()
