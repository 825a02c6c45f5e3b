"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from snapclassify.config import Settings

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from snapclassify import __version__
from snapclassify.api.routes import router
from snapclassify.config import get_settings
from snapclassify.engine import ClassifierEngine
from snapclassify.errors import StartupError
from snapclassify.session import ClassifierSession

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)


def build_session(settings: Settings) -> ClassifierSession:
    """Load the model and labels, or terminate the process.

    Raises:
        SystemExit: If a bundled resource cannot be loaded.
    """
    try:
        engine = ClassifierEngine.from_settings(settings)
    except StartupError as exc:
        logger.critical("CRITICAL: %s. App will close.", exc)
        raise SystemExit(1) from exc
    return ClassifierSession(engine, max_pixels=settings.max_image_pixels)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: load resources on startup, release on shutdown."""
    settings = get_settings()
    app.state.settings = settings
    configure_logging(settings)

    logger.info(
        "Starting SnapClassify (device=%s, model=%s, labels=%s, normalize=%s)",
        settings.device,
        settings.model_path,
        settings.labels_path,
        settings.normalize,
    )

    session = build_session(settings)
    app.state.session = session

    logger.info("SnapClassify ready")
    yield

    logger.info("Shutting down SnapClassify")
    session.close()
    logger.info("SnapClassify shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="SnapClassify",
        description="Pick an image and classify it with a bundled ResNet-50 model",
        version=__version__,
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(router)
    return application


app = create_app()
