"""Main FastAPI application factory and server startup."""

import logging
from typing import Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from conduit import __version__
from conduit.config.settings import Settings, get_settings
from conduit.generation.backend import create_backend
from conduit.logging_config import setup_logging
from conduit.memory.store import MemoryStore
from .dependencies import get_app_settings, get_translator
from .errors import install_error_handlers
from .memory import router as memory_router
from .openai import router as openai_router
from .schemas import HealthResponse
from .translator import ApiTranslator


logger = logging.getLogger(__name__)

status_router = APIRouter()


@status_router.get("/", response_model=dict)
def root(settings: Settings = Depends(get_app_settings)):
    """Root endpoint."""
    return {
        "message": "Conduit API is running",
        "version": __version__,
        "memory_dir": str(settings.memory_dir),
    }


@status_router.get("/health", response_model=HealthResponse)
def health(
    settings: Settings = Depends(get_app_settings),
    translator: ApiTranslator = Depends(get_translator),
):
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        version=__version__,
        inference_backend=settings.inference_backend,
        components=translator.status(),
        backend_models=translator.backend_models(),
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application.

    The store, the inference backend and the translator are created once
    here and shared by every request through ``app.state``.

    Args:
        settings: Settings to use; read from the environment when omitted
            (this is how uvicorn's ``factory=True`` calls it)
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    store = MemoryStore(settings.memory_dir)
    backend = create_backend(settings)
    translator = ApiTranslator(store, backend, settings)
    logger.info(
        "Memory store at %s, inference backend: %s", store.root, settings.inference_backend
    )

    app = FastAPI(
        title="Conduit API",
        description="Local-first OpenAI-shaped API backed by a markdown memory store",
        version=__version__,
    )
    app.state.settings = settings
    app.state.translator = translator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    app.include_router(status_router, tags=["status"])
    app.include_router(openai_router, prefix="/v1", tags=["openai"])
    app.include_router(memory_router, prefix="/v1", tags=["memories"])
    app.include_router(memory_router, prefix="/api", tags=["memories"])
    return app


def run():
    """Run the server with settings from the environment."""
    settings = get_settings()
    uvicorn.run(
        "conduit.api.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
    )


if __name__ == "__main__":
    run()
