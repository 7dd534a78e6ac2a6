"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services stored in app.state during lifespan
    - Dependency functions retrieve from request.app.state
    - Clean separation, no global mutable state
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request

from llm_orchestrator.config import Settings, settings
from llm_orchestrator.exceptions import CacheFailure
from llm_orchestrator.handlers import GenerationHandler
from llm_orchestrator.protocols import BackendClient, CacheStore
from llm_orchestrator.repositories import (
    InMemoryCacheRepository,
    MockBackendClient,
    OllamaBackendClient,
    RedisCacheRepository,
)
from llm_orchestrator.services import LlmOrchestrator

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_orchestrator(request: Request) -> LlmOrchestrator:
    """Dependency injection for LlmOrchestrator from app.state.

    Raises:
        RuntimeError: If the orchestrator is not initialized
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise RuntimeError("LlmOrchestrator not initialized. Check lifespan setup.")
    return orchestrator


def get_handler(request: Request) -> GenerationHandler:
    """Dependency injection for GenerationHandler from app.state.

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "handler", None)
    if handler is None:
        raise RuntimeError("GenerationHandler not initialized. Check lifespan setup.")
    return handler


def build_cache_store(config: Settings) -> CacheStore:
    """Create the cache store selected by CACHE_BACKEND."""
    if config.cache_backend == "memory":
        return InMemoryCacheRepository.create()
    return RedisCacheRepository.create(key_prefix=config.cache_key_prefix)


def build_backend(config: Settings) -> BackendClient:
    """Create the LLM backend selected by LLM_BACKEND."""
    if config.llm_backend == "mock":
        return MockBackendClient()
    return OllamaBackendClient.create(model_name=config.ollama_model, base_url=config.ollama_base_url)


def build_orchestrator(config: Settings) -> LlmOrchestrator:
    """Wire the cache store, backend and resilience policies from settings."""
    return LlmOrchestrator.create(
        cache_store=build_cache_store(config),
        backend=build_backend(config),
        config=config,
    )


async def purge_periodically(orchestrator: LlmOrchestrator, interval: float) -> None:
    """Purge expired cache entries every ``interval`` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(orchestrator.purge_expired)
        except CacheFailure as e:
            logger.warning(f"Scheduled cache purge failed: {e}")


def make_lifespan(orchestrator: LlmOrchestrator | None = None, config: Settings = settings):
    """Build the lifespan context manager for the FastAPI app.

    Args:
        orchestrator: Pre-built orchestrator (tests). If None, built from config.
        config: Settings used to build components and the purge schedule.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initializes all layers and stores them in app.state.

        Cleanup:
            Cancels the purge task, closes the backend client and removes
            services from app.state on shutdown
        """
        logging.basicConfig(level=config.log_level, format=LOG_FORMAT)

        service = orchestrator or build_orchestrator(config)
        app.state.orchestrator = service
        app.state.handler = GenerationHandler(orchestrator=service)

        logger.info(
            f"Orchestrator initialized: model={service.model_name}, cache={config.cache_backend}, "
            f"ttl={service.ttl}s"
        )

        purge_task = None
        if config.cache_purge_interval > 0:
            purge_task = asyncio.create_task(purge_periodically(service, config.cache_purge_interval))

        yield

        if purge_task is not None:
            purge_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await purge_task

        close = getattr(service.backend, "close", None)
        if close is not None:
            await close()

        del app.state.handler
        del app.state.orchestrator
        logger.info("Orchestrator shut down")

    return lifespan


# Type aliases for cleaner dependency injection
HandlerDep = Annotated[GenerationHandler, Depends(get_handler)]
OrchestratorDep = Annotated[LlmOrchestrator, Depends(get_orchestrator)]
