from typing import Any

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from llm_orchestrator.api.dependencies import HandlerDep, OrchestratorDep, make_lifespan
from llm_orchestrator.config import Settings, settings
from llm_orchestrator.dto import (
    CacheStatsResponse,
    GenerateRequest,
    GenerateResponse,
    HealthCheckResponse,
    PurgeResponse,
)
from llm_orchestrator.services import LlmOrchestrator

API_TITLE = "LLM Orchestrator API"
API_VERSION = "0.1.0"


def create_app(orchestrator: LlmOrchestrator | None = None, config: Settings = settings) -> FastAPI:
    """Create the FastAPI application.

    Args:
        orchestrator: Pre-built orchestrator. If None, one is built from config
            when the app starts.
        config: Application settings.

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title=API_TITLE,
        description="Cache-aware LLM generation with rate limiting and circuit breaking",
        version=API_VERSION,
        lifespan=make_lifespan(orchestrator, config),
    )

    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "name": API_TITLE,
            "version": API_VERSION,
            "endpoints": {
                "generate": "/generate",
                "cache_stats": "/admin/cache/stats",
                "cache_purge": "/admin/cache",
                "metrics": "/admin/metrics",
                "health": "/health",
                "docs": "/docs",
            },
        }

    @app.post("/generate", response_model=GenerateResponse)
    async def generate(request: GenerateRequest, response: Response, handler: HandlerDep) -> GenerateResponse:
        """
        Generate a completion, served from cache when an equivalent request was answered.

        The response body always carries the outcome status; the HTTP status
        code mirrors it (429 rate limited, 503 circuit open, 502 backend error).
        """
        body, status_code = await handler.generate(request)
        response.status_code = status_code
        return body

    @app.get("/admin/cache/stats", response_model=CacheStatsResponse)
    async def cache_stats(handler: HandlerDep) -> CacheStatsResponse:
        """Get cache statistics."""
        return await handler.get_stats()

    @app.delete("/admin/cache", response_model=PurgeResponse)
    async def purge_cache(handler: HandlerDep) -> PurgeResponse:
        """Delete expired cache entries."""
        return await handler.purge_expired()

    @app.get("/admin/metrics", response_model=dict[str, Any])
    async def metrics(orchestrator: OrchestratorDep) -> dict[str, Any]:
        """Snapshot of process-wide counters and timers."""
        to_dict = getattr(orchestrator.metrics, "to_dict", None)
        return to_dict() if to_dict is not None else {}

    @app.get("/health", response_model=HealthCheckResponse)
    async def health(response: Response, handler: HandlerDep) -> HealthCheckResponse:
        """Health check endpoint."""
        result = await handler.health_check()
        if result.status != "healthy":
            response.status_code = 503
        return result

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "llm_orchestrator.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
