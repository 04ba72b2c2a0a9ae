""" main.py: FastAPI application entry point and runtime configuration.

This module builds the ASGI app, mounts API routers, configures CORS (Cross-Origin Resource Sharing), and exposes a
Prometheus metrics endpoint. The chat pipeline (session store, LLM service, knowledge sources, orchestrator) is built
once in the application lifespan and kept on `app.state`, so request handlers share one set of connections and the
background summary tasks are drained cleanly on shutdown. When executed directly, it starts a Uvicorn server using
host/port values from configuration.
"""

from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from config import CONFIG
from core.bootstrap import ChatComponents, build_components
from monitoring.metrics import REQUEST_COUNT
from version import __version__

# --- Router Imports ---
from api import health as health_router
from api import llm as llm_router
from api import pokemon as pokemon_router
from api import sessions as sessions_router

logger = logging.getLogger(__name__)


def create_app(components: Optional[ChatComponents] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        components (Optional[ChatComponents]): Pre-built pipeline, mainly for tests. When omitted
            the pipeline is built from CONFIG at startup.

    Returns:
        FastAPI: The configured application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.components = components or build_components(CONFIG)
        logger.info("[lifespan] Chat pipeline ready (LLM provider: %s)", app.state.components.llm.provider_name())
        try:
            yield
        finally:
            await app.state.components.aclose()
            logger.info("[lifespan] Chat pipeline shut down")

    app = FastAPI(title="PokeBuddy Chat API", version=__version__, lifespan=lifespan)

    app.include_router(health_router.router, tags=["Health"])
    app.include_router(sessions_router.router, prefix="/api", tags=["Sessions"])
    app.include_router(llm_router.router, prefix="/api", tags=["LLM"])
    app.include_router(pokemon_router.router, prefix="/api", tags=["Pokemon"])

    # Add Prometheus metrics endpoint
    app.mount("/metrics", make_asgi_app())

    @app.middleware("http")
    async def count_requests(request: Request, call_next):
        response = await call_next(request)
        route = request.scope.get("route")
        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=getattr(route, "path", request.url.path),
            status=response.status_code,
        ).inc()
        return response

    allow_origins = CONFIG.get('cors', {}).get('allow_origins', ["*"])
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


app = create_app()

if __name__ == '__main__':
    import uvicorn
    logger.info("[__main__] Starting Uvicorn server for main.py")
    uvicorn.run(
        app,
        host=CONFIG.get('server', {}).get('host', '0.0.0.0'),
        port=CONFIG.get('server', {}).get('port', 3000)
    )
