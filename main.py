"""Main FastAPI application for the Solution Relay.

Accepts a base64-encoded image on POST /generate-solution, forwards it with a
fixed prompt to the Gemini API and returns the extracted answer text.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from solution_relay.api.routers import generate_solution
from solution_relay.config import (
    CORS_ALLOW_HEADERS,
    CORS_ALLOW_METHODS,
    RelayConfig,
    get_cors_origins,
    get_log_level,
    load_config,
)
from solution_relay.services.relay_pipeline import RelayPipeline
from solution_relay.upstream.gemini import GeminiClient

# Load .env before reading any environment-driven settings
load_dotenv()

# Configure logging
logging.basicConfig(
    level=get_log_level(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def create_http_client() -> httpx.AsyncClient:
    """
    Create the shared outbound HTTP client.

    The pool has no connection cap, so slow upstream calls never queue
    other requests behind them.
    """
    return httpx.AsyncClient(
        limits=httpx.Limits(max_connections=None, max_keepalive_connections=20),
    )


def create_app(
    config: Optional[RelayConfig] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Relay configuration; loaded from the config file at startup if omitted
        http_client: Outbound HTTP client; created (and closed) by the app if omitted

    Returns:
        Configured FastAPI app
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Load configuration and wire the relay pipeline (startup and shutdown)."""
        logger.info("Starting up application...")

        # A configuration error here aborts startup
        cfg = config or load_config()
        owns_client = http_client is None
        client = http_client or create_http_client()

        try:
            gemini = GeminiClient(
                api_key=cfg.gemini_api_key,
                http_client=client,
                model=cfg.gemini_model,
                base_url=cfg.gemini_base_url,
                timeout=cfg.upstream_timeout_seconds,
            )
            app.state.config = cfg
            app.state.pipeline = RelayPipeline(cfg.gemini_api_key, gemini)
            logger.info(
                f"Relay ready: model={cfg.gemini_model} "
                f"timeout={cfg.upstream_timeout_seconds:g}s"
            )

            yield  # Application runs here

        finally:
            logger.info("Shutting down application...")
            if owns_client:
                await client.aclose()
            logger.info("Shutdown complete")

    app = FastAPI(
        title="Solution Relay API",
        description="Relays images to Gemini and returns step-by-step HTML solutions",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(),
        allow_methods=CORS_ALLOW_METHODS,
        allow_headers=CORS_ALLOW_HEADERS,
    )

    app.include_router(generate_solution.router)

    @app.get("/readiness")
    async def readiness():
        """Readiness check endpoint."""
        return Response(status_code=200)

    return app


app = create_app()


if __name__ == "__main__":
    import sys

    import uvicorn

    from solution_relay.config import ConfigError

    try:
        relay_config = load_config()
    except ConfigError as e:
        logger.critical(f"Failed to load config: {e}")
        sys.exit(1)

    logger.info(f"Starting server on port {relay_config.server_port}")
    uvicorn.run(create_app(relay_config), host="0.0.0.0", port=relay_config.server_port)
