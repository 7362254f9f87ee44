import os
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from aiwe.api.routes import execution, health, sessions
from aiwe.application.engine import AiweEngine
from aiwe.application.factory import EngineFactory

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI startup/shutdown events."""
    owns_engine = getattr(app.state, "engine", None) is None
    if owns_engine:
        profile = os.getenv("AIWE_PROFILE", "dev")
        app.state.engine = EngineFactory(
            config_dir=os.getenv("AIWE_CONFIG_DIR", "configs")
        ).create_engine(profile=profile)

    await logger.ainfo("fastapi.startup", message="AIWE API starting...")
    yield
    await logger.ainfo("fastapi.shutdown", message="AIWE API shutting down...")

    close = getattr(app.state.engine.transport, "close", None)
    if owns_engine and close is not None:
        await close()


def create_app(engine: Optional[AiweEngine] = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        engine: Engine to serve; built from the AIWE_PROFILE profile at
            startup if omitted
    """

    app = FastAPI(
        title="AIWE API",
        description="Natural-language action execution across third-party services",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.engine = engine

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure based on environment
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(execution.router, prefix="/api", tags=["execution"])
    app.include_router(sessions.router, prefix="/api", tags=["sessions"])
    app.include_router(health.router, prefix="/api", tags=["health"])

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=3001)
