"""FastAPI dependencies shared by the routers."""

from fastapi import Request

from aiwe.application.engine import AiweEngine


def get_engine(request: Request) -> AiweEngine:
    """Return the engine created at application startup."""
    return request.app.state.engine
