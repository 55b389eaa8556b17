"""FastAPI dependencies exposing the application's backend context."""

from fastapi import Depends, Request
from supabase import AsyncClient

from src.survey.services.database.connection import BackendContext


def get_backend(request: Request) -> BackendContext:
    """Backend context owned by the running application."""
    return request.app.state.backend


async def get_backend_client(backend: BackendContext = Depends(get_backend)) -> AsyncClient:
    """
    Client for the current effective configuration.

    Raises:
        NotConfiguredError: If setup is still needed (mapped to 503 by the app)
    """
    return await backend.require_client()
