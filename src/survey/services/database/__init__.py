"""Backend client management and environment provisioning."""

from src.survey.services.database.connection import BackendContext, ClientCache, create_backend_client
from src.survey.services.database.dependencies import get_backend, get_backend_client
from src.survey.services.database.provisioning import (
    EnvironmentSetupOrchestrator,
    SetupResult,
    StepStatus,
    SupabaseSqlExecutor,
)

__all__ = [
    "BackendContext",
    "ClientCache",
    "EnvironmentSetupOrchestrator",
    "SetupResult",
    "StepStatus",
    "SupabaseSqlExecutor",
    "create_backend_client",
    "get_backend",
    "get_backend_client",
]
