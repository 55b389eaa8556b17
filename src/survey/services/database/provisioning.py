"""Idempotent provisioning of the survey table for the dev and main environments."""

import asyncio
import logging
import re
from enum import Enum
from typing import Any, Protocol

import httpx
from postgrest.exceptions import APIError
from pydantic import BaseModel, ConfigDict
from supabase import AsyncClient

from src.survey.services.configuration.exceptions import ProvisioningStepError, TransientBackendError
from src.survey.services.configuration.models import (
    DEV_TABLE_NAME,
    MAIN_TABLE_NAME,
    EnvironmentLabel,
)

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")

SURVEY_INDEX_COLUMNS = (
    "created_at",
    "role",
    "industry",
    "salary_currency",
    "seniority",
    "company_type",
)

SURVEY_POLICIES = {
    "Enable read access for all users": "FOR SELECT USING (true)",
    "Enable insert access for all users": "FOR INSERT WITH CHECK (true)",
    "Enable update access for all users": "FOR UPDATE USING (true)",
    "Enable delete access for all users": "FOR DELETE USING (true)",
}


class StepStatus(str, Enum):
    """Outcome of one provisioning step."""

    APPLIED = "applied"
    ALREADY_SATISFIED = "already_satisfied"
    FAILED = "failed"


class StepResult(BaseModel):
    status: StepStatus
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is not StepStatus.FAILED


class SetupResult(BaseModel):
    """Overall and per-step outcome of an environment setup run."""

    success: bool
    environment: EnvironmentLabel
    table_name: str
    steps: dict[str, StepResult]


class ProvisioningStep(BaseModel):
    """
    One idempotent setup action.

    The step counts as satisfied when `check_sql` returns at least
    `expected_rows` rows; otherwise every statement in `apply_sql` runs.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    check_sql: str
    apply_sql: list[str]
    expected_rows: int = 1


class SqlExecutor(Protocol):
    """Runs SQL against the backend."""

    async def fetch(self, sql: str) -> list[dict[str, Any]]: ...

    async def execute(self, sql: str) -> None: ...


class SupabaseSqlExecutor:
    """
    Executes SQL through the `exec_sql` database function.

    The function must exist in the project and return query rows as JSON;
    it is called with a service-role client.
    """

    def __init__(self, client: AsyncClient, function: str = "exec_sql", timeout_seconds: float = 30.0):
        self.client = client
        self.function = function
        self.timeout_seconds = timeout_seconds

    async def fetch(self, sql: str) -> list[dict[str, Any]]:
        try:
            response = await asyncio.wait_for(
                self.client.rpc(self.function, {"sql": sql}).execute(),
                timeout=self.timeout_seconds,
            )
        except APIError as e:
            raise TransientBackendError(e.message or "SQL execution failed") from e
        except (httpx.HTTPError, TimeoutError) as e:
            raise TransientBackendError("Backend unreachable during SQL execution") from e

        data = response.data
        if data is None:
            return []
        return data if isinstance(data, list) else [data]

    async def execute(self, sql: str) -> None:
        await self.fetch(sql)


def _quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def table_name_for(is_dev: bool) -> str:
    return DEV_TABLE_NAME if is_dev else MAIN_TABLE_NAME


def build_survey_steps(table_name: str) -> list[ProvisioningStep]:
    """
    Ordered provisioning steps for a survey table.

    Args:
        table_name: Target table (lowercase SQL identifier)

    Returns:
        create_table, create_indexes, enable_row_level_security, install_policies

    Raises:
        ValueError: If `table_name` is not a plain identifier
    """
    if not _IDENTIFIER.match(table_name):
        raise ValueError(f"Invalid table name: {table_name!r}")

    table = _quote_literal(table_name)
    index_names = [f"idx_{table_name}_{column}" for column in SURVEY_INDEX_COLUMNS]
    policy_names = list(SURVEY_POLICIES)

    create_table = f"""
        CREATE TABLE IF NOT EXISTS public.{table_name} (
            id UUID DEFAULT gen_random_uuid() PRIMARY KEY,
            role TEXT,
            other_role TEXT,
            seniority TEXT,
            company_type TEXT,
            company_size TEXT,
            industry TEXT,
            product_type TEXT,
            customer_segment TEXT,
            main_challenge TEXT,
            daily_tools TEXT[],
            other_tool TEXT,
            learning_methods TEXT[],
            salary_currency TEXT DEFAULT 'ARS',
            salary_min TEXT,
            salary_max TEXT,
            salary_average TEXT,
            email TEXT,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
        );
    """

    policy_sql: list[str] = []
    for name, clause in SURVEY_POLICIES.items():
        policy_sql.append(f'DROP POLICY IF EXISTS "{name}" ON public.{table_name};')
        policy_sql.append(f'CREATE POLICY "{name}" ON public.{table_name} {clause};')

    return [
        ProvisioningStep(
            name="create_table",
            check_sql=(
                "SELECT table_name FROM information_schema.tables "
                f"WHERE table_schema = 'public' AND table_name = {table}"
            ),
            apply_sql=[create_table],
        ),
        ProvisioningStep(
            name="create_indexes",
            check_sql=(
                "SELECT indexname FROM pg_indexes "
                f"WHERE schemaname = 'public' AND tablename = {table} "
                f"AND indexname IN ({', '.join(_quote_literal(n) for n in index_names)})"
            ),
            apply_sql=[
                f"CREATE INDEX IF NOT EXISTS {index} ON public.{table_name}({column});"
                for index, column in zip(index_names, SURVEY_INDEX_COLUMNS)
            ],
            expected_rows=len(index_names),
        ),
        ProvisioningStep(
            name="enable_row_level_security",
            check_sql=(
                "SELECT c.relname FROM pg_class c "
                "JOIN pg_namespace n ON n.oid = c.relnamespace "
                f"WHERE n.nspname = 'public' AND c.relname = {table} AND c.relrowsecurity"
            ),
            apply_sql=[f"ALTER TABLE public.{table_name} ENABLE ROW LEVEL SECURITY;"],
        ),
        ProvisioningStep(
            name="install_policies",
            check_sql=(
                "SELECT policyname FROM pg_policies "
                f"WHERE schemaname = 'public' AND tablename = {table} "
                f"AND policyname IN ({', '.join(_quote_literal(n) for n in policy_names)})"
            ),
            apply_sql=policy_sql,
            expected_rows=len(policy_names),
        ),
    ]


class EnvironmentSetupOrchestrator:
    """
    Provisions the survey table for a target environment step by step.

    Every step is create-if-not-exists, so re-running on a partially
    provisioned environment is safe. A failed step is recorded and the
    remaining steps still run; nothing is rolled back.

    Example:
        >>> orchestrator = EnvironmentSetupOrchestrator(SupabaseSqlExecutor(admin_client))
        >>> result = await orchestrator.setup_environment(is_dev=True)
        >>> result.steps["create_table"].status
        <StepStatus.ALREADY_SATISFIED: 'already_satisfied'>
    """

    def __init__(self, executor: SqlExecutor):
        self.executor = executor

    async def setup_environment(self, is_dev: bool) -> SetupResult:
        label = EnvironmentLabel.DEV if is_dev else EnvironmentLabel.MAIN
        table_name = table_name_for(is_dev)
        logger.info(f"Starting {label.value} environment setup for {table_name}")

        steps: dict[str, StepResult] = {}
        for step in build_survey_steps(table_name):
            steps[step.name] = await self._run_step(step)

        success = all(result.succeeded for result in steps.values())
        logger.info(
            f"{label.value} environment setup finished",
            extra={
                "success": success,
                "table_name": table_name,
                "steps": {name: result.status.value for name, result in steps.items()},
            },
        )
        return SetupResult(success=success, environment=label, table_name=table_name, steps=steps)

    async def _run_step(self, step: ProvisioningStep) -> StepResult:
        try:
            rows = await self.executor.fetch(step.check_sql)
            if len(rows) >= step.expected_rows:
                return StepResult(status=StepStatus.ALREADY_SATISFIED)
        except TransientBackendError as e:
            logger.warning(f"Check for step '{step.name}' failed, applying anyway: {e}")

        try:
            for sql in step.apply_sql:
                await self.executor.execute(sql)
        except TransientBackendError as e:
            error = ProvisioningStepError(step.name, str(e))
            logger.error(f"Provisioning step failed: {error}", extra={"step": step.name})
            return StepResult(status=StepStatus.FAILED, error=str(error))

        return StepResult(status=StepStatus.APPLIED)

    async def check_table_exists(self, table_name: str) -> bool:
        """Read-only probe; backend errors count as "does not exist"."""
        check = build_survey_steps(table_name)[0]
        try:
            return len(await self.executor.fetch(check.check_sql)) > 0
        except TransientBackendError as e:
            logger.warning(f"Error checking table {table_name}: {e}")
            return False

    async def check_dev_table_exists(self) -> bool:
        return await self.check_table_exists(DEV_TABLE_NAME)

    async def check_main_table_exists(self) -> bool:
        return await self.check_table_exists(MAIN_TABLE_NAME)
