"""Request and response schemas for the setup flow."""

from pydantic import BaseModel, Field

from src.survey.services.configuration.models import EnvironmentLabel

URL_PATTERN = r"^https?://[^\s/]+"


class ConnectionTestRequest(BaseModel):
    """Credentials to test before committing them."""

    supabase_url: str = Field(pattern=URL_PATTERN)
    supabase_key: str = Field(min_length=1)
    ttl_seconds: int | None = Field(
        default=None, gt=0, le=3600, description="How long the tested credentials stay usable"
    )


class ConnectionTestResponse(BaseModel):
    success: bool
    message: str
    expires_at: int | None = None  # ms epoch


class SaveConfigRequest(BaseModel):
    """
    Configuration to commit.

    When URL and key are omitted, the credentials stored by the last
    successful connection test are used.
    """

    supabase_url: str | None = Field(default=None, pattern=URL_PATTERN)
    supabase_key: str | None = Field(default=None, min_length=1)
    app_name: str | None = None
    public_url: str | None = None
    environment: EnvironmentLabel | None = None


class SaveConfigResponse(BaseModel):
    success: bool
    message: str
    saved_to: list[str]


class ClearConfigRequest(BaseModel):
    environment: EnvironmentLabel | None = None


class ClearConfigResponse(BaseModel):
    success: bool
    message: str
    cleared: list[str]
