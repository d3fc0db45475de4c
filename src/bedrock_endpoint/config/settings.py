"""Runtime settings loaded from environment variables."""

from functools import lru_cache
from typing import Annotated, Any

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

NonEmptyStr = Annotated[str, Field(min_length=1)]
PositiveFloat = Annotated[float, Field(gt=0.0)]


class Settings(BaseSettings):
    """Environment-driven settings for the translation entrypoint."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    bedrock_region: NonEmptyStr = Field(default="us-east-1", validation_alias="BEDROCK_REGION")
    bedrock_model_id: NonEmptyStr = Field(
        default="anthropic.claude-v1",
        validation_alias="BEDROCK_MODEL_ID",
    )
    bedrock_role_arn: NonEmptyStr | None = Field(
        default=None,
        validation_alias="BEDROCK_ROLE_ARN",
    )
    bedrock_stream: bool = Field(default=False, validation_alias="BEDROCK_STREAM")
    bedrock_timeout_seconds: PositiveFloat = Field(
        default=60.0,
        validation_alias="BEDROCK_TIMEOUT_SECONDS",
    )
    bedrock_endpoint_url: HttpUrl | None = Field(
        default=None,
        validation_alias="BEDROCK_ENDPOINT_URL",
    )
    bedrock_model_kwargs: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias="BEDROCK_MODEL_KWARGS",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @field_validator("bedrock_role_arn")
    @classmethod
    def _role_arn_must_be_iam_arn(cls, value: str | None) -> str | None:
        if value is not None and not value.startswith("arn:"):
            raise ValueError("BEDROCK_ROLE_ARN must be an ARN")
        return value


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Load and cache application settings."""

    return Settings()
