from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Loaded once at startup and passed down explicitly; never mutated afterwards.
    model_config = SettingsConfigDict(env_file=None, extra="ignore", frozen=True)

    # Runtime
    environment: str = Field(default="development", validation_alias="NODE_ENV")
    port: int = Field(default=5000, validation_alias="PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # Service metadata (served by /api/info)
    app_name: str = Field(default="hcm-feed-admin", validation_alias="APP_NAME")
    app_version: str = Field(default="1.0.0", validation_alias="APP_VERSION")
    app_description: str = Field(
        default="Administration API for HCM integration feed records",
        validation_alias="APP_DESCRIPTION",
    )

    # CORS / Frontend
    frontend_url: str | None = Field(default=None, validation_alias="FRONTEND_URL")
    frontend_urls: str | None = Field(default=None, validation_alias="FRONTEND_URLS")

    # AWS / data
    aws_region: str = Field(default="us-east-1", validation_alias="AWS_REGION")
    ddb_table_name: str | None = Field(default=None, validation_alias="TABLE_NAME")
    # Point at DynamoDB Local (e.g. http://localhost:8000) for development.
    ddb_endpoint_url: str | None = Field(default=None, validation_alias="DYNAMODB_ENDPOINT")
    ddb_published_index: str = Field(
        default="PublishedIndex", validation_alias="DDB_PUBLISHED_INDEX"
    )
    # Application-level attempts per DynamoDB call. 1 means storage errors
    # propagate on first failure; botocore still applies its own retries.
    ddb_max_attempts: int = Field(default=1, validation_alias="DDB_MAX_ATTEMPTS")
    ddb_client_max_attempts: int = Field(default=3, validation_alias="DDB_CLIENT_MAX_ATTEMPTS")

    # Listing
    default_page_limit: int = Field(default=50, validation_alias="DEFAULT_PAGE_LIMIT")
    # Optional cap on `limit`; unset means any positive integer is accepted.
    max_page_limit: int | None = Field(default=None, validation_alias="MAX_PAGE_LIMIT")
    filter_overfetch_factor: int = Field(default=20, validation_alias="FILTER_OVERFETCH_FACTOR")

    # Auth (Cognito)
    cognito_user_pool_id: str | None = Field(
        default=None, validation_alias="COGNITO_USER_POOL_ID"
    )
    cognito_app_client_id: str | None = Field(
        default=None, validation_alias="COGNITO_APP_CLIENT_ID"
    )
    cognito_region: str | None = Field(default=None, validation_alias="COGNITO_REGION")
    cognito_token_use: str = Field(default="id", validation_alias="COGNITO_TOKEN_USE")
    # Only honoured when running in development.
    disable_auth: bool = Field(default=False, validation_alias="DISABLE_AUTH")

    # ---- helpers / derived flags ----
    @property
    def normalized_environment(self) -> str:
        v = (self.environment or "").strip().lower()
        if v in ("prod", "production"):
            return "production"
        if v in ("stage", "staging"):
            return "staging"
        if v in ("dev", "development", "local"):
            return "development"
        return v or "development"

    @property
    def is_production(self) -> bool:
        return self.normalized_environment == "production"

    @property
    def is_development(self) -> bool:
        return self.normalized_environment == "development"

    @property
    def auth_disabled(self) -> bool:
        return bool(self.disable_auth) and self.is_development

    @property
    def cognito_configured(self) -> bool:
        return bool(self.cognito_user_pool_id and self.cognito_app_client_id)

    def require_in_production(self) -> None:
        """Production needs a table and a Cognito pool; other envs may run without."""
        if not self.is_production:
            return

        missing: list[str] = []

        if not self.ddb_table_name:
            missing.append("TABLE_NAME")
        if not self.cognito_user_pool_id:
            missing.append("COGNITO_USER_POOL_ID")
        if not self.cognito_app_client_id:
            missing.append("COGNITO_APP_CLIENT_ID")

        if missing:
            raise RuntimeError(
                "Missing required production environment variables: "
                + ", ".join(missing)
            )

    def to_log_safe_dict(self) -> dict[str, object]:
        """
        Settings summary for startup logs. Never include secrets, only whether
        optional integrations are configured.
        """

        def _has(v: object) -> bool:
            return bool(str(v or "").strip())

        return {
            "environment": self.normalized_environment,
            "port": self.port,
            "log_level": self.log_level,
            "aws_region": self.aws_region,
            "ddb": {
                "table_name": self.ddb_table_name if _has(self.ddb_table_name) else None,
                "endpoint_url": self.ddb_endpoint_url if _has(self.ddb_endpoint_url) else None,
                "published_index": self.ddb_published_index,
                "max_attempts": self.ddb_max_attempts,
            },
            "listing": {
                "default_page_limit": self.default_page_limit,
                "max_page_limit": self.max_page_limit,
                "filter_overfetch_factor": self.filter_overfetch_factor,
            },
            "auth": {
                "cognito_user_pool_configured": _has(self.cognito_user_pool_id),
                "cognito_app_client_configured": _has(self.cognito_app_client_id),
                "token_use": self.cognito_token_use,
                "disabled": self.auth_disabled,
            },
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    s = Settings()
    s.require_in_production()
    return s
