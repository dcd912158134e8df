"""
Shared configuration management for the chain-data REST API.
"""

from typing import Annotated, List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="API_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")


class RestConfig(BaseConfig):
    """REST entry point settings, read once at startup."""

    service_name: str = "rest"

    # Listener
    rest_enabled: bool = Field(default=True, validation_alias=AliasChoices("rest_enabled", "API_REST_IS_ENABLED"))
    rest_host: str = Field(default="0.0.0.0")
    rest_port: int = Field(default=3001, ge=0, le=65535)

    # Rate limiting
    rate_limiter_enabled: bool = Field(default=False, validation_alias=AliasChoices("rate_limiter_enabled", "API_RATE_LIMITER_IS_ENABLED"))
    rate_limiter_window_ms: int = Field(default=60_000, gt=0)
    rate_limiter_max: int = Field(default=1000, gt=0)
    rate_limiter_redis_url: Optional[str] = Field(default=None)
    trust_proxy: bool = Field(default=False)

    # Sub-systems
    json_rpc_enabled: bool = Field(default=False, validation_alias=AliasChoices("json_rpc_enabled", "API_JSON_RPC_IS_ENABLED"))

    # Credentials
    api_keys: Annotated[List[str], NoDecode] = Field(default_factory=list, validation_alias=AliasChoices("api_keys", "API_KEYS"))
    admin_api_keys: Annotated[List[str], NoDecode] = Field(default_factory=list, validation_alias=AliasChoices("admin_api_keys", "API_ADMIN_KEYS"))

    # Request / response handling
    json_body_limit_bytes: int = Field(default=100 * 1024, gt=0)
    gzip_minimum_size: int = Field(default=1024, ge=0)

    @field_validator("api_keys", "admin_api_keys", mode="before")
    @classmethod
    def _split_keys(cls, value):
        """Accept comma separated strings as well as lists."""
        if value is None:
            return []
        if isinstance(value, str):
            return [key.strip() for key in value.split(",") if key.strip()]
        return list(value)

    @property
    def rate_limiter_params(self) -> dict:
        return {
            "window_ms": self.rate_limiter_window_ms,
            "max": self.rate_limiter_max,
            "standard_headers": True,
            "legacy_headers": False,
        }


def get_config(**overrides) -> RestConfig:
    """Load the REST configuration from the environment.

    Keyword overrides take precedence over environment values, which is how
    tests build isolated configurations.
    """
    return RestConfig(**overrides)
