"""
Runtime settings for the federation router.
Loaded from the environment (prefix ``FEDERATION_``) and an optional ``.env`` file.
"""
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DatabaseSchemas, PaginationDefaults, ProviderTypes


class FederationSettings(BaseSettings):
    """Settings consumed by the registry, merge engine and bundled backends."""

    model_config = SettingsConfigDict(
        env_prefix="FEDERATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Rows fetched per call while consuming the global offset
    skip_batch_size: int = Field(default=PaginationDefaults.SKIP_BATCH_SIZE)

    descriptor_schema: str = Field(default=DatabaseSchemas.ADMIN)
    user_storage_provider_type: str = Field(default=ProviderTypes.USER_STORAGE)

    # External directory adapters
    keycloak_timeout: int = Field(default=30)
    keycloak_verify_ssl: bool = Field(default=True)

    @field_validator("skip_batch_size")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("skip_batch_size must be a positive integer")
        return v

    @field_validator("descriptor_schema")
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v == DatabaseSchemas.ADMIN or v.startswith(DatabaseSchemas.TENANT_PREFIX):
            return v
        raise ValueError(f"Invalid descriptor schema: {v}")


@lru_cache()
def get_settings() -> FederationSettings:
    """Get cached federation settings."""
    return FederationSettings()
