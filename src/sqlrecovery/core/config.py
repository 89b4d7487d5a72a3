from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AzureConfig(BaseModel):
    subscription_id: str | None = Field(default=None, pattern="^[a-f0-9-]{36}$")
    tenant_id: str | None = Field(default=None, pattern="^[a-f0-9-]{36}$")
    client_id: str | None = None
    client_secret: SecretStr | None = None
    auth_mode: Literal[
        "auto",
        "service_principal",
        "environment",
        "azure_cli",
        "managed_identity",
    ] = "auto"
    user_assigned_identity_client_id: str | None = None
    cloud: Literal["public", "usgov", "china"] = "public"
    authority_host: str | None = None
    location: str = "eastus"

    @field_validator("location", mode="before")
    @classmethod
    def _normalize_location(cls, v: Any) -> str:
        return str(v).lower().replace(" ", "").strip() if v else "eastus"

    @field_validator("subscription_id", "tenant_id", mode="before")
    @classmethod
    def _normalize_guid(cls, v: Any) -> Any:
        if v is None:
            return None
        s = str(v).strip().lower()
        return s or None


class RecoveryConfig(BaseModel):
    settle_delay_seconds: float = Field(default=300.0, ge=0)
    restore_point_max_attempts: int = Field(default=50, ge=1)
    restore_point_interval_seconds: float = Field(default=180.0, ge=0)
    restore_safety_margin_seconds: float = Field(default=300.0, ge=0)
    dropped_database_max_attempts: int = Field(default=24, ge=1)
    dropped_database_interval_seconds: float = Field(default=300.0, ge=0)
    restored_database_tags: dict[str, str] = Field(
        default_factory=lambda: {"key1": "restorableDroppedDatabase"}
    )


class ObservabilityConfig(BaseModel):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation_size_mb: int = Field(default=10, ge=1)
    log_retention_days: int = Field(default=7, ge=1)

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, v: Any) -> Any:
        return str(v).upper() if v else "INFO"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = "SQL Recovery Runner"
    app_version: str = "1.0.0"

    azure: AzureConfig = Field(default_factory=AzureConfig)
    recovery: RecoveryConfig = Field(default_factory=RecoveryConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    # Flat CLIENT_ID style variables, folded into azure below.
    client_id: str | None = None
    client_secret: SecretStr | None = None
    tenant_id: str | None = None
    subscription_id: str | None = None

    @model_validator(mode="after")
    def apply_legacy_env(self) -> Settings:
        updates: dict[str, Any] = {}
        if self.client_id:
            updates["client_id"] = self.client_id
        if self.client_secret:
            updates["client_secret"] = self.client_secret
        if self.tenant_id:
            updates["tenant_id"] = self.tenant_id
        if self.subscription_id:
            updates["subscription_id"] = self.subscription_id
        if updates:
            merged = {**self.azure.model_dump(), **updates}
            self.azure = AzureConfig.model_validate(merged)
        if self.azure.auth_mode == "auto" and self.azure.client_secret:
            self.azure.auth_mode = "service_principal"
        return self

    def export_safe_config(self) -> dict[str, Any]:
        cfg = self.model_dump(
            exclude={"client_id", "client_secret", "tenant_id", "subscription_id"}
        )
        if cfg["azure"].get("client_secret") is not None:
            cfg["azure"]["client_secret"] = "***REDACTED***"
        return cfg


@lru_cache
def get_settings() -> Settings:
    return Settings()
