"""Application configuration using pydantic-settings."""

from __future__ import annotations

import json
from enum import Enum
from functools import lru_cache
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode


# Read from the environment as a JSON array or a comma-separated string
StringList = Annotated[list[str], NoDecode]


class ToolMode(str, Enum):
    SHELL = "shell"
    SIMULATED = "simulated"


class StateSettings(BaseSettings):
    """Where the deployment state lives."""

    path: str = Field(default=".deploy/state.json", alias="DEPLOY_STATE_FILE")
    report_dir: str | None = Field(default=None, alias="DEPLOY_REPORT_DIR")

    model_config = {"env_prefix": "DEPLOY_STATE_", "extra": "ignore", "populate_by_name": True}


class GateSettings(BaseSettings):
    """Inputs for the pre- and post-deployment gates."""

    required_env_vars: StringList = Field(default_factory=list, alias="DEPLOY_REQUIRED_ENV_VARS")
    approved_migrations: StringList = Field(
        default_factory=list, alias="DEPLOY_APPROVED_MIGRATIONS"
    )
    base_url: str | None = Field(default=None, alias="DEPLOY_BASE_URL")
    health_path: str = Field(default="/api/health", alias="DEPLOY_HEALTH_PATH")
    smoke_paths: StringList = Field(default_factory=lambda: ["/"], alias="DEPLOY_SMOKE_PATHS")
    max_response_time_ms: float = Field(default=500.0, alias="DEPLOY_MAX_RESPONSE_TIME_MS")
    performance_samples: int = Field(default=5, alias="DEPLOY_PERFORMANCE_SAMPLES")
    blocking_severities: StringList = Field(
        default_factory=lambda: ["critical"], alias="DEPLOY_BLOCKING_SEVERITIES"
    )

    @field_validator(
        "required_env_vars", "approved_migrations", "smoke_paths", "blocking_severities",
        mode="before",
    )
    @classmethod
    def split_list(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        text = value.strip()
        if text.startswith("["):
            return json.loads(text)
        return [item.strip() for item in text.split(",") if item.strip()]

    model_config = {"env_prefix": "DEPLOY_GATE_", "extra": "ignore", "populate_by_name": True}


class ToolSettings(BaseSettings):
    """Commands for the external build, migration, deploy and backup tools."""

    mode: ToolMode = Field(default=ToolMode.SHELL, alias="DEPLOY_TOOL_MODE")
    workdir: str = Field(default=".", alias="DEPLOY_WORKDIR")
    command_timeout: int = Field(default=1800, alias="DEPLOY_COMMAND_TIMEOUT")
    build_command: str | None = Field(default=None, alias="DEPLOY_BUILD_COMMAND")
    artifact_path: str | None = Field(default=None, alias="DEPLOY_ARTIFACT_PATH")
    migrations_dir: str = Field(default="migrations", alias="DEPLOY_MIGRATIONS_DIR")
    migration_status_command: str | None = Field(
        default=None, alias="DEPLOY_MIGRATION_STATUS_COMMAND"
    )
    migrate_command: str | None = Field(default=None, alias="DEPLOY_MIGRATE_COMMAND")
    deploy_command: str | None = Field(default=None, alias="DEPLOY_DEPLOY_COMMAND")
    current_version_command: str | None = Field(
        default=None, alias="DEPLOY_CURRENT_VERSION_COMMAND"
    )
    revert_command: str | None = Field(default=None, alias="DEPLOY_REVERT_COMMAND")
    backup_command: str | None = Field(default=None, alias="DEPLOY_BACKUP_COMMAND")
    restore_command: str | None = Field(default=None, alias="DEPLOY_RESTORE_COMMAND")
    staging_backup: bool = Field(default=False, alias="DEPLOY_STAGING_BACKUP")
    diff_base_ref: str = Field(default="origin/main", alias="DEPLOY_DIFF_BASE_REF")
    dependency_audit_report: str | None = Field(
        default=None, alias="DEPLOY_DEPENDENCY_AUDIT_REPORT"
    )
    http_timeout: float = Field(default=10.0, alias="DEPLOY_HTTP_TIMEOUT")

    model_config = {"env_prefix": "DEPLOY_TOOL_", "extra": "ignore", "populate_by_name": True}


class RollbackSettings(BaseSettings):
    """Retry policy for rollback steps."""

    max_attempts: int = Field(default=3, alias="DEPLOY_ROLLBACK_MAX_ATTEMPTS")
    backoff_seconds: float = Field(default=1.0, alias="DEPLOY_ROLLBACK_BACKOFF_SECONDS")

    model_config = {"env_prefix": "DEPLOY_ROLLBACK_", "extra": "ignore", "populate_by_name": True}


class ObservabilitySettings(BaseSettings):
    """Observability configuration."""

    service_name: str = Field(default="saas-deployer", alias="SERVICE_NAME")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    json_logs: bool = Field(default=True, alias="DEPLOY_JSON_LOGS")
    metrics_textfile: str | None = Field(default=None, alias="DEPLOY_METRICS_TEXTFILE")
    tracing_enabled: bool = Field(default=False, alias="TRACING_ENABLED")

    model_config = {"env_prefix": "OBS_", "extra": "ignore", "populate_by_name": True}


class Settings(BaseSettings):
    """Main application settings."""

    state: StateSettings = Field(default_factory=StateSettings)
    gates: GateSettings = Field(default_factory=GateSettings)
    tools: ToolSettings = Field(default_factory=ToolSettings)
    rollback: RollbackSettings = Field(default_factory=RollbackSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    model_config = {"env_prefix": "", "extra": "ignore", "populate_by_name": True}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
