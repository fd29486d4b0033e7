"""Configuration management for portree."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .ports.allocator import DEFAULT_BASE_PORT, DEFAULT_BASE_PORTS, DEFAULT_ZONE_SIZE


class PortreeSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    repo_path: Path = Field(default=Path("."), validation_alias="PORTREE_REPO_PATH")
    git_path: str | None = Field(default=None, validation_alias="PORTREE_GIT_PATH")
    log_level: str = Field(default="INFO", validation_alias="PORTREE_LOG_LEVEL")
    base_ports: dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_BASE_PORTS), validation_alias="PORTREE_BASE_PORTS"
    )
    zone_size: int = Field(default=DEFAULT_ZONE_SIZE, validation_alias="PORTREE_ZONE_SIZE")
    max_offset: int | None = Field(default=None, validation_alias="PORTREE_MAX_OFFSET")
    default_base_port: int = Field(default=DEFAULT_BASE_PORT, validation_alias="PORTREE_DEFAULT_BASE_PORT")
    default_base_ref: str = Field(default="origin/main", validation_alias="PORTREE_DEFAULT_BASE_REF")
    worktrees_dir: Path = Field(default=Path("worktrees"), validation_alias="PORTREE_WORKTREES_DIR")
    env_file_name: str = Field(default=".env.local", validation_alias="PORTREE_ENV_FILE")
    recents_path: Path = Field(
        default=Path("~/.portree/recent.yaml"), validation_alias="PORTREE_RECENTS_PATH"
    )
    service_patterns_path: Path | None = Field(default=None, validation_alias="PORTREE_SERVICE_PATTERNS")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "PORTREE_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("zone_size")
    @classmethod
    def _validate_zone_size(cls, value: int) -> int:
        if value < 1:
            raise ValueError("PORTREE_ZONE_SIZE must be >= 1")
        return value

    @field_validator("base_ports")
    @classmethod
    def _validate_base_ports(cls, value: dict[str, int]) -> dict[str, int]:
        for service_type, port in value.items():
            if not 0 < port < 65536:
                raise ValueError(f"Base port for '{service_type}' must be between 1 and 65535")
        return {service_type.strip().lower(): port for service_type, port in value.items()}

    @model_validator(mode="after")
    def _check_zone_spacing(self) -> "PortreeSettings":
        ordered = sorted(self.base_ports.items(), key=lambda item: item[1])
        for (low_type, low), (high_type, high) in zip(ordered, ordered[1:]):
            if high - low < self.zone_size:
                raise ValueError(
                    f"Port zones for '{low_type}' ({low}) and '{high_type}' ({high}) overlap; "
                    f"base ports must be at least {self.zone_size} apart"
                )
        return self


@lru_cache(maxsize=1)
def get_settings() -> PortreeSettings:
    """Return cached settings instance."""

    settings = PortreeSettings()
    settings.repo_path = settings.repo_path.expanduser().resolve()
    settings.recents_path = settings.recents_path.expanduser()
    if settings.service_patterns_path is not None:
        settings.service_patterns_path = settings.service_patterns_path.expanduser().resolve()
    return settings


__all__ = ["PortreeSettings", "get_settings"]
