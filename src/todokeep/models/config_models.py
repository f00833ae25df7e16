"""Configuration models for todokeep.

The configuration is stored as JSON and validated through these models.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class StorageConfig(BaseModel):
    """Storage configuration."""

    path: str | None = Field(default=None, description="Store file; None uses the data dir")
    debounce_ms: int = Field(default=250, ge=0)
    write_attempts: int = Field(default=5, ge=1)
    retry_delay_ms: int = Field(default=50, ge=0)
    keep_backup: bool = Field(default=True)

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not v.strip():
            raise ValueError("path cannot be empty")
        return v.strip()


class LifecycleConfig(BaseModel):
    """Lifecycle configuration."""

    reopen_window_hours: float | None = Field(
        default=24.0, ge=0, description="None disables the reopen window"
    )


class IntegrityConfig(BaseModel):
    """Integrity subsystem configuration."""

    repair_on_startup: bool = Field(default=False)
    future_tolerance_seconds: int = Field(default=300, ge=0)
    history_size: int = Field(default=50, ge=1)
    schedule_interval_seconds: float = Field(default=3600.0, gt=0)


class OutputConfig(BaseModel):
    """Output configuration."""

    format: str = Field(default="pretty")
    color: bool = Field(default=True)


class AppConfig(BaseModel):
    """Main todokeep configuration."""

    storage: StorageConfig = Field(default_factory=StorageConfig)
    lifecycle: LifecycleConfig = Field(default_factory=LifecycleConfig)
    integrity: IntegrityConfig = Field(default_factory=IntegrityConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
