"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

import shlex
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Rust's Steam app id; the workshop content path is keyed by it.
DEFAULT_APP_ID = "252490"

# SteamCMD writes in-progress downloads to these paths inside an install dir.
STAGING_SUBDIRS = (
    "steamapps/workshop/downloads",
    "steamapps/workshop/temp",
    "steamapps/downloading",
)


class EngineConfig(BaseModel):
    """A validated configuration model for the download engine."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # External tool
    tool_command: str = "steamcmd"
    app_id: str = DEFAULT_APP_ID
    login: str = "anonymous"

    # Files and directories
    ids_file: str = "ImportedSkins.json"
    shared_root: str = "rust_workshop"
    instances_root: str = "instances"
    log_dir: str = "logs"
    scripts_dir: str = "temp_scripts"
    failed_ids_file: str = "failed_ids.txt"
    report_file: str = "download_report.txt"

    # Concurrency, timing and retries
    max_instances: int = 2
    base_timeout_per_item: float = 90.0
    status_poll_interval: float = 0.5
    max_retry_passes: int = 3
    rate_limit_backoff: float = 30.0
    max_backoff: float = 600.0

    # Work-set policy
    skip_existing: bool = True
    only_failed: bool = False

    # Logging
    json_events: bool = False

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    @field_validator("tool_command")
    @classmethod
    def validate_tool_command(cls, v: str) -> str:
        """Ensures the tool command is present and can be tokenised."""
        try:
            argv = shlex.split(v)
        except ValueError as e:
            raise ValueError(f"Tool command cannot be parsed: {e}") from e
        if not argv:
            raise ValueError("Tool command cannot be empty.")
        return v

    @field_validator("app_id")
    @classmethod
    def validate_app_id(cls, v: str) -> str:
        if not v.isdigit():
            raise ValueError(f"App ID must be numeric, but got: {v}")
        return v

    @field_validator("login")
    @classmethod
    def validate_login(cls, v: str) -> str:
        if not v:
            raise ValueError("Login cannot be empty (use 'anonymous').")
        return v

    @field_validator("max_instances")
    @classmethod
    def validate_instances(cls, v: int) -> int:
        """Ensures a reasonable number of parallel SteamCMD instances."""
        if v < 1 or v > 16:
            raise ValueError("Max instances must be between 1 and 16.")
        return v

    @field_validator("base_timeout_per_item", "status_poll_interval")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timing values must be greater than zero.")
        return v

    @field_validator("max_retry_passes")
    @classmethod
    def validate_retry_passes(cls, v: int) -> int:
        if v < 0 or v > 10:
            raise ValueError("Max retry passes must be between 0 and 10.")
        return v

    @field_validator("rate_limit_backoff", "max_backoff")
    @classmethod
    def validate_backoff(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Backoff values cannot be negative.")
        return v

    @model_validator(mode="after")
    def validate_backoff_bounds(self) -> "EngineConfig":
        if self.max_backoff < self.rate_limit_backoff:
            raise ValueError("max_backoff cannot be lower than rate_limit_backoff.")
        return self

    @property
    def tool_argv(self) -> list[str]:
        return shlex.split(self.tool_command)

    @property
    def retry_instances(self) -> int:
        """Retry passes run with half the slots to relieve contention."""
        return max(1, self.max_instances // 2)

    @property
    def total_passes(self) -> int:
        return self.max_retry_passes + 1

    def path(self, key: str) -> Path:
        """Returns one of the configured file/directory settings as a Path."""
        return Path(getattr(self, key)).expanduser()

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
