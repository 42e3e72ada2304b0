"""
Configuration Models

Pydantic models for profile workflow configuration.
"""

import json
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator


class ApiConfig(BaseModel):
    """Remote profile service connection settings."""

    base_url: str = Field(default="http://localhost:5000/api")
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=1, le=10)
    token: Optional[str] = None

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class DraftConfig(BaseModel):
    """Local draft persistence settings."""

    draft_dir: str = Field(default="drafts")
    autosave_interval_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Debounce interval between the last edit and the draft auto-save",
    )


class CompletionConfig(BaseModel):
    """Completion percentage settings.

    count_optional_phases=False leaves the optional phase (5) out of the
    denominator, so finishing phases 1-3 reads as 100%.
    """

    count_optional_phases: bool = Field(default=False)


class WorkflowParams(BaseModel):
    """Profile workflow configuration model."""

    api: ApiConfig = Field(default_factory=ApiConfig)
    drafts: DraftConfig = Field(default_factory=DraftConfig)
    completion: CompletionConfig = Field(default_factory=CompletionConfig)
    graduation_year_window: int = Field(default=10, gt=0, le=100)
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v.upper()

    def api_token(self) -> Optional[str]:
        """Bearer token from config, falling back to PORTAL_API_TOKEN in the environment/.env."""
        if self.api.token:
            return self.api.token
        load_dotenv()
        return os.getenv("PORTAL_API_TOKEN") or None

    @classmethod
    def load(cls, config_path: Path | str | None = None) -> "WorkflowParams":
        """Load workflow parameters from config file.

        Args:
            config_path: Path to workflow_params.json (defaults to config/workflow_params.json)

        Returns:
            WorkflowParams: Validated configuration

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config validation fails
        """
        if config_path is None:
            config_path = Path("config/workflow_params.json")
        else:
            config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}. "
                f"Copy {config_path.stem}.example.json to {config_path.name}"
            )

        with open(config_path, "r", encoding="utf-8") as f:
            config_data = json.load(f)

        return cls(**config_data)
