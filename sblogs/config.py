"""
Configuration for the log viewer

Values come from the environment (optionally a .env file) under the
SBLOGS_ prefix and are validated by a pydantic model.
"""
import os
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "SBLOGS_"


class ScrollbackSettings(BaseModel):
    page_size: int = Field(500, gt=0)
    max_buffer_entries: int = Field(20000, gt=0)
    prefetch_pages_ahead: int = Field(10, ge=0)
    prefetch_lead_viewports: int = Field(5, ge=0)
    viewports_to_keep: int = Field(10, gt=0)
    min_trim_entries: int = Field(100, ge=0)
    follow_interval: float = Field(0.5, gt=0)
    fetch_timeout: float = Field(10.0, gt=0)
    service_filters: List[str] = Field(default_factory=lambda: ["saltbox_managed_"])
    log_directory: str = "app_log"
    log_level: str = "INFO"

    @field_validator("service_filters", mode="before")
    @classmethod
    def split_filters(cls, value):
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, value: str) -> str:
        return value.upper()


def load_settings(env_file: str = None) -> ScrollbackSettings:
    """
    Build settings from SBLOGS_* environment variables

    Args:
        env_file: Optional .env path (default: search from the working directory)

    Returns:
        Validated ScrollbackSettings

    Raises:
        pydantic.ValidationError: If a variable has an invalid value
    """
    load_dotenv(env_file)

    values = {}
    for name in ScrollbackSettings.model_fields:
        raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
        if raw is not None:
            values[name] = raw

    # SBLOGS_LOG_DIR is the documented short form
    log_dir = os.getenv(f"{ENV_PREFIX}LOG_DIR")
    if log_dir is not None:
        values.setdefault("log_directory", log_dir)

    return ScrollbackSettings(**values)
