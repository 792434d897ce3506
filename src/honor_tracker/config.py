"""
Runtime settings for honor evaluation.

Values are read from environment variables prefixed with ``HONOR_`` (or a
``.env`` file) through pydantic-settings. Components take an optional
``settings`` argument and fall back to the module-level instance.
"""

from enum import Enum
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class UnconstrainedCriterionPolicy(str, Enum):
    """How to treat a criterion with every threshold unset"""
    ACCEPT = "accept"  # trivially satisfied
    SKIP = "skip"      # reported as a diagnostic, not evaluated
    REJECT = "reject"  # ConfigurationError


class HonorSettings(BaseSettings):
    # Averages are rounded to this many decimals before comparison (None = raw)
    average_precision: Optional[int] = 2

    unconstrained_criterion_policy: UnconstrainedCriterionPolicy = UnconstrainedCriterionPolicy.ACCEPT

    # Optional pass flagging grades outside the level's scale bounds
    validate_scale_bounds: bool = True

    # Roster evaluation
    batch_max_workers: int = 1
    show_progress: bool = False

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("average_precision", mode="before")
    @classmethod
    def _blank_precision(cls, v):
        if isinstance(v, str) and v.strip().lower() in ("", "none", "null"):
            return None
        return v

    @field_validator("batch_max_workers")
    @classmethod
    def _positive_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError("batch_max_workers must be at least 1")
        return v

    model_config = SettingsConfigDict(
        env_prefix="HONOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = HonorSettings()
