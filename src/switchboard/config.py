"""Typed configuration models for Switchboard.

Provides Pydantic validation for config.toml, catching typos, wrong types,
and invalid values at startup rather than at routing time.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from switchboard.models.backend import BackendConfig

log = logging.getLogger(__name__)


class ScoringWeights(BaseModel):
    """Relative weight of each ranking axis in the composite score."""

    cost: float = Field(default=0.3, ge=0.0)
    latency: float = Field(default=0.3, ge=0.0)
    confidence: float = Field(default=0.4, ge=0.0)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_not_all_zero(self) -> ScoringWeights:
        if self.cost + self.latency + self.confidence <= 0:
            raise ValueError("at least one scoring weight must be positive")
        return self


class RouterSettings(BaseModel):
    learning_rate: float = Field(default=0.1, gt=0.0, le=1.0)
    default_success_rate: float = Field(default=0.8, ge=0.0, le=1.0)
    invoke_timeout_seconds: float = Field(default=30.0, gt=0)
    health_timeout_seconds: float = Field(default=10.0, gt=0)
    weights: ScoringWeights = Field(default_factory=ScoringWeights)


class RuntimeConfig(BaseModel):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_json: bool = False
    log_dir: str | None = None
    module_levels: dict[str, str] | None = None


class HistoryConfig(BaseModel):
    db_path: str | None = None
    window_days: int = Field(default=7, gt=0)
    flush_interval_seconds: float = Field(default=30.0, gt=0)


class SwitchboardConfig(BaseModel):
    """Root configuration model for config.toml."""

    router: RouterSettings = Field(default_factory=RouterSettings)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    backends: list[BackendConfig] = Field(default_factory=list)

    model_config = {"extra": "allow"}

    @model_validator(mode="after")
    def check_unique_backend_ids(self) -> SwitchboardConfig:
        seen: set[str] = set()
        for b in self.backends:
            if b.id in seen:
                raise ValueError(f"duplicate backend id: {b.id}")
            seen.add(b.id)
        return self


def load_config(path: Path | None = None) -> SwitchboardConfig:
    """Load and validate config.toml, returning typed SwitchboardConfig.

    Missing file or sections are filled with defaults.
    Raises pydantic.ValidationError on invalid values.
    """
    config_path = path or Path("config.toml")
    raw: dict[str, Any] = {}

    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    config = SwitchboardConfig.model_validate(raw)
    log.debug(
        "config.loaded path=%s backends=%d learning_rate=%.2f weights=%s/%s/%s",
        config_path,
        len(config.backends),
        config.router.learning_rate,
        config.router.weights.cost,
        config.router.weights.latency,
        config.router.weights.confidence,
    )
    return config
