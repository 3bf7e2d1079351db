"""Switchboard: cost-, latency- and quality-aware routing across AI backends."""

from switchboard.config import ScoringWeights, SwitchboardConfig, load_config
from switchboard.errors import (
    BackendError,
    ConfigurationError,
    NoProviderAvailableError,
    SwitchboardError,
)
from switchboard.runtime.router import BackendStatus, Router

__all__ = [
    "BackendError",
    "BackendStatus",
    "ConfigurationError",
    "NoProviderAvailableError",
    "Router",
    "ScoringWeights",
    "SwitchboardConfig",
    "SwitchboardError",
    "load_config",
]
