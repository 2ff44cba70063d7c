"""
Route Configuration

Loads route.toml at startup. Environment variables override TOML values.
"""

from .loader import (
    ChainConfig,
    GovernanceConfig,
    LoggingConfig,
    RouteConfig,
    TokenConfig,
    load_config,
)

__all__ = [
    "ChainConfig",
    "GovernanceConfig",
    "LoggingConfig",
    "RouteConfig",
    "TokenConfig",
    "load_config",
]
