"""
Route TOML Configuration Loader

Loads route.toml with environment variable overrides (dataclass + from_dict
+ from_file per section).

Environment variable mapping:
    [chain] chain_id            → ROUTE_CHAIN_ID
    [chain] genesis_time        → ROUTE_GENESIS_TIME
    [governance] timelock_delay → ROUTE_TIMELOCK_DELAY
    [logging] level             → ROUTE_LOG_LEVEL
    ...
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import (
    BLOCK_TIME,
    DEFAULT_CHAIN_ID,
    GOVERNOR_PROPOSAL_MAX_OPERATIONS,
    GOVERNOR_PROPOSAL_THRESHOLD,
    GOVERNOR_QUORUM_VOTES,
    GOVERNOR_VOTING_DELAY,
    GOVERNOR_VOTING_PERIOD,
    ROUTE_DECIMALS,
    ROUTE_TOKEN_NAME,
    ROUTE_TOKEN_SYMBOL,
    ROUTE_TOTAL_SUPPLY,
    TIMELOCK_DEFAULT_DELAY,
    TIMELOCK_MAXIMUM_DELAY,
    TIMELOCK_MINIMUM_DELAY,
)
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------


@dataclass
class ChainConfig:
    """[chain] section."""
    chain_id: int = DEFAULT_CHAIN_ID
    genesis_time: int = 0          # 0 → wall clock at host creation
    block_time: int = BLOCK_TIME

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChainConfig":
        return cls(
            chain_id=data.get("chain_id", DEFAULT_CHAIN_ID),
            genesis_time=data.get("genesis_time", 0),
            block_time=data.get("block_time", BLOCK_TIME),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("ROUTE_CHAIN_ID"):
            self.chain_id = int(v)
        if v := os.environ.get("ROUTE_GENESIS_TIME"):
            self.genesis_time = int(v)
        if v := os.environ.get("ROUTE_BLOCK_TIME"):
            self.block_time = int(v)


@dataclass
class TokenConfig:
    """[token] section. Supply is given in whole tokens."""
    name: str = ROUTE_TOKEN_NAME
    symbol: str = ROUTE_TOKEN_SYMBOL
    decimals: int = ROUTE_DECIMALS
    total_supply: int = ROUTE_TOTAL_SUPPLY // 10 ** ROUTE_DECIMALS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenConfig":
        return cls(
            name=data.get("name", ROUTE_TOKEN_NAME),
            symbol=data.get("symbol", ROUTE_TOKEN_SYMBOL),
            decimals=data.get("decimals", ROUTE_DECIMALS),
            total_supply=data.get("total_supply", ROUTE_TOTAL_SUPPLY // 10 ** ROUTE_DECIMALS),
        )

    @property
    def total_supply_base_units(self) -> int:
        return self.total_supply * 10 ** self.decimals


@dataclass
class GovernanceConfig:
    """[governance] section. Vote amounts are given in whole tokens."""
    timelock_delay: int = TIMELOCK_DEFAULT_DELAY
    quorum_votes: int = GOVERNOR_QUORUM_VOTES // 10 ** ROUTE_DECIMALS
    proposal_threshold: int = GOVERNOR_PROPOSAL_THRESHOLD // 10 ** ROUTE_DECIMALS
    proposal_max_operations: int = GOVERNOR_PROPOSAL_MAX_OPERATIONS
    voting_delay: int = GOVERNOR_VOTING_DELAY
    voting_period: int = GOVERNOR_VOTING_PERIOD

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceConfig":
        defaults = cls()
        return cls(
            timelock_delay=data.get("timelock_delay", defaults.timelock_delay),
            quorum_votes=data.get("quorum_votes", defaults.quorum_votes),
            proposal_threshold=data.get("proposal_threshold", defaults.proposal_threshold),
            proposal_max_operations=data.get(
                "proposal_max_operations", defaults.proposal_max_operations
            ),
            voting_delay=data.get("voting_delay", defaults.voting_delay),
            voting_period=data.get("voting_period", defaults.voting_period),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("ROUTE_TIMELOCK_DELAY"):
            self.timelock_delay = int(v)
        if v := os.environ.get("ROUTE_VOTING_PERIOD"):
            self.voting_period = int(v)

    def validate(self) -> None:
        if not TIMELOCK_MINIMUM_DELAY <= self.timelock_delay <= TIMELOCK_MAXIMUM_DELAY:
            raise ConfigurationError(
                f"timelock_delay must be within [{TIMELOCK_MINIMUM_DELAY}, "
                f"{TIMELOCK_MAXIMUM_DELAY}], got {self.timelock_delay}"
            )
        if self.proposal_max_operations < 1:
            raise ConfigurationError("proposal_max_operations must be >= 1")
        if self.voting_period < 1:
            raise ConfigurationError("voting_period must be >= 1")
        if self.voting_delay < 0:
            raise ConfigurationError("voting_delay cannot be negative")


@dataclass
class LoggingConfig:
    """[logging] section."""
    level: str = "INFO"
    file_output: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        return cls(
            level=str(data.get("level", "INFO")).upper(),
            file_output=data.get("file_output", False),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("ROUTE_LOG_LEVEL"):
            self.level = v.strip().upper()


# -----------------------------------------------------------------------
# Top-level config
# -----------------------------------------------------------------------

@dataclass
class RouteConfig:
    """Unified configuration for the chain host, token and governance."""
    chain: ChainConfig = field(default_factory=ChainConfig)
    token: TokenConfig = field(default_factory=TokenConfig)
    governance: GovernanceConfig = field(default_factory=GovernanceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RouteConfig":
        return cls(
            chain=ChainConfig.from_dict(data.get("chain", {})),
            token=TokenConfig.from_dict(data.get("token", {})),
            governance=GovernanceConfig.from_dict(data.get("governance", {})),
            logging=LoggingConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "RouteConfig":
        """
        Load configuration from a TOML file.

        A missing file yields defaults (with env overrides applied).
        """
        path = Path(config_path)
        if not path.exists():
            logger.debug("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            raw = tomli.load(f)

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.chain.apply_env()
        self.governance.apply_env()
        self.logging.apply_env()

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        if self.chain.chain_id < 1:
            raise ConfigurationError("chain_id must be >= 1")
        if self.chain.block_time < 1:
            raise ConfigurationError("block_time must be >= 1")
        if not 0 <= self.token.decimals <= 18:
            raise ConfigurationError(f"decimals must be 0-18, got {self.token.decimals}")
        if self.token.total_supply <= 0:
            raise ConfigurationError("total_supply must be positive")
        if str(self.logging.level).upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigurationError(f"Invalid log level: {self.logging.level}")
        self.governance.validate()
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chain": {
                "chain_id": self.chain.chain_id,
                "genesis_time": self.chain.genesis_time,
                "block_time": self.chain.block_time,
            },
            "token": {
                "name": self.token.name,
                "symbol": self.token.symbol,
                "decimals": self.token.decimals,
                "total_supply": self.token.total_supply,
            },
            "governance": {
                "timelock_delay": self.governance.timelock_delay,
                "quorum_votes": self.governance.quorum_votes,
                "proposal_threshold": self.governance.proposal_threshold,
                "proposal_max_operations": self.governance.proposal_max_operations,
                "voting_delay": self.governance.voting_delay,
                "voting_period": self.governance.voting_period,
            },
            "logging": {
                "level": self.logging.level,
                "file_output": self.logging.file_output,
            },
        }


def load_config(path: Optional[str] = None) -> RouteConfig:
    """
    Load Route configuration.

    Resolution order:
        1. Explicit *path* argument
        2. ROUTE_CONFIG env var
        3. ./route.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("ROUTE_CONFIG", "route.toml")

    return RouteConfig.from_file(path)
