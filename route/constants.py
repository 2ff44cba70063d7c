"""
Route Constants

Protocol parameters for the token, vesting and governance contracts, plus
the logging settings read from the environment (``.env`` via python-dotenv,
overridden by real environment variables).
"""
import ast
import os

from dotenv import dotenv_values


# ==================================================================================
# TOKEN
# ==================================================================================
ROUTE_TOKEN_NAME = 'Route'
ROUTE_TOKEN_SYMBOL = 'ROUTE'
ROUTE_DECIMALS = 18
ROUTE_TOTAL_SUPPLY = 10_000_000 * 10 ** ROUTE_DECIMALS

# Balances, allowances and vote counts are stored in 96 bits
MAX_UINT96 = 2 ** 96 - 1

ZERO_ADDRESS = '0x' + '00' * 20

PERMIT_DOMAIN_TYPE = 'EIP712Domain(string name,uint256 chainId,address verifyingContract)'
PERMIT_TYPE = 'Permit(address owner,address spender,uint256 value,uint256 nonce,uint256 deadline)'
DEFAULT_CHAIN_ID = 1


# ==================================================================================
# VESTING
# ==================================================================================
VESTING_MAX_BONUS_PERCENT = 100
VESTING_MAX_BATCH_SIZE = 256


# ==================================================================================
# TIMELOCK
# ==================================================================================
SECONDS_PER_DAY = 86400
TIMELOCK_GRACE_PERIOD = 14 * SECONDS_PER_DAY
TIMELOCK_MINIMUM_DELAY = 2 * SECONDS_PER_DAY
TIMELOCK_MAXIMUM_DELAY = 30 * SECONDS_PER_DAY
TIMELOCK_DEFAULT_DELAY = 2 * SECONDS_PER_DAY


# ==================================================================================
# GOVERNOR
# ==================================================================================
GOVERNOR_QUORUM_VOTES = 400_000 * 10 ** ROUTE_DECIMALS         # 4% of supply
GOVERNOR_PROPOSAL_THRESHOLD = 100_000 * 10 ** ROUTE_DECIMALS   # 1% of supply
GOVERNOR_PROPOSAL_MAX_OPERATIONS = 10
GOVERNOR_VOTING_DELAY = 13                   # one block
GOVERNOR_VOTING_PERIOD = 3 * SECONDS_PER_DAY


# ==================================================================================
# CHAIN HOST
# ==================================================================================
BLOCK_TIME = 13


# ==================================================================================
# ENVIRONMENT SETTINGS
# ==================================================================================
class ConfigString(str):
    """A string setting that remembers the default it replaced."""
    def __new__(cls, value, default):
        obj = super().__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default


class ConfigBool(int):
    """A boolean setting (int-backed, like bool) that remembers its default."""
    def __new__(cls, value, default):
        obj = super().__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    __str__ = __repr__

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__


def parse_bool(v):
    """``"true"``/``"False"`` (any case, padded) → bool; anything else unchanged."""
    if isinstance(v, str) and v.strip().casefold() in {"true", "false"}:
        return ast.literal_eval(v.strip().title())
    return v


_dotenv = dotenv_values(".env")


def _setting(key, default):
    raw = os.environ.get(key, _dotenv.get(key))
    value = default if raw is None or not raw.strip() else raw
    parsed = parse_bool(value)
    if isinstance(parsed, bool):
        return ConfigBool(parsed, parse_bool(default))
    return ConfigString(value, default)


LOG_LEVEL = _setting('LOG_LEVEL', 'INFO')
LOG_FORMAT = _setting('LOG_FORMAT', '%(asctime)s - %(levelname)s - %(name)s - %(message)s')
LOG_DATE_FORMAT = _setting('LOG_DATE_FORMAT', '%Y-%m-%dT%H:%M:%S')
LOG_CONSOLE_HIGHLIGHTING = _setting('LOG_CONSOLE_HIGHLIGHTING', 'True')
LOG_FILE_OUTPUT = _setting('LOG_FILE_OUTPUT', 'False')
LOG_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5
