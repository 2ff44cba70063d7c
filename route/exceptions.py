"""
Route Exceptions

Custom exception classes for the Route token, vesting and governance
contracts. Every failure is raised before any state is mutated.
"""


class RouteException(Exception):
    """Base exception for Route."""
    pass


class ConfigurationError(RouteException):
    """Configuration error."""
    pass


class RouteError(RouteException):
    """Base exception for contract call failures (a revert)."""
    pass


# ── Token / ledger ────────────────────────────────────────────────────

class InsufficientBalanceError(RouteError):
    """Raised when sender balance is too low."""


class InsufficientAllowanceError(RouteError):
    """Raised when spender allowance is too low."""


class AmountOverflowError(RouteError):
    """Raised when an amount does not fit in 96 bits."""


class InvalidAddressError(RouteError):
    """Raised on transfers from or to the zero address."""


class InvalidSignatureError(RouteError):
    """Raised when a permit signature fails verification."""


class ExpiredError(RouteError):
    """Raised when a permit is submitted after its deadline."""


class FutureLookupError(RouteError):
    """Raised when prior votes are requested for a timestamp not yet final."""


# ── Access control ────────────────────────────────────────────────────

class UnauthorizedError(RouteError):
    """Raised when the caller may not perform the operation."""


# ── Vesting ───────────────────────────────────────────────────────────

class VestingError(RouteError):
    """Base vesting error."""


class InvalidScheduleError(VestingError):
    """Raised when schedule parameters are inconsistent."""


class NotFundedError(VestingError):
    """Schedule is not funded or has been rescued."""


class TooEarlyError(VestingError):
    """Claim attempted before the cliff."""


class DuplicateRecipientError(VestingError):
    """An active schedule already exists for the recipient."""


class LengthMismatchError(VestingError):
    """Batch arguments differ in length."""


class NoSuchScheduleError(VestingError):
    """No schedule is registered for the recipient."""


# ── Governance ────────────────────────────────────────────────────────

class TimelockError(RouteError):
    """Timelock-specific errors."""


class GovernorError(RouteError):
    """Governor-specific errors."""
