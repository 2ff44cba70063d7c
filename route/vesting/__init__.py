"""
Treasury Vesting

Provides:
  - TreasuryVester         : single schedule with cliff, bonus and linear release
  - TreasuryVesterFactory  : per-recipient schedules, funding, batch claims
  - ClaimReport            : per-schedule outcome of claim_all
"""

from .vester import (
    ClaimedEvent,
    RecipientChangedEvent,
    RescuedEvent,
    TreasuryVester,
)
from .factory import (
    ClaimReport,
    TreasuryVesterFactory,
)

__all__ = [
    # Schedule
    "ClaimedEvent",
    "RecipientChangedEvent",
    "RescuedEvent",
    "TreasuryVester",
    # Factory
    "ClaimReport",
    "TreasuryVesterFactory",
]
