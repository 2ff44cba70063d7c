"""
Route Token

Provides:
  - RouteToken      : 96-bit governance token with permit and delegated votes
  - TransferEvent / ApprovalEvent
  - Unit helpers    : to_base_units / from_base_units / expand_to_18_decimals
"""

from .route_token import (
    ApprovalEvent,
    RouteToken,
    TransferEvent,
    make_domain_separator,
    make_permit_digest,
)
from .units import (
    expand_to_18_decimals,
    from_base_units,
    to_base_units,
)

__all__ = [
    # Token
    "ApprovalEvent",
    "RouteToken",
    "TransferEvent",
    "make_domain_separator",
    "make_permit_digest",
    # Units
    "expand_to_18_decimals",
    "from_base_units",
    "to_base_units",
]
