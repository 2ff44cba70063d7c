"""
Token unit conversion between whole tokens and integer base units.
"""

from decimal import Decimal
from typing import Union

from ..constants import ROUTE_DECIMALS


def to_base_units(amount: Union[int, str, Decimal], decimals: int = ROUTE_DECIMALS) -> int:
    """``to_base_units(100) == 100 * 10**18``; fractional input is truncated."""
    return int(Decimal(str(amount)) * (Decimal(10) ** decimals))


def from_base_units(amount: int, decimals: int = ROUTE_DECIMALS) -> Decimal:
    return Decimal(amount) / (Decimal(10) ** decimals)


def expand_to_18_decimals(n: int) -> int:
    return n * 10 ** 18
