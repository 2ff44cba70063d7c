"""
Route address helpers.
"""

from .contract import (
    generate_contract_address,
    is_zero_address,
    normalize_address,
)

__all__ = [
    "generate_contract_address",
    "is_zero_address",
    "normalize_address",
]
