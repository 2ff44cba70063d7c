"""
Contract Address Generation

Ethereum-compatible address handling for Route contracts.
"""

from eth_utils import is_address, keccak, to_checksum_address
import rlp

from ..constants import ZERO_ADDRESS
from ..exceptions import InvalidAddressError


def normalize_address(address: str) -> str:
    """
    Return the checksum form of *address*.

    Raises:
        InvalidAddressError: if *address* is not a 20-byte hex address
    """
    if not isinstance(address, str) or not is_address(address):
        raise InvalidAddressError(f"Invalid address: {address!r}")
    return to_checksum_address(address)


def is_zero_address(address: str) -> bool:
    return normalize_address(address) == ZERO_ADDRESS


def generate_contract_address(sender: str, nonce: int) -> str:
    """
    Generate contract address using CREATE opcode logic.

    Address = keccak256(rlp([sender, nonce]))[-20:]

    Args:
        sender: Deployer address (hex)
        nonce: Deployer nonce

    Returns:
        Contract address (checksum format)
    """
    sender_bytes = bytes.fromhex(normalize_address(sender)[2:])
    rlp_encoded = rlp.encode([sender_bytes, nonce])
    address_bytes = keccak(rlp_encoded)[-20:]
    return to_checksum_address('0x' + address_bytes.hex())
