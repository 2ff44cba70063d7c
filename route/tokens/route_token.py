"""
Route Governance Token

Implements a Python-native governance token with:
  - ERC-20–style interface (transfer, approve, transfer_from, balance_of)
  - Permit: signature-authorised approvals with per-owner nonces
  - Delegated voting with checkpointed history (get_current_votes,
    get_prior_votes)

Balances, allowances and votes are integer base units bounded by 96 bits.
"""

import inspect
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from eth_utils import keccak

from ..chain import Chain, Contract
from ..config import TokenConfig
from ..constants import (
    MAX_UINT96,
    PERMIT_DOMAIN_TYPE,
    PERMIT_TYPE,
    ROUTE_DECIMALS,
    ROUTE_TOKEN_NAME,
    ROUTE_TOKEN_SYMBOL,
    ROUTE_TOTAL_SUPPLY,
    ZERO_ADDRESS,
)
from ..crypto import normalize_address
from ..exceptions import (
    AmountOverflowError,
    ExpiredError,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InvalidAddressError,
    InvalidSignatureError,
    RouteError,
)
from ..governance.checkpoints import Checkpoint
from ..governance.voting import VotingLedger
from ..logger import get_logger
from .units import from_base_units

logger = get_logger(__name__)

DOMAIN_TYPEHASH = keccak(text=PERMIT_DOMAIN_TYPE)
PERMIT_TYPEHASH = keccak(text=PERMIT_TYPE)


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TransferEvent:
    """Emitted on every successful transfer."""
    sender: str
    recipient: str
    amount: int
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Transfer",
            "from": self.sender,
            "to": self.recipient,
            "amount": str(self.amount),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ApprovalEvent:
    """Emitted on approve, permit and allowance-consuming transfer_from."""
    owner: str
    spender: str
    amount: int
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Approval",
            "owner": self.owner,
            "spender": self.spender,
            "amount": str(self.amount),
            "timestamp": self.timestamp,
        }


# ══════════════════════════════════════════════════════════════════════
#  DIGEST HELPERS
# ══════════════════════════════════════════════════════════════════════

def _word(value: int) -> bytes:
    return value.to_bytes(32, "big")


def _address_word(address: str) -> bytes:
    return bytes(12) + bytes.fromhex(address[2:])


def make_domain_separator(name: str, chain_id: int, verifying_contract: str) -> bytes:
    return keccak(
        DOMAIN_TYPEHASH
        + keccak(text=name)
        + _word(chain_id)
        + _address_word(verifying_contract)
    )


def make_permit_digest(
    domain_separator: bytes,
    owner: str,
    spender: str,
    value: int,
    nonce: int,
    deadline: int,
) -> bytes:
    """Digest an owner signs to authorise ``approve(spender, value)``."""
    struct_hash = keccak(
        PERMIT_TYPEHASH
        + _address_word(owner)
        + _address_word(spender)
        + _word(value)
        + _word(nonce)
        + _word(deadline)
    )
    return keccak(b"\x19\x01" + domain_separator + struct_hash)


# ══════════════════════════════════════════════════════════════════════
#  ROUTE TOKEN
# ══════════════════════════════════════════════════════════════════════

class RouteToken(Contract):
    """
    Route governance token.

    Mirrors ERC-20 semantics:
        - balance_of(address) → int
        - transfer(sender, recipient, amount)
        - approve(owner, spender, amount)
        - transfer_from(spender, owner, recipient, amount)
        - total_supply → int

    Plus:
        - permit(owner, spender, value, deadline, signature)
        - delegate(delegator, delegatee)
        - get_current_votes / get_prior_votes

    Permit signatures are checked by the injected ``verify_signature_fn``
    ``(owner, digest, signature) → bool`` (plain or async).
    """

    _STATE_FIELDS = ("_balances", "_allowances", "_nonces", "_ledger")
    _LOG_FIELDS = ("_events",)

    def __init__(
        self,
        chain: Chain,
        deployer: str,
        account: Optional[str] = None,
        *,
        name: str = ROUTE_TOKEN_NAME,
        symbol: str = ROUTE_TOKEN_SYMBOL,
        decimals: int = ROUTE_DECIMALS,
        total_supply: int = ROUTE_TOTAL_SUPPLY,
        verify_signature_fn: Optional[Callable[..., Any]] = None,
    ):
        """
        Args:
            chain: Host the token is deployed on
            deployer: Deploying account
            account: Receives the initial supply (defaults to deployer)
            name: Human-readable token name (part of the permit domain)
            symbol: Short ticker
            decimals: Fractional digits
            total_supply: Initial supply in base units
            verify_signature_fn: (owner, digest, signature) → bool
        """
        if not name:
            raise RouteError("Token name cannot be empty")
        if not symbol:
            raise RouteError("Token symbol cannot be empty")
        if decimals < 0 or decimals > 18:
            raise RouteError(f"Decimals must be 0-18, got {decimals}")
        if total_supply < 0:
            raise RouteError("Total supply cannot be negative")
        if total_supply > MAX_UINT96:
            raise AmountOverflowError(f"Total supply {total_supply} exceeds 96 bits")

        super().__init__(chain, deployer)

        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self._total_supply = total_supply

        holder = normalize_address(account or deployer)
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}  # (owner, spender)
        self._nonces: Dict[str, int] = {}
        self._ledger = VotingLedger()
        self._events: List[Any] = []

        self._verify_signature_fn = verify_signature_fn
        self.domain_separator = make_domain_separator(name, chain.chain_id, self.address)

        if total_supply > 0:
            self._balances[holder] = total_supply
            self._events.append(
                TransferEvent(ZERO_ADDRESS, holder, total_supply, chain.timestamp)
            )

        logger.info(
            f"Token deployed: {symbol} ({name}) at {self.address}, "
            f"supply={from_base_units(total_supply, decimals)} → {holder}"
        )

    @classmethod
    def from_config(
        cls,
        chain: Chain,
        deployer: str,
        config: TokenConfig,
        account: Optional[str] = None,
        **kwargs,
    ) -> "RouteToken":
        return cls(
            chain,
            deployer,
            account,
            name=config.name,
            symbol=config.symbol,
            decimals=config.decimals,
            total_supply=config.total_supply_base_units,
            **kwargs,
        )

    # ── Read-only views ───────────────────────────────────────────────

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, address: str) -> int:
        return self._balances.get(normalize_address(address), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((normalize_address(owner), normalize_address(spender)), 0)

    def nonces(self, owner: str) -> int:
        return self._nonces.get(normalize_address(owner), 0)

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    # ── Guards ────────────────────────────────────────────────────────

    @staticmethod
    def _safe96(amount: int, what: str) -> int:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise RouteError(f"{what} must be an integer amount, got {amount!r}")
        if amount < 0:
            raise RouteError(f"{what} cannot be negative")
        if amount > MAX_UINT96:
            raise AmountOverflowError(f"{what} {amount} exceeds 96 bits")
        return amount

    @staticmethod
    def _require_not_zero(address: str, role: str) -> str:
        address = normalize_address(address)
        if address == ZERO_ADDRESS:
            raise InvalidAddressError(f"Cannot transfer {role} the zero address")
        return address

    # ── Core ERC-20 operations ────────────────────────────────────────

    def transfer(self, sender: str, recipient: str, amount: int) -> TransferEvent:
        """Move *amount* from *sender* to *recipient*."""
        amount = self._safe96(amount, "Transfer amount")
        return self._transfer_tokens(sender, recipient, amount)

    def approve(self, owner: str, spender: str, amount: int) -> ApprovalEvent:
        """Set *spender*'s allowance over *owner*'s tokens."""
        owner = normalize_address(owner)
        spender = normalize_address(spender)
        amount = self._safe96(amount, "Allowance amount")

        self._allowances[(owner, spender)] = amount
        event = ApprovalEvent(owner, spender, amount, self.now)
        self._events.append(event)
        logger.debug(f"Approve: {owner} → {spender} allowance={amount} {self.symbol}")
        return event

    def transfer_from(
        self,
        spender: str,
        owner: str,
        recipient: str,
        amount: int,
    ) -> TransferEvent:
        """
        Transfer on behalf of *owner* using *spender*'s allowance.

        A maximal (2**96 - 1) allowance is never decremented.
        """
        spender = normalize_address(spender)
        owner = normalize_address(owner)
        amount = self._safe96(amount, "Transfer amount")

        allow = self._allowances.get((owner, spender), 0)
        if spender != owner and allow != MAX_UINT96:
            if allow < amount:
                raise InsufficientAllowanceError(
                    f"Allowance {allow} < transfer amount {amount}"
                )
            event = self._transfer_tokens(owner, recipient, amount)
            new_allowance = allow - amount
            self._allowances[(owner, spender)] = new_allowance
            self._events.append(ApprovalEvent(owner, spender, new_allowance, self.now))
            return event

        return self._transfer_tokens(owner, recipient, amount)

    def _transfer_tokens(self, sender: str, recipient: str, amount: int) -> TransferEvent:
        sender = self._require_not_zero(sender, "from")
        recipient = self._require_not_zero(recipient, "to")

        bal = self._balances.get(sender, 0)
        if bal < amount:
            raise InsufficientBalanceError(
                f"{sender} balance {bal} < transfer amount {amount}"
            )

        self._balances[sender] = bal - amount
        self._balances[recipient] = self._balances.get(recipient, 0) + amount

        event = TransferEvent(sender, recipient, amount, self.now)
        self._events.append(event)
        self._events.extend(
            self._ledger.move_delegates(
                self._ledger.delegates(sender),
                self._ledger.delegates(recipient),
                amount,
                self.now,
            )
        )
        logger.debug(f"Transfer: {sender} → {recipient} {amount} {self.symbol}")
        return event

    # ── Permit ────────────────────────────────────────────────────────

    def permit_digest(
        self,
        owner: str,
        spender: str,
        value: int,
        nonce: int,
        deadline: int,
    ) -> bytes:
        return make_permit_digest(
            self.domain_separator,
            normalize_address(owner),
            normalize_address(spender),
            value,
            nonce,
            deadline,
        )

    async def _verify(self, owner: str, digest: bytes, signature: bytes) -> bool:
        """Verify a permit signature. Uses injected verifier or auto-passes."""
        if self._verify_signature_fn is None:
            return True  # no verifier injected → accept (testing)
        result = self._verify_signature_fn(owner, digest, signature)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)

    async def permit(
        self,
        owner: str,
        spender: str,
        value: int,
        deadline: int,
        signature: bytes = b"",
    ) -> ApprovalEvent:
        """
        Approve by signature: *owner* authorises *spender* for *value*.

        Raises:
            ExpiredError: host time is past *deadline*
            InvalidSignatureError: verifier rejects the signature
        """
        owner = normalize_address(owner)
        spender = normalize_address(spender)
        value = self._safe96(value, "Permit value")

        if owner == ZERO_ADDRESS:
            raise InvalidSignatureError("permit: invalid signature (zero owner)")
        if self.now > deadline:
            raise ExpiredError(f"permit: signature expired (deadline={deadline}, now={self.now})")

        nonce = self._nonces.get(owner, 0)
        digest = self.permit_digest(owner, spender, value, nonce, deadline)
        if not await self._verify(owner, digest, signature):
            raise InvalidSignatureError("permit: invalid signature")

        self._nonces[owner] = nonce + 1
        self._allowances[(owner, spender)] = value
        event = ApprovalEvent(owner, spender, value, self.now)
        self._events.append(event)
        logger.debug(f"Permit: {owner} → {spender} allowance={value} nonce={nonce}")
        return event

    # ── Delegation & votes ────────────────────────────────────────────

    def delegates(self, account: str) -> Optional[str]:
        return self._ledger.delegates(normalize_address(account))

    def delegate(self, delegator: str, delegatee: Optional[str]) -> List[Any]:
        """
        Delegate *delegator*'s votes to *delegatee*.

        ``None`` or the zero address stops delegating. Returns emitted events.
        """
        delegator = normalize_address(delegator)
        if delegatee is not None:
            delegatee = normalize_address(delegatee)
            if delegatee == ZERO_ADDRESS:
                delegatee = None

        events = self._ledger.delegate(
            delegator, delegatee, self._balances.get(delegator, 0), self.now
        )
        self._events.extend(events)
        return events

    def get_current_votes(self, account: str) -> int:
        return self._ledger.get_current_votes(normalize_address(account))

    def get_prior_votes(self, account: str, timestamp: int) -> int:
        return self._ledger.get_prior_votes(normalize_address(account), timestamp, self.now)

    def num_checkpoints(self, account: str) -> int:
        return self._ledger.num_checkpoints(normalize_address(account))

    def checkpoints(self, account: str, index: int) -> Checkpoint:
        return self._ledger.checkpoint(normalize_address(account), index)

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "totalSupply": str(self._total_supply),
            "holders": len([b for b in self._balances.values() if b > 0]),
            "votes": self._ledger.to_dict(),
        }

    def __repr__(self) -> str:
        return f"<RouteToken {self.symbol} supply={self._total_supply}>"
