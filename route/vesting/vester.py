"""
Treasury Vester

A single vesting schedule paying Route tokens to a recipient:

  - Nothing is claimable before the cliff
  - A bonus of ``bonus`` percent of the amount is paid in full on the first
    claim at or after the cliff
  - The remainder vests linearly over [begin, end]
  - At or after ``end`` the cumulative claimed equals ``amount`` exactly

The vester holds its own token balance; it is funded by a transfer into its
address and becomes inactive once the owning factory rescues it.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..chain import Chain, Contract
from ..constants import MAX_UINT96, VESTING_MAX_BONUS_PERCENT
from ..crypto import is_zero_address, normalize_address
from ..exceptions import (
    InvalidAddressError,
    InvalidScheduleError,
    NotFundedError,
    TooEarlyError,
    UnauthorizedError,
)
from ..logger import get_logger

logger = get_logger(__name__)


def _is_uint(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ClaimedEvent:
    recipient: str
    amount: int
    bonus_included: bool
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Claimed",
            "recipient": self.recipient,
            "amount": str(self.amount),
            "bonusIncluded": self.bonus_included,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class RecipientChangedEvent:
    previous: str
    recipient: str
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "RecipientChanged",
            "previous": self.previous,
            "recipient": self.recipient,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class RescuedEvent:
    factory: str
    amount: int
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Rescued",
            "factory": self.factory,
            "amount": str(self.amount),
            "timestamp": self.timestamp,
        }


# ══════════════════════════════════════════════════════════════════════
#  TREASURY VESTER
# ══════════════════════════════════════════════════════════════════════

class TreasuryVester(Contract):
    """
    One vesting schedule.

    Fields:
        factory:    Address allowed to rescue the schedule
        token:      Address of the paid token
        recipient:  Current payee (may hand over via set_recipient)
        amount:     Total allocation in base units
        begin:      Start of linear vesting (defaults to cliff)
        cliff:      First timestamp at which claims succeed
        end:        Timestamp at which everything is vested
        bonus:      Percent of amount paid on the first claim
    """

    _STATE_FIELDS = (
        "recipient",
        "_claimed",
        "_bonus_paid",
        "_funded",
        "_rescued",
    )
    _LOG_FIELDS = ("_events",)

    def __init__(
        self,
        chain: Chain,
        deployer: str,
        factory: str,
        token: str,
        recipient: str,
        amount: int,
        cliff: int,
        end: int,
        bonus: int = 0,
        begin: Optional[int] = None,
    ):
        if begin is None:
            begin = cliff
        for name, value in (("cliff", cliff), ("end", end), ("begin", begin), ("bonus", bonus)):
            if not _is_uint(value):
                raise InvalidScheduleError(f"{name} must be a non-negative integer, got {value!r}")
        if not _is_uint(amount) or amount == 0:
            raise InvalidScheduleError(f"Vesting amount must be a positive integer, got {amount!r}")
        if amount > MAX_UINT96:
            raise InvalidScheduleError(f"Vesting amount {amount} exceeds 96 bits")
        if not 0 <= bonus <= VESTING_MAX_BONUS_PERCENT:
            raise InvalidScheduleError(f"Bonus must be 0-{VESTING_MAX_BONUS_PERCENT}%, got {bonus}")
        if cliff < begin:
            raise InvalidScheduleError(f"cliff {cliff} is before begin {begin}")
        if end <= cliff:
            raise InvalidScheduleError(f"end {end} must be after cliff {cliff}")
        if is_zero_address(recipient):
            raise InvalidAddressError("TreasuryVester: recipient is the zero address")

        super().__init__(chain, deployer)

        self.factory = normalize_address(factory)
        self.token_address = normalize_address(token)
        self.recipient = normalize_address(recipient)
        self.amount = amount
        self.begin = begin
        self.cliff = cliff
        self.end = end
        self.bonus = bonus

        self._claimed = 0
        self._bonus_paid = False
        self._funded = False
        self._rescued = False
        self._events: List[Any] = []

        logger.info(
            f"Vester deployed at {self.address}: recipient={self.recipient} "
            f"amount={amount} cliff={self.cliff} end={self.end} bonus={bonus}%"
        )

    # ── Views ─────────────────────────────────────────────────────────

    @property
    def token(self):
        return self.chain.get_contract(self.token_address)

    @property
    def bonus_amount(self) -> int:
        return self.amount * self.bonus // 100

    @property
    def claimed(self) -> int:
        return self._claimed

    @property
    def bonus_paid(self) -> bool:
        return self._bonus_paid

    @property
    def rescued(self) -> bool:
        return self._rescued

    @property
    def remaining(self) -> int:
        """Allocation not yet paid out."""
        return self.amount - self._claimed

    @property
    def funded(self) -> bool:
        """Marked funded, or holding enough to cover the unpaid allocation."""
        if self._rescued:
            return False
        return self._funded or self.token.balance_of(self.address) >= self.remaining

    @property
    def is_active(self) -> bool:
        return self.funded and not self._rescued

    @property
    def is_settled(self) -> bool:
        """Fully paid or rescued: the schedule can no longer pay out."""
        return self._rescued or self._claimed >= self.amount

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    def vested_amount(self, at: Optional[int] = None) -> int:
        """Cumulative amount vested at *at* (bonus included once past the cliff)."""
        at = self.now if at is None else at
        if at < self.cliff:
            return 0
        linear_total = self.amount - self.bonus_amount
        elapsed = min(at, self.end) - self.begin
        duration = self.end - self.begin
        if elapsed <= 0:
            linear = 0
        elif elapsed >= duration:
            linear = linear_total
        else:
            linear = linear_total * elapsed // duration
        return self.bonus_amount + linear

    def claimable_amount(self, at: Optional[int] = None) -> int:
        if self._rescued:
            return 0
        return max(0, self.vested_amount(at) - self._claimed)

    # ── Mutations ─────────────────────────────────────────────────────

    def mark_funded(self, caller: str) -> None:
        """Factory hook after moving the allocation into this vester."""
        if normalize_address(caller) != self.factory:
            raise UnauthorizedError("TreasuryVester::onlyFactory: caller is not factory address")
        self._funded = True

    def set_recipient(self, caller: str, recipient: str) -> RecipientChangedEvent:
        caller = normalize_address(caller)
        if caller != self.recipient:
            raise UnauthorizedError(
                f"TreasuryVester::setRecipient: unauthorized ({caller} is not {self.recipient})"
            )
        if is_zero_address(recipient):
            raise InvalidAddressError("TreasuryVester::setRecipient: recipient is the zero address")
        event = RecipientChangedEvent(self.recipient, normalize_address(recipient), self.now)
        self.recipient = event.recipient
        self._events.append(event)
        logger.info(f"Vester {self.address}: recipient {event.previous} → {event.recipient}")
        return event

    def claim(self) -> int:
        """
        Pay everything currently claimable to the recipient.

        Returns the amount paid (0 once fully claimed).

        Raises:
            NotFundedError: schedule not funded, or rescued
            TooEarlyError: before the cliff
        """
        if not self.is_active:
            raise NotFundedError(f"TreasuryVester::claim: not funded ({self.address})")
        if self.now < self.cliff:
            raise TooEarlyError(
                f"TreasuryVester::claim: not time yet (now={self.now}, cliff={self.cliff})"
            )

        amount = self.claimable_amount()
        bonus_included = not self._bonus_paid
        if amount > 0:
            self.token.transfer(self.address, self.recipient, amount)

        self._funded = True
        self._bonus_paid = True
        self._claimed += amount
        self._events.append(ClaimedEvent(self.recipient, amount, bonus_included, self.now))
        logger.info(
            f"Vester {self.address}: claimed {amount} → {self.recipient} "
            f"({self._claimed}/{self.amount})"
        )
        return amount

    def rescue(self, caller: str) -> int:
        """
        Return the vester's whole token balance to the factory.

        The schedule becomes inactive.
        """
        if normalize_address(caller) != self.factory:
            raise UnauthorizedError("TreasuryVester::onlyFactory: caller is not factory address")

        amount = self.token.balance_of(self.address)
        if amount > 0:
            self.token.transfer(self.address, self.factory, amount)
        self._rescued = True
        self._events.append(RescuedEvent(self.factory, amount, self.now))
        logger.warning(f"Vester {self.address} rescued: {amount} returned to {self.factory}")
        return amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "factory": self.factory,
            "token": self.token_address,
            "recipient": self.recipient,
            "amount": str(self.amount),
            "begin": self.begin,
            "cliff": self.cliff,
            "end": self.end,
            "bonus": self.bonus,
            "claimed": str(self._claimed),
            "bonusPaid": self._bonus_paid,
            "funded": self.funded,
            "rescued": self._rescued,
        }

    def __repr__(self) -> str:
        return (
            f"<TreasuryVester {self.address} recipient={self.recipient} "
            f"claimed={self._claimed}/{self.amount}>"
        )
