"""
Treasury Vester Factory

Creates and manages one TreasuryVester per recipient:

  - vest / batch_vest create unfunded schedules (owner only)
  - notify_funds_for_all moves the factory's balance into unfunded schedules
    in creation order
  - claim / claim_all pay recipients; claim_all isolates per-schedule failures
  - rescue_funds / rescue_factory_funds recover undistributed tokens
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..chain import Chain, Contract
from ..constants import VESTING_MAX_BATCH_SIZE
from ..crypto import is_zero_address, normalize_address
from ..exceptions import (
    DuplicateRecipientError,
    InvalidAddressError,
    InvalidScheduleError,
    LengthMismatchError,
    NoSuchScheduleError,
    RouteError,
    UnauthorizedError,
)
from ..logger import get_logger
from .vester import TreasuryVester

logger = get_logger(__name__)


@dataclass
class ClaimReport:
    """Outcome of :meth:`TreasuryVesterFactory.claim_all`."""
    claimed: Dict[str, int] = field(default_factory=dict)
    failures: Dict[str, RouteError] = field(default_factory=dict)

    @property
    def total_claimed(self) -> int:
        return sum(self.claimed.values())

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> Dict[str, Any]:
        return {
            "claimed": {r: str(a) for r, a in self.claimed.items()},
            "failures": {
                r: f"{type(e).__name__}: {e}" for r, e in self.failures.items()
            },
            "totalClaimed": str(self.total_claimed),
        }


class TreasuryVesterFactory(Contract):
    """
    Registry of vesting schedules keyed by recipient.

    Schedules are iterated in creation order, which is also the order in
    which :meth:`notify_funds_for_all` allocates funds.
    """

    _STATE_FIELDS = ("owner", "_schedules", "_recipients")

    def __init__(self, chain: Chain, deployer: str, token: str):
        super().__init__(chain, deployer)
        self.owner = self.deployer
        self.token_address = normalize_address(token)
        self._schedules: Dict[str, str] = {}  # recipient → vester address
        self._recipients: List[str] = []      # creation order
        logger.info(f"Vester factory deployed at {self.address} (owner={self.owner})")

    # ── Views ─────────────────────────────────────────────────────────

    @property
    def token(self):
        return self.chain.get_contract(self.token_address)

    @property
    def recipients(self) -> List[str]:
        return list(self._recipients)

    @property
    def undistributed(self) -> int:
        """Factory balance not yet allocated to any schedule."""
        return self.token.balance_of(self.address)

    def has_schedule(self, recipient: str) -> bool:
        return normalize_address(recipient) in self._schedules

    def schedule(self, recipient: str) -> TreasuryVester:
        address = self._schedules.get(normalize_address(recipient))
        if address is None:
            raise NoSuchScheduleError(f"No vesting schedule for {recipient}")
        return self.chain.get_contract(address)

    def schedules(self) -> List[TreasuryVester]:
        return [self.chain.get_contract(self._schedules[r]) for r in self._recipients]

    def _require_owner(self, caller: str) -> None:
        if normalize_address(caller) != self.owner:
            raise UnauthorizedError(f"TreasuryVesterFactory: caller {caller} is not owner")

    # ── Schedule creation ─────────────────────────────────────────────

    def vest(
        self,
        caller: str,
        recipient: str,
        amount: int,
        cliff: int,
        end: int,
        bonus: int = 0,
        begin: Optional[int] = None,
    ) -> TreasuryVester:
        """
        Create an unfunded schedule for *recipient*. Does not move funds.

        A settled (fully paid or rescued) schedule for the same recipient is
        replaced; an unsettled one raises DuplicateRecipientError.
        """
        self._require_owner(caller)
        recipient = normalize_address(recipient)
        if is_zero_address(recipient):
            raise InvalidAddressError("TreasuryVesterFactory::vest: recipient is the zero address")

        existing = self._schedules.get(recipient)
        if existing is not None and not self.chain.get_contract(existing).is_settled:
            raise DuplicateRecipientError(f"Active vesting schedule already exists for {recipient}")

        vester = TreasuryVester(
            self.chain,
            self.address,
            factory=self.address,
            token=self.token_address,
            recipient=recipient,
            amount=amount,
            cliff=cliff,
            end=end,
            bonus=bonus,
            begin=begin,
        )
        if existing is None:
            self._recipients.append(recipient)
        self._schedules[recipient] = vester.address
        logger.info(f"Vest: {recipient} amount={amount} via {vester.address}")
        return vester

    def batch_vest(
        self,
        caller: str,
        recipients: Sequence[str],
        amounts: Sequence[int],
        cliffs: Sequence[int],
        ends: Sequence[int],
        bonuses: Sequence[int],
    ) -> List[TreasuryVester]:
        """Element-wise :meth:`vest`; either every schedule is created or none."""
        self._require_owner(caller)
        lengths = {len(recipients), len(amounts), len(cliffs), len(ends), len(bonuses)}
        if len(lengths) != 1:
            raise LengthMismatchError(
                f"batchVest: argument lengths differ "
                f"({len(recipients)}, {len(amounts)}, {len(cliffs)}, {len(ends)}, {len(bonuses)})"
            )
        if len(recipients) > VESTING_MAX_BATCH_SIZE:
            raise InvalidScheduleError(
                f"Batch size {len(recipients)} exceeds max {VESTING_MAX_BATCH_SIZE}"
            )

        with self.chain.atomic():
            return [
                self.vest(caller, recipient, amount, cliff, end, bonus)
                for recipient, amount, cliff, end, bonus
                in zip(recipients, amounts, cliffs, ends, bonuses)
            ]

    # ── Funding ───────────────────────────────────────────────────────

    def notify_funds_for_all(self) -> Dict[str, int]:
        """
        Allocate the factory balance to unfunded schedules in creation order.

        Each schedule receives its full outstanding requirement; allocation
        stops at the first schedule the remaining balance cannot cover.
        Returns recipient → amount moved.
        """
        available = self.undistributed
        allocated: Dict[str, int] = {}

        for recipient in self._recipients:
            vester = self.chain.get_contract(self._schedules[recipient])
            if vester.is_settled or vester.funded:
                continue
            needed = vester.remaining - self.token.balance_of(vester.address)
            if needed > available:
                logger.warning(
                    f"notifyFundsForAll: {available} left, {recipient} needs {needed}; "
                    f"later schedules stay unfunded"
                )
                break
            self.token.transfer(self.address, vester.address, needed)
            vester.mark_funded(self.address)
            available -= needed
            allocated[recipient] = needed

        logger.info(f"notifyFundsForAll: funded {len(allocated)} schedule(s), {available} undistributed")
        return allocated

    # ── Claims ────────────────────────────────────────────────────────

    def claim(self, recipient: str) -> int:
        return self.schedule(recipient).claim()

    def claim_all(self) -> ClaimReport:
        """
        Claim every known schedule.

        A failing schedule is rolled back on its own and recorded in the
        report; the remaining schedules are still claimed.
        """
        report = ClaimReport()
        for recipient in self._recipients:
            vester = self.chain.get_contract(self._schedules[recipient])
            try:
                with self.chain.atomic():
                    report.claimed[recipient] = vester.claim()
            except RouteError as exc:
                report.failures[recipient] = exc
                logger.warning(f"claimAll: {recipient} failed: {exc}")
        return report

    # ── Rescue ────────────────────────────────────────────────────────

    def rescue_funds(self, caller: str, recipient: str) -> int:
        """Return a schedule's balance to the factory's undistributed pool."""
        self._require_owner(caller)
        return self.schedule(recipient).rescue(self.address)

    def rescue_factory_funds(self, caller: str) -> int:
        """Send the factory's entire undistributed balance to the owner."""
        self._require_owner(caller)
        amount = self.undistributed
        if amount > 0:
            self.token.transfer(self.address, self.owner, amount)
        logger.warning(f"Factory {self.address}: rescued {amount} to owner {self.owner}")
        return amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "owner": self.owner,
            "token": self.token_address,
            "undistributed": str(self.undistributed),
            "schedules": {r: v.to_dict() for r, v in zip(self._recipients, self.schedules())},
        }

    def __repr__(self) -> str:
        return f"<TreasuryVesterFactory {self.address} schedules={len(self._recipients)}>"
