"""
Delegated Voting Ledger

Implements:
  - Single-hop delegation: an account's votes are the summed balances of the
    accounts currently delegating to it (self-delegation included)
  - Vote movement on transfer between the sender's and recipient's delegates
  - Checkpointed history per delegate for point-in-time lookups
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from ..exceptions import FutureLookupError
from ..logger import get_logger
from .checkpoints import Checkpoint, CheckpointHistory

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DelegateChangedEvent:
    """Emitted when an account changes its delegate."""
    delegator: str
    from_delegate: Optional[str]
    to_delegate: Optional[str]
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "DelegateChanged",
            "delegator": self.delegator,
            "fromDelegate": self.from_delegate,
            "toDelegate": self.to_delegate,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class DelegateVotesChangedEvent:
    """Emitted whenever a delegate's vote balance changes."""
    delegate: str
    previous_balance: int
    new_balance: int
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "DelegateVotesChanged",
            "delegate": self.delegate,
            "previousBalance": str(self.previous_balance),
            "newBalance": str(self.new_balance),
            "timestamp": self.timestamp,
        }


LedgerEvent = Union[DelegateChangedEvent, DelegateVotesChangedEvent]


# ══════════════════════════════════════════════════════════════════════
#  VOTING LEDGER
# ══════════════════════════════════════════════════════════════════════

class VotingLedger:
    """
    Delegation and vote checkpoint bookkeeping for a token.

    The ledger never reads balances itself: the owning token passes the
    delegator's balance to :meth:`delegate` and the transferred amount to
    :meth:`move_delegates`. Delegation is a direct mapping
    delegator → delegate; a delegate's own delegation does not forward the
    votes it receives.
    """

    def __init__(self) -> None:
        self._delegates: Dict[str, Optional[str]] = {}
        self._histories: Dict[str, CheckpointHistory] = {}

    # ── Delegation ────────────────────────────────────────────────────

    def delegates(self, account: str) -> Optional[str]:
        """Current delegate of *account* (None if it never delegated)."""
        return self._delegates.get(account)

    def delegate(
        self,
        delegator: str,
        delegatee: Optional[str],
        balance: int,
        timestamp: int,
    ) -> List[LedgerEvent]:
        """
        Point *delegator*'s votes at *delegatee* (None stops contributing).

        The full *balance* leaves the previous delegate and is credited to
        the new one.
        """
        current = self._delegates.get(delegator)
        moved = self.move_delegates(current, delegatee, balance, timestamp)
        self._delegates[delegator] = delegatee

        events: List[LedgerEvent] = [
            DelegateChangedEvent(
                delegator=delegator,
                from_delegate=current,
                to_delegate=delegatee,
                timestamp=timestamp,
            )
        ]
        events.extend(moved)
        logger.info(f"Delegation: {delegator} → {delegatee} (was {current}, weight={balance})")
        return events

    def move_delegates(
        self,
        src_rep: Optional[str],
        dst_rep: Optional[str],
        amount: int,
        timestamp: int,
    ) -> List[DelegateVotesChangedEvent]:
        """Move *amount* votes from *src_rep* to *dst_rep*, checkpointing both."""
        events: List[DelegateVotesChangedEvent] = []
        if src_rep == dst_rep or amount <= 0:
            return events

        if src_rep is not None:
            old = self.get_current_votes(src_rep)
            if old < amount:
                raise ValueError(
                    f"Vote amount {amount} underflows {src_rep} votes {old}"
                )
            events.append(self._write_checkpoint(src_rep, old, old - amount, timestamp))

        if dst_rep is not None:
            old = self.get_current_votes(dst_rep)
            events.append(self._write_checkpoint(dst_rep, old, old + amount, timestamp))

        return events

    def _write_checkpoint(
        self,
        delegatee: str,
        old_votes: int,
        new_votes: int,
        timestamp: int,
    ) -> DelegateVotesChangedEvent:
        history = self._histories.setdefault(delegatee, CheckpointHistory())
        history.write(timestamp, new_votes)
        logger.debug(f"Votes of {delegatee}: {old_votes} → {new_votes} @ {timestamp}")
        return DelegateVotesChangedEvent(
            delegate=delegatee,
            previous_balance=old_votes,
            new_balance=new_votes,
            timestamp=timestamp,
        )

    # ── Queries ───────────────────────────────────────────────────────

    def get_current_votes(self, account: str) -> int:
        history = self._histories.get(account)
        return history.latest_votes if history is not None else 0

    def get_prior_votes(self, account: str, timestamp: int, now: int) -> int:
        """
        Votes *account* held at *timestamp*.

        Raises:
            FutureLookupError: if *timestamp* is not strictly before *now*
        """
        if timestamp >= now:
            raise FutureLookupError(
                f"getPriorVotes: not yet determined (timestamp={timestamp}, now={now})"
            )
        history = self._histories.get(account)
        if history is None:
            return 0
        return history.votes_at(timestamp)

    def num_checkpoints(self, account: str) -> int:
        history = self._histories.get(account)
        return len(history) if history is not None else 0

    def checkpoint(self, account: str, index: int) -> Checkpoint:
        history = self._histories.get(account)
        if history is None:
            raise IndexError(f"{account} has no checkpoints")
        return history[index]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "delegations": len([d for d in self._delegates.values() if d is not None]),
            "delegates": {
                account: str(history.latest_votes)
                for account, history in self._histories.items()
            },
        }

    def __repr__(self) -> str:
        return f"<VotingLedger delegators={len(self._delegates)} delegates={len(self._histories)}>"
