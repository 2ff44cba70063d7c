"""
GovernorAlpha

Token-weighted proposals executed through the Timelock:

  - propose: proposer's prior votes must exceed the proposal threshold
  - cast_vote: weight is the voter's votes at the proposal's start time
  - queue / execute: route the proposal's actions through the timelock
  - cancel: guardian, or anyone once the proposer drops below threshold

Lifecycle:
    PENDING → ACTIVE → SUCCEEDED → QUEUED → EXECUTED
                     ↘ DEFEATED            ↘ EXPIRED
    (CANCELED from any state but EXECUTED)
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from ..chain import Chain, Contract
from ..config import GovernanceConfig
from ..crypto import normalize_address
from ..exceptions import GovernorError, UnauthorizedError
from ..logger import get_logger
from .timelock import Timelock, hash_transaction

if TYPE_CHECKING:
    from ..tokens import RouteToken

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  ENUMS & RECORDS
# ══════════════════════════════════════════════════════════════════════

class ProposalState(IntEnum):
    PENDING = 0
    ACTIVE = 1
    CANCELED = 2
    DEFEATED = 3
    SUCCEEDED = 4
    QUEUED = 5
    EXPIRED = 6
    EXECUTED = 7


@dataclass
class Receipt:
    has_voted: bool = False
    support: bool = False
    votes: int = 0


@dataclass
class Proposal:
    """
    A governance proposal.

    Fields:
        id:          Monotonic identifier starting at 1
        proposer:    Account that created it
        targets:     Contract addresses called on execution
        signatures:  Method names called on each target
        calldatas:   Positional arguments for each call (after the timelock)
        start_time:  Voting opens strictly after this timestamp
        end_time:    Voting closes after this timestamp
        eta:         Earliest execution time once queued (0 before)
    """
    id: int
    proposer: str
    targets: List[str]
    signatures: List[str]
    calldatas: List[tuple]
    description: str
    start_time: int
    end_time: int
    eta: int = 0
    for_votes: int = 0
    against_votes: int = 0
    canceled: bool = False
    executed: bool = False
    receipts: Dict[str, Receipt] = field(default_factory=dict)

    @property
    def actions(self) -> List[tuple]:
        return list(zip(self.targets, self.signatures, self.calldatas))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "proposer": self.proposer,
            "targets": self.targets,
            "signatures": self.signatures,
            "calldatas": [[str(a) for a in c] for c in self.calldatas],
            "description": self.description,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "eta": self.eta,
            "forVotes": str(self.for_votes),
            "againstVotes": str(self.against_votes),
            "canceled": self.canceled,
            "executed": self.executed,
        }


@dataclass(frozen=True)
class ProposalEvent:
    """ProposalCreated / ProposalCanceled / ProposalQueued / ProposalExecuted."""
    kind: str
    proposal_id: int
    timestamp: int
    eta: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.kind,
            "id": self.proposal_id,
            "timestamp": self.timestamp,
            "eta": self.eta,
        }


@dataclass(frozen=True)
class VoteCastEvent:
    voter: str
    proposal_id: int
    support: bool
    votes: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "VoteCast",
            "voter": self.voter,
            "proposalId": self.proposal_id,
            "support": self.support,
            "votes": str(self.votes),
        }


# ══════════════════════════════════════════════════════════════════════
#  GOVERNOR
# ══════════════════════════════════════════════════════════════════════

class GovernorAlpha(Contract):
    """Proposal registry and vote tally driving a :class:`Timelock`."""

    _STATE_FIELDS = (
        "guardian",
        "proposal_count",
        "_proposals",
        "_latest_proposal_ids",
    )
    _LOG_FIELDS = ("_events",)

    def __init__(
        self,
        chain: Chain,
        deployer: str,
        timelock: str,
        token: str,
        guardian: str,
        config: Optional[GovernanceConfig] = None,
    ):
        config = config or GovernanceConfig()
        config.validate()
        super().__init__(chain, deployer)

        self.timelock_address = normalize_address(timelock)
        self.token_address = normalize_address(token)
        self.guardian: Optional[str] = normalize_address(guardian)

        unit = 10 ** self.token.decimals
        self.quorum_votes = config.quorum_votes * unit
        self.proposal_threshold = config.proposal_threshold * unit
        self.proposal_max_operations = config.proposal_max_operations
        self.voting_delay = config.voting_delay
        self.voting_period = config.voting_period

        self.proposal_count = 0
        self._proposals: Dict[int, Proposal] = {}
        self._latest_proposal_ids: Dict[str, int] = {}
        self._events: List[Any] = []

        logger.info(
            f"Governor deployed at {self.address}: timelock={self.timelock_address} "
            f"quorum={self.quorum_votes} threshold={self.proposal_threshold}"
        )

    # ── Linked contracts ──────────────────────────────────────────────

    @property
    def timelock(self) -> Timelock:
        return self.chain.get_contract(self.timelock_address)

    @property
    def token(self) -> "RouteToken":
        return self.chain.get_contract(self.token_address)

    # ── Views ─────────────────────────────────────────────────────────

    def proposal(self, proposal_id: int) -> Proposal:
        proposal = self._proposals.get(proposal_id)
        if proposal is None:
            raise GovernorError("GovernorAlpha::state: invalid proposal id")
        return proposal

    def latest_proposal_id(self, proposer: str) -> int:
        return self._latest_proposal_ids.get(normalize_address(proposer), 0)

    def get_actions(self, proposal_id: int) -> List[tuple]:
        return self.proposal(proposal_id).actions

    def get_receipt(self, proposal_id: int, voter: str) -> Receipt:
        return self.proposal(proposal_id).receipts.get(normalize_address(voter), Receipt())

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    def state(self, proposal_id: int) -> ProposalState:
        p = self.proposal(proposal_id)
        now = self.now
        if p.canceled:
            return ProposalState.CANCELED
        if now <= p.start_time:
            return ProposalState.PENDING
        if now <= p.end_time:
            return ProposalState.ACTIVE
        if p.for_votes <= p.against_votes or p.for_votes < self.quorum_votes:
            return ProposalState.DEFEATED
        if p.eta == 0:
            return ProposalState.SUCCEEDED
        if p.executed:
            return ProposalState.EXECUTED
        if now >= p.eta + self.timelock.GRACE_PERIOD:
            return ProposalState.EXPIRED
        return ProposalState.QUEUED

    # ── Proposals ─────────────────────────────────────────────────────

    def propose(
        self,
        proposer: str,
        targets: Sequence[str],
        signatures: Sequence[str],
        calldatas: Sequence[Sequence[Any]],
        description: str,
    ) -> int:
        proposer = normalize_address(proposer)
        if self.token.get_prior_votes(proposer, self.now - 1) <= self.proposal_threshold:
            raise GovernorError(
                "GovernorAlpha::propose: proposer votes below proposal threshold"
            )
        if not len(targets) == len(signatures) == len(calldatas):
            raise GovernorError(
                "GovernorAlpha::propose: proposal function information arity mismatch"
            )
        if not targets:
            raise GovernorError("GovernorAlpha::propose: must provide actions")
        if len(targets) > self.proposal_max_operations:
            raise GovernorError("GovernorAlpha::propose: too many actions")

        latest = self._latest_proposal_ids.get(proposer)
        if latest is not None:
            latest_state = self.state(latest)
            if latest_state == ProposalState.ACTIVE:
                raise GovernorError(
                    "GovernorAlpha::propose: one live proposal per proposer, "
                    "found an already active proposal"
                )
            if latest_state == ProposalState.PENDING:
                raise GovernorError(
                    "GovernorAlpha::propose: one live proposal per proposer, "
                    "found an already pending proposal"
                )

        start_time = self.now + self.voting_delay
        self.proposal_count += 1
        proposal = Proposal(
            id=self.proposal_count,
            proposer=proposer,
            targets=[normalize_address(t) for t in targets],
            signatures=list(signatures),
            calldatas=[tuple(c) for c in calldatas],
            description=description,
            start_time=start_time,
            end_time=start_time + self.voting_period,
        )
        self._proposals[proposal.id] = proposal
        self._latest_proposal_ids[proposer] = proposal.id
        self._events.append(ProposalEvent("ProposalCreated", proposal.id, self.now))

        logger.info(
            f"Proposal #{proposal.id} created by {proposer}: {len(targets)} action(s), "
            f"voting {proposal.start_time}..{proposal.end_time}"
        )
        return proposal.id

    def cast_vote(self, voter: str, proposal_id: int, support: bool) -> Receipt:
        voter = normalize_address(voter)
        if self.state(proposal_id) != ProposalState.ACTIVE:
            raise GovernorError("GovernorAlpha::_castVote: voting is closed")
        p = self._proposals[proposal_id]
        if voter in p.receipts:
            raise GovernorError("GovernorAlpha::_castVote: voter already voted")

        votes = self.token.get_prior_votes(voter, p.start_time)
        if support:
            p.for_votes += votes
        else:
            p.against_votes += votes
        receipt = Receipt(has_voted=True, support=bool(support), votes=votes)
        p.receipts[voter] = receipt
        self._events.append(VoteCastEvent(voter, proposal_id, bool(support), votes))

        logger.info(
            f"Proposal #{proposal_id}: {voter} voted {'for' if support else 'against'} "
            f"with {votes}"
        )
        return receipt

    def queue(self, proposal_id: int) -> int:
        """Queue every action of a succeeded proposal; returns the eta."""
        if self.state(proposal_id) != ProposalState.SUCCEEDED:
            raise GovernorError(
                "GovernorAlpha::queue: proposal can only be queued if it is succeeded"
            )
        p = self._proposals[proposal_id]
        timelock = self.timelock
        eta = self.now + timelock.delay

        with self.chain.atomic():
            for target, signature, data in p.actions:
                if timelock.queued_transactions(hash_transaction(target, signature, data, eta)):
                    raise GovernorError(
                        "GovernorAlpha::_queueOrRevert: proposal action already queued at eta"
                    )
                timelock.queue_transaction(self.address, target, signature, data, eta)
            p.eta = eta
            self._events.append(ProposalEvent("ProposalQueued", proposal_id, self.now, eta))

        logger.info(f"Proposal #{proposal_id} queued, eta={eta}")
        return eta

    def execute(self, proposal_id: int) -> List[Any]:
        """Execute every action of a queued proposal; returns the call results."""
        if self.state(proposal_id) != ProposalState.QUEUED:
            raise GovernorError(
                "GovernorAlpha::execute: proposal can only be executed if it is queued"
            )
        p = self._proposals[proposal_id]
        timelock = self.timelock

        with self.chain.atomic():
            p.executed = True
            results = [
                timelock.execute_transaction(self.address, target, signature, data, p.eta)
                for target, signature, data in p.actions
            ]
            self._events.append(ProposalEvent("ProposalExecuted", proposal_id, self.now, p.eta))

        logger.info(f"Proposal #{proposal_id} executed")
        return results

    def cancel(self, caller: str, proposal_id: int) -> None:
        if self.state(proposal_id) == ProposalState.EXECUTED:
            raise GovernorError("GovernorAlpha::cancel: cannot cancel executed proposal")
        p = self._proposals[proposal_id]
        caller = normalize_address(caller)
        if caller != self.guardian and (
            self.token.get_prior_votes(p.proposer, self.now - 1) >= self.proposal_threshold
        ):
            raise GovernorError("GovernorAlpha::cancel: proposer above threshold")

        timelock = self.timelock
        with self.chain.atomic():
            p.canceled = True
            if p.eta:
                for target, signature, data in p.actions:
                    timelock.cancel_transaction(self.address, target, signature, data, p.eta)
            self._events.append(ProposalEvent("ProposalCanceled", proposal_id, self.now))

        logger.warning(f"Proposal #{proposal_id} canceled by {caller}")

    # ── Guardian ──────────────────────────────────────────────────────

    def _require_guardian(self, caller: str, what: str) -> None:
        if self.guardian is None or normalize_address(caller) != self.guardian:
            raise UnauthorizedError(f"GovernorAlpha::{what}: sender must be gov guardian")

    def accept_admin(self, caller: str) -> None:
        """Accept admin of the timelock on the governor's behalf."""
        self._require_guardian(caller, "__acceptAdmin")
        self.timelock.accept_admin(self.address)

    def abdicate(self, caller: str) -> None:
        self._require_guardian(caller, "__abdicate")
        logger.warning(f"Governor {self.address}: guardian {self.guardian} abdicated")
        self.guardian = None

    def queue_set_timelock_pending_admin(self, caller: str, new_pending_admin: str, eta: int) -> bytes:
        self._require_guardian(caller, "__queueSetTimelockPendingAdmin")
        return self.timelock.queue_transaction(
            self.address, self.timelock_address, "set_pending_admin", (new_pending_admin,), eta
        )

    def execute_set_timelock_pending_admin(self, caller: str, new_pending_admin: str, eta: int) -> None:
        self._require_guardian(caller, "__executeSetTimelockPendingAdmin")
        self.timelock.execute_transaction(
            self.address, self.timelock_address, "set_pending_admin", (new_pending_admin,), eta
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "timelock": self.timelock_address,
            "token": self.token_address,
            "guardian": self.guardian,
            "quorumVotes": str(self.quorum_votes),
            "proposalThreshold": str(self.proposal_threshold),
            "proposalCount": self.proposal_count,
            "proposals": {pid: p.to_dict() for pid, p in self._proposals.items()},
        }

    def __repr__(self) -> str:
        return f"<GovernorAlpha {self.address} proposals={self.proposal_count}>"
