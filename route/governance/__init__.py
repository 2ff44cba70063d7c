"""
Route Governance

Provides:
  - Checkpoint / CheckpointHistory            (checkpoints.py)
  - VotingLedger and delegation events        (voting.py)
  - Timelock                                  (timelock.py)
  - GovernorAlpha / Proposal / ProposalState  (governor.py)
"""

from .checkpoints import Checkpoint, CheckpointHistory
from .voting import (
    DelegateChangedEvent,
    DelegateVotesChangedEvent,
    VotingLedger,
)
from .timelock import Timelock, hash_transaction
from .governor import (
    GovernorAlpha,
    Proposal,
    ProposalState,
    Receipt,
)

__all__ = [
    # Voting
    "Checkpoint",
    "CheckpointHistory",
    "DelegateChangedEvent",
    "DelegateVotesChangedEvent",
    "VotingLedger",
    # Execution
    "Timelock",
    "hash_transaction",
    # Proposals
    "GovernorAlpha",
    "Proposal",
    "ProposalState",
    "Receipt",
]
