"""
Vote Checkpoints

Per-account history of voting power as ``(timestamp, votes)`` pairs.
Writes are append-only, except that a write at the latest timestamp
replaces the latest checkpoint. Point-in-time lookups use binary search.
"""

from bisect import bisect_right
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Checkpoint:
    """Voting power of an account from ``from_timestamp`` onwards."""
    from_timestamp: int
    votes: int

    def to_dict(self) -> Dict[str, Any]:
        return {"fromTimestamp": self.from_timestamp, "votes": str(self.votes)}


class CheckpointHistory:
    """Ordered checkpoints of a single account."""

    def __init__(self) -> None:
        self._checkpoints: List[Checkpoint] = []
        self._timestamps: List[int] = []  # parallel index for bisect

    def write(self, timestamp: int, votes: int) -> Checkpoint:
        if self._timestamps and timestamp < self._timestamps[-1]:
            raise ValueError(
                f"Checkpoint at {timestamp} precedes latest {self._timestamps[-1]}"
            )
        checkpoint = Checkpoint(from_timestamp=timestamp, votes=votes)
        if self._timestamps and self._timestamps[-1] == timestamp:
            self._checkpoints[-1] = checkpoint
        else:
            self._checkpoints.append(checkpoint)
            self._timestamps.append(timestamp)
        return checkpoint

    @property
    def latest(self) -> Optional[Checkpoint]:
        return self._checkpoints[-1] if self._checkpoints else None

    @property
    def latest_votes(self) -> int:
        return self._checkpoints[-1].votes if self._checkpoints else 0

    def votes_at(self, timestamp: int) -> int:
        """Votes of the latest checkpoint at or before *timestamp* (0 if none)."""
        index = bisect_right(self._timestamps, timestamp)
        if index == 0:
            return 0
        return self._checkpoints[index - 1].votes

    def __len__(self) -> int:
        return len(self._checkpoints)

    def __getitem__(self, index: int) -> Checkpoint:
        return self._checkpoints[index]

    def __iter__(self):
        return iter(self._checkpoints)

    def __repr__(self) -> str:
        return f"<CheckpointHistory n={len(self._checkpoints)} latest={self.latest_votes}>"
