"""
Route Chain Host

A minimal transactional host that the Route contracts run against.

Provides:
  - Block timestamp and number (monotonically non-decreasing)
  - CREATE-style contract address assignment
  - Contract registry (address → contract)
  - State snapshots and reverts across every registered contract
  - atomic(): revert all registered state if a call raises
"""

import copy
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .config import ChainConfig
from .crypto import generate_contract_address, normalize_address
from .logger import get_logger

logger = get_logger(__name__)


class Contract:
    """
    Base for objects deployed on a :class:`Chain`.

    Subclasses list their mutable attributes in ``_STATE_FIELDS``; those are
    captured by :meth:`Chain.snapshot` and restored by :meth:`Chain.revert`.
    Append-only lists (event logs) go in ``_LOG_FIELDS`` instead: a snapshot
    records only their length and a revert truncates them back to it.
    Attributes holding other contracts must store addresses, not objects.
    """

    _STATE_FIELDS: Tuple[str, ...] = ()
    _LOG_FIELDS: Tuple[str, ...] = ()

    def __init__(self, chain: "Chain", deployer: str):
        self.chain = chain
        self.deployer = normalize_address(deployer)
        self.address = chain.register(self, self.deployer)

    def snapshot_state(self) -> Dict[str, Any]:
        state = {name: copy.deepcopy(getattr(self, name)) for name in self._STATE_FIELDS}
        state.update((name, len(getattr(self, name))) for name in self._LOG_FIELDS)
        return state

    def restore_state(self, state: Dict[str, Any]) -> None:
        for name, value in state.items():
            if name in self._LOG_FIELDS:
                del getattr(self, name)[value:]
            else:
                setattr(self, name, value)

    @property
    def now(self) -> int:
        return self.chain.timestamp


class Chain:
    """
    Serialized execution host for Route contracts.

    Usage:

        chain = Chain()
        token = RouteToken(chain, deployer=WALLET)
        chain.mine_block(chain.timestamp + 60)
        with chain.atomic():
            ...
    """

    def __init__(self, config: Optional[ChainConfig] = None):
        self.config = config or ChainConfig()
        self.chain_id = self.config.chain_id
        self.block_time = self.config.block_time
        self.timestamp: int = self.config.genesis_time or int(time.time())
        self.block_number: int = 0

        self._contracts: Dict[str, Contract] = {}
        self._nonces: Dict[str, int] = {}
        self._snapshots: List[Dict[str, Any]] = []

    # ── Blocks / time ─────────────────────────────────────────────────

    def mine_block(self, timestamp: Optional[int] = None) -> int:
        """
        Mine a block at *timestamp* (default: one block time later).

        Returns the new block number.
        """
        if timestamp is None:
            timestamp = self.timestamp + self.block_time
        timestamp = int(timestamp)
        if timestamp < self.timestamp:
            raise ValueError(
                f"Block timestamp {timestamp} precedes current {self.timestamp}"
            )
        self.timestamp = timestamp
        self.block_number += 1
        return self.block_number

    def advance(self, seconds: int) -> int:
        """Mine a block *seconds* after the current one."""
        return self.mine_block(self.timestamp + seconds)

    # ── Contract registry ─────────────────────────────────────────────

    def register(self, contract: Contract, deployer: str) -> str:
        """Assign a CREATE address to *contract* and track it."""
        deployer = normalize_address(deployer)
        nonce = self._nonces.get(deployer, 0)
        address = generate_contract_address(deployer, nonce)
        self._nonces[deployer] = nonce + 1
        self._contracts[address] = contract
        logger.debug(f"Deployed {type(contract).__name__} at {address} (nonce={nonce})")
        return address

    def nonce_of(self, deployer: str) -> int:
        return self._nonces.get(normalize_address(deployer), 0)

    def next_contract_address(self, deployer: str) -> str:
        """Address the next contract deployed by *deployer* will receive."""
        deployer = normalize_address(deployer)
        return generate_contract_address(deployer, self._nonces.get(deployer, 0))

    def get_contract(self, address: str) -> Contract:
        contract = self._contracts.get(normalize_address(address))
        if contract is None:
            raise LookupError(f"No contract deployed at {address}")
        return contract

    def is_contract(self, address: str) -> bool:
        return normalize_address(address) in self._contracts

    @property
    def contracts(self) -> List[Contract]:
        return list(self._contracts.values())

    # ── Snapshots ─────────────────────────────────────────────────────

    def snapshot(self) -> int:
        """
        Create state snapshot for revert.

        Returns:
            Snapshot ID
        """
        snapshot = {
            'timestamp': self.timestamp,
            'block_number': self.block_number,
            'nonces': dict(self._nonces),
            'contracts': dict(self._contracts),
            'states': {addr: c.snapshot_state() for addr, c in self._contracts.items()},
        }
        self._snapshots.append(snapshot)
        return len(self._snapshots) - 1

    def revert(self, snapshot_id: int) -> None:
        """
        Revert host and contract state to snapshot.

        Contracts registered after the snapshot are forgotten.
        """
        if snapshot_id < 0 or snapshot_id >= len(self._snapshots):
            raise ValueError(f"Invalid snapshot ID: {snapshot_id}")

        snapshot = self._snapshots[snapshot_id]
        self.timestamp = snapshot['timestamp']
        self.block_number = snapshot['block_number']
        self._nonces = dict(snapshot['nonces'])
        self._contracts = dict(snapshot['contracts'])
        for addr, state in snapshot['states'].items():
            self._contracts[addr].restore_state(copy.deepcopy(state))

        # Remove this and newer snapshots
        self._snapshots = self._snapshots[:snapshot_id]

    def discard(self, snapshot_id: int) -> None:
        """Drop a snapshot (and newer ones) without reverting."""
        if snapshot_id < 0 or snapshot_id >= len(self._snapshots):
            raise ValueError(f"Invalid snapshot ID: {snapshot_id}")
        self._snapshots = self._snapshots[:snapshot_id]

    @contextmanager
    def atomic(self) -> Iterator[int]:
        """
        Run a block of calls as one transaction.

        Any exception reverts every registered contract to its state on entry
        and is re-raised.
        """
        snapshot_id = self.snapshot()
        try:
            yield snapshot_id
        except Exception:
            self.revert(snapshot_id)
            raise
        else:
            self.discard(snapshot_id)

    def __repr__(self) -> str:
        return (
            f"<Chain id={self.chain_id} block={self.block_number} "
            f"timestamp={self.timestamp} contracts={len(self._contracts)}>"
        )
