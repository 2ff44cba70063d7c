"""
Timelock

Queues contract calls that may only run after a delay:

  - queue_transaction / cancel_transaction / execute_transaction (admin only)
  - Execution window is [eta, eta + GRACE_PERIOD]
  - set_delay / set_pending_admin must be routed through the timelock itself
  - accept_admin completes an admin handover

A queued call is identified by the keccak hash of its RLP-encoded
(target, signature, data, eta).
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import rlp
from eth_utils import keccak

from ..chain import Chain, Contract
from ..constants import (
    TIMELOCK_GRACE_PERIOD,
    TIMELOCK_MAXIMUM_DELAY,
    TIMELOCK_MINIMUM_DELAY,
)
from ..crypto import normalize_address
from ..exceptions import RouteError, TimelockError, UnauthorizedError
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TimelockTransactionEvent:
    """QueueTransaction / CancelTransaction / ExecuteTransaction."""
    kind: str
    tx_hash: bytes
    target: str
    signature: str
    data: tuple
    eta: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.kind,
            "txHash": "0x" + self.tx_hash.hex(),
            "target": self.target,
            "signature": self.signature,
            "data": [str(d) for d in self.data],
            "eta": self.eta,
        }


@dataclass(frozen=True)
class AdminChangedEvent:
    kind: str  # NewAdmin / NewPendingAdmin / NewDelay
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"event": self.kind, "value": self.value}


def hash_transaction(target: str, signature: str, data: Sequence[Any], eta: int) -> bytes:
    return keccak(
        rlp.encode([
            bytes.fromhex(normalize_address(target)[2:]),
            signature.encode(),
            repr(tuple(data)).encode(),
            eta,
        ])
    )


# ══════════════════════════════════════════════════════════════════════
#  TIMELOCK
# ══════════════════════════════════════════════════════════════════════

class Timelock(Contract):
    """
    Delay-enforcing executor owned by an admin (normally the governor).

    Calls are dispatched as ``target.<signature>(timelock.address, *data)``,
    so the timelock is the acting account of every executed call.
    """

    GRACE_PERIOD = TIMELOCK_GRACE_PERIOD
    MINIMUM_DELAY = TIMELOCK_MINIMUM_DELAY
    MAXIMUM_DELAY = TIMELOCK_MAXIMUM_DELAY

    _STATE_FIELDS = ("admin", "pending_admin", "delay", "_queued")
    _LOG_FIELDS = ("_events",)

    def __init__(self, chain: Chain, deployer: str, admin: str, delay: int):
        self._check_delay(delay)
        super().__init__(chain, deployer)
        self.admin = normalize_address(admin)
        self.pending_admin: Optional[str] = None
        self.delay = delay
        self._queued: Dict[bytes, bool] = {}
        self._events: List[Any] = []
        logger.info(f"Timelock deployed at {self.address} (admin={self.admin}, delay={delay}s)")

    @classmethod
    def _check_delay(cls, delay: int) -> None:
        if delay < cls.MINIMUM_DELAY:
            raise TimelockError("Timelock::setDelay: Delay must exceed minimum delay.")
        if delay > cls.MAXIMUM_DELAY:
            raise TimelockError("Timelock::setDelay: Delay must not exceed maximum delay.")

    # ── Views ─────────────────────────────────────────────────────────

    def queued_transactions(self, tx_hash: bytes) -> bool:
        return self._queued.get(tx_hash, False)

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    # ── Self-administration ───────────────────────────────────────────

    def _require_self(self, caller: str, what: str) -> None:
        if normalize_address(caller) != self.address:
            raise UnauthorizedError(f"Timelock::{what}: Call must come from Timelock.")

    def _require_admin(self, caller: str, what: str) -> None:
        if normalize_address(caller) != self.admin:
            raise UnauthorizedError(f"Timelock::{what}: Call must come from admin.")

    def set_delay(self, caller: str, delay: int) -> None:
        self._require_self(caller, "setDelay")
        self._check_delay(delay)
        self.delay = delay
        self._events.append(AdminChangedEvent("NewDelay", delay))
        logger.info(f"Timelock {self.address}: delay → {delay}s")

    def set_pending_admin(self, caller: str, pending_admin: str) -> None:
        self._require_self(caller, "setPendingAdmin")
        self.pending_admin = normalize_address(pending_admin)
        self._events.append(AdminChangedEvent("NewPendingAdmin", self.pending_admin))
        logger.info(f"Timelock {self.address}: pending admin → {self.pending_admin}")

    def accept_admin(self, caller: str) -> None:
        caller = normalize_address(caller)
        if caller != self.pending_admin:
            raise UnauthorizedError("Timelock::acceptAdmin: Call must come from pendingAdmin.")
        self.admin = caller
        self.pending_admin = None
        self._events.append(AdminChangedEvent("NewAdmin", caller))
        logger.info(f"Timelock {self.address}: admin → {caller}")

    # ── Transactions ──────────────────────────────────────────────────

    def queue_transaction(
        self,
        caller: str,
        target: str,
        signature: str,
        data: Sequence[Any],
        eta: int,
    ) -> bytes:
        self._require_admin(caller, "queueTransaction")
        if eta < self.now + self.delay:
            raise TimelockError(
                "Timelock::queueTransaction: Estimated execution block must satisfy delay."
            )
        tx_hash = hash_transaction(target, signature, data, eta)
        self._queued[tx_hash] = True
        self._events.append(
            TimelockTransactionEvent("QueueTransaction", tx_hash, normalize_address(target),
                                     signature, tuple(data), eta)
        )
        logger.info(f"Timelock {self.address}: queued {signature} on {target} eta={eta}")
        return tx_hash

    def cancel_transaction(
        self,
        caller: str,
        target: str,
        signature: str,
        data: Sequence[Any],
        eta: int,
    ) -> bytes:
        self._require_admin(caller, "cancelTransaction")
        tx_hash = hash_transaction(target, signature, data, eta)
        self._queued.pop(tx_hash, None)
        self._events.append(
            TimelockTransactionEvent("CancelTransaction", tx_hash, normalize_address(target),
                                     signature, tuple(data), eta)
        )
        logger.info(f"Timelock {self.address}: cancelled {signature} on {target}")
        return tx_hash

    def execute_transaction(
        self,
        caller: str,
        target: str,
        signature: str,
        data: Sequence[Any],
        eta: int,
    ) -> Any:
        """
        Run a queued call once its delay has passed.

        Returns whatever the target method returns. A failing call reverts
        the whole execution and is re-raised as TimelockError.
        """
        self._require_admin(caller, "executeTransaction")
        tx_hash = hash_transaction(target, signature, data, eta)
        if not self._queued.get(tx_hash):
            raise TimelockError("Timelock::executeTransaction: Transaction hasn't been queued.")
        if self.now < eta:
            raise TimelockError(
                "Timelock::executeTransaction: Transaction hasn't surpassed time lock."
            )
        if self.now > eta + self.GRACE_PERIOD:
            raise TimelockError("Timelock::executeTransaction: Transaction is stale.")

        contract = self.chain.get_contract(target)
        method = getattr(contract, signature, None) if not signature.startswith("_") else None
        if not callable(method):
            raise TimelockError(
                f"Timelock::executeTransaction: {type(contract).__name__} has no method {signature!r}"
            )

        with self.chain.atomic():
            del self._queued[tx_hash]
            try:
                result = method(self.address, *data)
            except RouteError as exc:
                raise TimelockError(
                    f"Timelock::executeTransaction: Transaction execution reverted. ({exc})"
                ) from exc
            self._events.append(
                TimelockTransactionEvent("ExecuteTransaction", tx_hash, contract.address,
                                         signature, tuple(data), eta)
            )

        logger.info(f"Timelock {self.address}: executed {signature} on {contract.address}")
        return result

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "admin": self.admin,
            "pendingAdmin": self.pending_admin,
            "delay": self.delay,
            "queued": len([q for q in self._queued.values() if q]),
        }

    def __repr__(self) -> str:
        return f"<Timelock {self.address} admin={self.admin} delay={self.delay}>"
